# app.py
import logging
import os
from typing import List, Optional

from audio.synth import AudioSink, open_sink
from config import AppConfig
from midi.parser import ParseResult, parse_file
from midi.reader import FormatError
from notes.collector import select_track, track_names, track_summary
from notes.model import TimedEvent
from timeline.scheduler import Scheduler
from utils.crashlog import log_exception

log = logging.getLogger(__name__)

class App:
    def __init__(self, cfg: AppConfig, sink: Optional[AudioSink] = None, silent: bool = False):
        self.cfg = cfg
        self._sink = sink
        self.silent = silent
        self.scheduler: Optional[Scheduler] = None

        # 已載入的檔案
        self.current_midi: Optional[str] = None
        self.result: Optional[ParseResult] = None

    @property
    def events(self) -> List[TimedEvent]:
        return self.result.events if self.result else []

    @property
    def sink(self) -> AudioSink:
        # 延後開啟音訊裝置，只列出音軌時不需要
        if self._sink is None:
            self._sink = open_sink(self.cfg.audio, silent=self.silent)
        return self._sink

    # ---------- Loading ----------
    def load(self, path: str) -> bool:
        try:
            self.result = parse_file(path, carry_tempo=self.cfg.playback.carry_tempo)
        except (FormatError, OSError) as e:
            log_exception("load", e)
            log.error("failed to load %s: %s", path, e)
            self.current_midi = None
            self.result = None
            return False
        self.current_midi = path
        log.info("loaded %s (format %d, %d tracks)", os.path.basename(path),
                 self.result.header.format, self.result.header.ntracks)
        return True

    def track_lines(self) -> List[str]:
        return [f"{name:<32} {count:6d} events  {last:8.2f}s" for name, count, last in track_summary(self.events)]

    # ---------- Playback ----------
    def play(self, track: Optional[str] = None) -> int:
        track = track or self.cfg.playback.track
        selected = select_track(self.events, track)
        if not selected:
            log.warning("no note events on %r (tracks with notes: %s)", track, ", ".join(track_names(self.events)) or "none")
            return 0
        log.info("playing %r: %d events, %.2fs", track, len(selected), selected[-1].time)
        self.scheduler = Scheduler(self.sink, self.cfg.audio, self.cfg.playback)
        try:
            return self.scheduler.play(selected)
        except KeyboardInterrupt:
            log.info("interrupted")
            return self.scheduler.i

    def stop(self):
        if self.scheduler:
            self.scheduler.stop()

    def close(self):
        if self._sink is not None:
            self._sink.close()
            self._sink = None

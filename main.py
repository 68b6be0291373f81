# main.py
import sys, os
sys.path.append(os.path.dirname(__file__))  # 確保能找到 config.py

import argparse
import logging
import traceback
from config import AppConfig, AudioConfig, PlaybackConfig
from utils.crashlog import setup_crashlog, log_exception, log_dir

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

def _init_logging(verbose: bool = False):
    root = logging.getLogger()
    if root.handlers:
        return

    logging.basicConfig(
        level=logging.DEBUG,
        format=LOG_FORMAT,
        encoding="utf-8"
    )
    root.handlers[0].setLevel(logging.DEBUG if verbose else logging.INFO)
    from logging.handlers import RotatingFileHandler
    try:
        fh = RotatingFileHandler(os.path.join(log_dir(), "player.log"),
                                 maxBytes=2*1024*1024, backupCount=3, encoding="utf-8")
    except OSError as e:
        logging.warning("file logging disabled: %s", e)
        return
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(fh)

def build_parser() -> argparse.ArgumentParser:
    d = PlaybackConfig()
    ap = argparse.ArgumentParser(prog="midi-track-player", description="Play one track of a MIDI file as sine tones.")
    ap.add_argument('path', help='.mid file')
    ap.add_argument('--track', default=d.track, help=f'track name to play (default: {d.track!r})')
    ap.add_argument('--list-tracks', action='store_true', help='print the tracks and exit')
    ap.add_argument('--rate', type=float, default=d.rate, help='playback speed, 1.0 = original')
    ap.add_argument('--tone-seconds', type=float, default=AudioConfig.tone_seconds)
    ap.add_argument('--poll-ms', type=float, default=d.poll_interval * 1000)
    ap.add_argument('--carry-tempo', action='store_true', help="let a track's last tempo apply to the next track")
    ap.add_argument('--silent', action='store_true', help='schedule without opening an audio device')
    ap.add_argument('-v', '--verbose', action='store_true')
    return ap

def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_crashlog()
    _init_logging(args.verbose)

    if args.rate <= 0:
        logging.error("--rate must be positive")
        return 2

    cfg = AppConfig(
        audio=AudioConfig(tone_seconds=args.tone_seconds),
        playback=PlaybackConfig(
            track=args.track,
            poll_interval=args.poll_ms / 1000.0,
            rate=args.rate,
            carry_tempo=args.carry_tempo,
        ),
    )

    from app import App
    app = App(cfg, silent=args.silent)
    try:
        if not app.load(args.path):
            return 1
        if args.list_tracks:
            for line in app.track_lines():
                print(line)
            return 0
        app.play()
        return 0
    finally:
        app.close()

if __name__ == '__main__':
    try:
        sys.exit(main())
    except Exception as e:
        try:
            log_exception("Top-level exception", e)
        except OSError:
            pass
        logging.error("未捕捉的例外：%s", e, exc_info=True)
        print("程式發生錯誤，請到 logs/ 資料夾看 player.log 與 error-*.txt")
        traceback.print_exc()
        sys.exit(1)

# audio/voices.py
import logging
from typing import Dict, List

log = logging.getLogger(__name__)

class VoiceTable:
    """At most one sounding voice per note number; the last note-on wins."""
    def __init__(self, sink):
        self.sink = sink
        self._by_note: Dict[int, object] = {}

    def __len__(self):
        return len(self._by_note)

    def __contains__(self, note: int):
        return note in self._by_note

    def notes(self) -> List[int]:
        return sorted(self._by_note)

    def start(self, note: int, frequency: float, samples):
        if note in self._by_note:
            log.debug("note %d retriggered, stopping previous voice", note)
            self.stop(note)
        handle = self.sink.start_voice(frequency, samples)
        self._by_note[note] = handle
        return handle

    def stop(self, note: int) -> bool:
        if note not in self._by_note:
            log.debug("note %d is not playing, ignoring note off", note)
            return False
        self.sink.stop_voice(self._by_note.pop(note))
        return True

    def release_all(self):
        """Stop every voice. A failing stop does not keep the others sounding."""
        first_error = None
        handles = list(self._by_note.items())
        self._by_note.clear()
        for note, handle in handles:
            try:
                self.sink.stop_voice(handle)
            except Exception as e:
                log.error("failed to stop note %d: %s", note, e)
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error

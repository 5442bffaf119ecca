# tts.py
# Voice sink for turn announcements.
# Messages are queued and spoken one at a time by a worker thread so the GPS
# loop never waits on the speech engine.

import logging
import queue
import threading
from typing import Callable, Optional, Tuple

import pyttsx3

from ..navigation.models import Announcement
from ..navigation.nav_config import NavConfig

logger = logging.getLogger(__name__)

Speaker = Callable[[str, int], None]

PREFERRED_VOICES = ["Samantha", "Victoria", "Ava", "Karen", "Daniel", "Alex"]


def pyttsx3_speaker(text: str, rate: int) -> None:
    """Speak text with a fresh pyttsx3 engine and block until done."""
    engine = pyttsx3.init()
    engine.setProperty("rate", rate)
    engine.setProperty("volume", 1.0)
    for v in engine.getProperty("voices"):
        if any(p.lower() in (v.name or "").lower() for p in PREFERRED_VOICES):
            engine.setProperty("voice", v.id)
            break
    engine.say(text)
    engine.runAndWait()
    engine.stop()


class VoiceAnnouncer:
    """
    Queue-backed speech output.

    Args:
        config:  NavConfig for rate and the initial enabled flag.
        speaker: Callable(text, rate) doing the actual speech; defaults to
                 pyttsx3. Tests pass a recorder here.
    """

    def __init__(self, config: Optional[NavConfig] = None, speaker: Optional[Speaker] = None) -> None:
        self.config = config or NavConfig()
        self.enabled = self.config.voice_enabled
        self._speaker = speaker or pyttsx3_speaker
        self._queue: "queue.Queue[Optional[Tuple[str, int]]]" = queue.Queue()
        self._thread = threading.Thread(target=self._worker, name="tts", daemon=True)
        self._thread.start()

    def _worker(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is None:
                    break
                text, rate = item
                self._speaker(text, rate)
            except Exception as e:
                logger.error(f"TTS error: {e}")
            finally:
                self._queue.task_done()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def speak(self, text: str, is_urgent: bool = False) -> bool:
        """
        Queue a message. Returns False when it was dropped (voice off or
        empty text).
        """
        text = (text or "").strip()
        if not text or not self.enabled:
            return False
        rate = self.config.voice_rate
        if is_urgent:
            rate = int(rate * self.config.urgent_rate_factor)
        logger.debug(f"Speaking: {text}")
        self._queue.put((text, rate))
        return True

    def announce(self, announcement: Announcement) -> bool:
        return self.speak(announcement.text, announcement.is_urgent)

    def toggle(self) -> bool:
        """Flip voice guidance on/off; returns the new state."""
        self.enabled = not self.enabled
        if self.enabled:
            self.speak("Voice guidance turned on")
        return self.enabled

    def flush(self) -> None:
        """Block until everything queued has been spoken."""
        self._queue.join()

    def close(self, timeout: float = 5.0) -> None:
        self._queue.join()      # let queued speech finish
        self._queue.put(None)   # stop signal for the worker
        self._thread.join(timeout=timeout)

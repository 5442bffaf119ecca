from .tts import VoiceAnnouncer

__all__ = ["VoiceAnnouncer"]

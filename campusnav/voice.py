"""Spoken navigation announcements."""

from dataclasses import fields, replace
from typing import Callable, Optional

from .config import CONFIG
from .logger import Logger
from .models import Voice, VoiceSettings

_SETTING_RANGES = {
    "rate": (0.1, 10.0),
    "pitch": (0.0, 2.0),
    "volume": (0.0, 1.0),
}


class VoiceAnnouncer:
    """Speaks instructions with the current voice settings.

    Only one utterance is audible at a time: a new announcement cancels
    whatever is still being spoken.
    """

    def __init__(self, speech=None, settings: Optional[VoiceSettings] = None,
                 logger: Optional[Logger] = None,
                 callback: Optional[Callable[[str], None]] = None):
        self.speech = speech
        self.settings = settings or VoiceSettings()
        self.logger = logger
        self.callback = callback

    def announce(self, text: str):
        """Speak text; a no-op when voice is disabled or no engine exists"""
        if not self.settings.enabled or self.speech is None:
            return

        if self.callback:
            self.callback(text)
        if self.logger:
            self.logger.log(f"AUDIO: {text}")

        self.speech.cancel()
        self.speech.speak(
            text,
            language=self.settings.language,
            rate=self.settings.rate,
            pitch=self.settings.pitch,
            volume=self.settings.volume,
        )

    def test_voice(self, message: str = CONFIG["default_test_message"]):
        self.announce(message)

    def update_voice_settings(self, **changes):
        """Merge changes into the settings; applies from the next announcement"""
        known = {f.name for f in fields(VoiceSettings)}
        unknown = set(changes) - known
        if unknown:
            raise TypeError(f"Unknown voice settings: {', '.join(sorted(unknown))}")

        for name, (low, high) in _SETTING_RANGES.items():
            if name in changes:
                changes[name] = min(high, max(low, float(changes[name])))
        self.settings = replace(self.settings, **changes)

    def get_voice_settings(self) -> VoiceSettings:
        return replace(self.settings)

    def get_available_voices(self) -> list[Voice]:
        if self.speech is None:
            return []
        return self.speech.list_voices()

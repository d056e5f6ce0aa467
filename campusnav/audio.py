"""Text-to-speech engines for campusnav.

A speech engine offers speak(text, language, rate, pitch, volume), cancel()
and list_voices(). rate and pitch are relative to 1.0 (normal), volume is
0.0-1.0.
"""

import shutil
import subprocess
from typing import Optional

import pyttsx3

from .config import CONFIG
from .models import Voice


class EspeakSpeech:
    """Speech via the espeak binary (available in Termux)"""

    def __init__(self, command: str = "espeak"):
        self.command = command
        self._process: Optional[subprocess.Popen] = None

    def speak(self, text: str, language: str = "en-US", rate: float = 1.0,
              pitch: float = 1.0, volume: float = 1.0):
        args = [
            self.command,
            "-v", language.lower(),
            "-s", str(round(CONFIG["espeak_base_wpm"] * rate)),
            "-p", str(min(99, max(0, round(50 * pitch)))),
            "-a", str(min(200, max(0, round(100 * volume)))),
            text,
        ]
        self._process = subprocess.Popen(args, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)

    def cancel(self):
        if self._process and self._process.poll() is None:
            self._process.terminate()
        self._process = None

    def list_voices(self) -> list[Voice]:
        try:
            result = subprocess.run([self.command, "--voices"], capture_output=True,
                                    text=True, timeout=10)
        except (OSError, subprocess.TimeoutExpired):
            return []
        return self.parse_voices(result.stdout)

    @staticmethod
    def parse_voices(output: str) -> list[Voice]:
        """Parse `espeak --voices` table output"""
        voices = []
        for line in output.splitlines()[1:]:
            parts = line.split()
            # Pty Language Age/Gender VoiceName File [Other Languages]
            if len(parts) < 4:
                continue
            voices.append(Voice(id=parts[1], name=parts[3], languages=(parts[1],)))
        return voices


class Pyttsx3Speech:
    """Offline speech via pyttsx3. speak() blocks until the utterance ends."""

    def __init__(self, engine=None):
        self.engine = engine or pyttsx3.init()
        self.base_rate = self.engine.getProperty("rate")

    def speak(self, text: str, language: str = "en-US", rate: float = 1.0,
              pitch: float = 1.0, volume: float = 1.0):
        # pyttsx3 has no portable pitch control
        self.engine.setProperty("rate", int(self.base_rate * rate))
        self.engine.setProperty("volume", volume)
        voice = self._voice_for(language)
        if voice:
            self.engine.setProperty("voice", voice.id)
        self.engine.say(text)
        self.engine.runAndWait()

    def cancel(self):
        self.engine.stop()

    def _voice_for(self, language: str) -> Optional[Voice]:
        tag = language.lower().replace("_", "-")
        primary = tag.split("-")[0]
        fallback = None
        for voice in self.list_voices():
            langs = [lang.lower().replace("_", "-") for lang in voice.languages]
            if tag in langs:
                return voice
            if fallback is None and any(lang.split("-")[0] == primary for lang in langs):
                fallback = voice
        return fallback

    def list_voices(self) -> list[Voice]:
        voices = []
        for v in self.engine.getProperty("voices") or []:
            languages = tuple(
                lang.decode(errors="ignore").lstrip("\x05") if isinstance(lang, bytes) else str(lang)
                for lang in (getattr(v, "languages", None) or [])
            )
            voices.append(Voice(id=v.id, name=v.name or v.id, languages=languages))
        return voices


def default_speech():
    """espeak if installed, else pyttsx3, else None (silent)"""
    if shutil.which("espeak"):
        return EspeakSpeech()
    try:
        return Pyttsx3Speech()
    except Exception as e:
        print(f"Audio unavailable: {e}")
        return None

import pytest

from campusnav import audio
from campusnav.audio import EspeakSpeech, Pyttsx3Speech
from campusnav.models import VoiceSettings
from campusnav.voice import VoiceAnnouncer


def test_announce_cancels_then_speaks_with_settings(speech):
    announcer = VoiceAnnouncer(speech, VoiceSettings(language="hi-IN", rate=0.9, pitch=1.1, volume=0.5))

    announcer.announce("Turn left at the library")

    assert speech.cancels == 1
    assert speech.calls == [{"text": "Turn left at the library", "language": "hi-IN",
                             "rate": 0.9, "pitch": 1.1, "volume": 0.5}]


def test_new_announcement_preempts_previous(speech):
    announcer = VoiceAnnouncer(speech)

    announcer.announce("first")
    announcer.announce("second")

    assert speech.cancels == 2
    assert speech.spoken == ["first", "second"]


def test_disabled_voice_is_silent(speech):
    announcer = VoiceAnnouncer(speech, VoiceSettings(enabled=False))

    announcer.announce("Navigation started")

    assert speech.spoken == []
    assert speech.cancels == 0


def test_announce_without_engine_is_noop():
    announcer = VoiceAnnouncer(None)

    announcer.announce("Navigation started")

    assert announcer.get_available_voices() == []


def test_callback_and_log_receive_spoken_text(speech, logger, log_messages):
    shown = []
    announcer = VoiceAnnouncer(speech, logger=logger, callback=shown.append)

    announcer.announce("Continue straight")

    assert shown == ["Continue straight"]
    assert "AUDIO: Continue straight" in log_messages


def test_update_voice_settings_merges_and_clamps(speech):
    announcer = VoiceAnnouncer(speech)

    announcer.update_voice_settings(rate=20, volume=-1)
    announcer.update_voice_settings(language="en-GB")

    settings = announcer.get_voice_settings()
    assert settings == VoiceSettings(enabled=True, language="en-GB", rate=10.0, pitch=1.0, volume=0.0)


def test_update_voice_settings_applies_to_next_announcement(speech):
    announcer = VoiceAnnouncer(speech)

    announcer.announce("one")
    announcer.update_voice_settings(rate=1.5)
    announcer.announce("two")

    assert [c["rate"] for c in speech.calls] == [1.0, 1.5]


def test_update_voice_settings_rejects_unknown_keys(speech):
    announcer = VoiceAnnouncer(speech)

    with pytest.raises(TypeError):
        announcer.update_voice_settings(accent="scottish")


def test_get_voice_settings_returns_copy(speech):
    announcer = VoiceAnnouncer(speech)

    announcer.get_voice_settings().enabled = False

    assert announcer.get_voice_settings().enabled


def test_test_voice_default_message(speech):
    VoiceAnnouncer(speech).test_voice()

    assert speech.spoken == ["This is a test of the navigation voice"]


def test_espeak_arguments(monkeypatch):
    launched = []

    class FakePopen:
        def __init__(self, args, **kwargs):
            launched.append(args)
            self.terminated = False

        def poll(self):
            return None

        def terminate(self):
            self.terminated = True

    monkeypatch.setattr(audio.subprocess, "Popen", FakePopen)
    speech = EspeakSpeech()

    speech.speak("Head north", language="en-US", rate=1.2, pitch=1.0, volume=0.8)
    process = speech._process
    speech.cancel()

    assert launched == [["espeak", "-v", "en-us", "-s", "210", "-p", "50", "-a", "80", "Head north"]]
    assert process.terminated


def test_espeak_voice_parsing():
    output = (
        "Pty Language Age/Gender VoiceName          File          Other Languages\n"
        " 5  af             M  afrikaans            other/af\n"
        " 2  en-us          M  english-us           en-us         (en-r 5)(en 3)\n"
        "\n"
    )

    voices = EspeakSpeech.parse_voices(output)

    assert [(v.id, v.name) for v in voices] == [("af", "afrikaans"), ("en-us", "english-us")]


class FakeEngine:
    class _Voice:
        def __init__(self, id, name, languages):
            self.id = id
            self.name = name
            self.languages = languages

    def __init__(self):
        self.properties = {"rate": 200, "volume": 1.0, "voice": None}
        self.said = []
        self.stopped = 0
        self.voices = [
            self._Voice("fr", "French", [b"\x05fr"]),
            self._Voice("en-gb", "English (UK)", [b"\x05en-gb"]),
            self._Voice("en-us", "English (US)", ["en_US"]),
        ]

    def getProperty(self, name):
        if name == "voices":
            return self.voices
        return self.properties[name]

    def setProperty(self, name, value):
        self.properties[name] = value

    def say(self, text):
        self.said.append(text)

    def runAndWait(self):
        pass

    def stop(self):
        self.stopped += 1


def test_pyttsx3_speech_sets_properties():
    engine = FakeEngine()
    speech = Pyttsx3Speech(engine)

    speech.speak("Head north", language="en-US", rate=0.5, volume=0.6)
    speech.cancel()

    assert engine.said == ["Head north"]
    assert engine.properties["rate"] == 100
    assert engine.properties["volume"] == 0.6
    assert engine.properties["voice"] == "en-us"
    assert engine.stopped == 1


def test_pyttsx3_voice_falls_back_to_primary_language():
    engine = FakeEngine()
    speech = Pyttsx3Speech(engine)

    speech.speak("Bonjour", language="fr-CA")

    assert engine.properties["voice"] == "fr"
    assert [v.languages for v in speech.list_voices()][:2] == [("fr",), ("en-gb",)]


def test_default_speech_prefers_espeak(monkeypatch):
    monkeypatch.setattr(audio.shutil, "which", lambda name: "/usr/bin/espeak")

    assert isinstance(audio.default_speech(), EspeakSpeech)


def test_default_speech_is_none_when_no_engine_works(monkeypatch):
    def broken_init():
        raise RuntimeError("no driver")

    monkeypatch.setattr(audio.shutil, "which", lambda name: None)
    monkeypatch.setattr(audio.pyttsx3, "init", broken_init)

    assert audio.default_speech() is None



def test_announcer_lists_engine_voices():
    announcer = VoiceAnnouncer(Pyttsx3Speech(FakeEngine()))

    voices = announcer.get_available_voices()

    assert [v.id for v in voices] == ["fr", "en-gb", "en-us"]
    assert voices[2].languages == ("en_US",)

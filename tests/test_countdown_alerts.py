"""Tests for the sound and notification collaborators (no real device needed)."""

from types import SimpleNamespace

import numpy as np
import pygame
import pytest

import countdown_alerts
from countdown_alerts import NotificationManager, SoundManager, make_tone


class FakeChannel:
    def __init__(self, busy=True, broken=False):
        self.busy = busy
        self.broken = broken

    def get_busy(self):
        if self.broken:
            raise pygame.error("mixer not initialized")
        return self.busy


class FakeSound:
    def __init__(self):
        self.calls = []

    def play(self, loops=0):
        self.calls.append(loops)
        return FakeChannel()


class TestMakeTone:
    def test_shape_and_dtype(self):
        tone = make_tone(440, 0.1)
        assert tone.shape == (4410, 2)
        assert tone.dtype == np.int16

    def test_fades_in_from_silence(self):
        tone = make_tone(440, 0.1)
        assert tone[0, 0] == 0
        assert np.abs(tone).max() > 30000

    def test_very_short_tone(self):
        assert make_tone(440, 0.0001).shape == (4, 2)


class TestSoundManager:
    def test_disabled_manager_is_silent(self):
        mgr = SoundManager(enabled=False)
        assert mgr.available is False
        mgr.play("Beep")
        assert mgr.playing == []
        mgr.stop()

    def test_mixer_failure_degrades(self, monkeypatch):
        def broken_init(**kwargs):
            raise pygame.error("No available audio device")

        monkeypatch.setattr(countdown_alerts.pygame.mixer, "init", broken_init)
        mgr = SoundManager()
        assert mgr.available is False
        assert mgr.sounds == {}

    def test_play_tracks_channel(self):
        mgr = SoundManager(enabled=False)
        mgr.available = True
        beep = FakeSound()
        mgr.sounds = {"Beep": beep}

        mgr.play("Beep")
        mgr.play("Unknown")
        assert len(mgr.playing) == 2
        assert beep.calls == [2, 2]

    def test_sweep_retires_emptied_channels(self):
        mgr = SoundManager(enabled=False)
        mgr.playing = [FakeChannel(busy=True), FakeChannel(busy=False),
                       FakeChannel(broken=True)]
        assert mgr.sweep() == 1
        assert mgr.sweep() == 1
        mgr.playing[0].busy = False
        assert mgr.sweep() == 0

    def test_names(self):
        assert SoundManager(enabled=False).names() == ["Beep", "Alert", "Chime", "Bell", "Alarm"]


class TestNotificationManager:
    def test_uses_plyer(self, monkeypatch):
        calls = []
        monkeypatch.setattr(countdown_alerts, "notification",
                            SimpleNamespace(notify=lambda **kwargs: calls.append(kwargs)))
        assert NotificationManager().show("Tea", "Time's up!") is True
        assert calls[0]["title"] == "Tea"
        assert calls[0]["message"] == "Time's up!"

    @pytest.fixture
    def broken_plyer(self, monkeypatch):
        def fail(**kwargs):
            raise NotImplementedError("no backend")
        monkeypatch.setattr(countdown_alerts, "notification", SimpleNamespace(notify=fail))

    def test_linux_fallback(self, monkeypatch, broken_plyer):
        launched = []
        monkeypatch.setattr(countdown_alerts.sys, "platform", "linux")
        monkeypatch.setattr(countdown_alerts.shutil, "which", lambda name: "/usr/bin/" + name)
        monkeypatch.setattr(countdown_alerts.subprocess, "Popen",
                            lambda cmd, **kwargs: launched.append(cmd))

        assert NotificationManager().show("Tea", "done") is True
        assert launched == [["notify-send", "Tea", "done"]]

    def test_macos_fallback_quotes_text(self, monkeypatch, broken_plyer):
        launched = []
        monkeypatch.setattr(countdown_alerts.sys, "platform", "darwin")
        monkeypatch.setattr(countdown_alerts.subprocess, "Popen",
                            lambda cmd, **kwargs: launched.append(cmd))

        NotificationManager().show('Say "hi"', "done")
        assert launched[0][:2] == ["osascript", "-e"]
        assert 'with title "Say \\"hi\\""' in launched[0][2]

    def test_fallback_failure_is_swallowed(self, monkeypatch, broken_plyer):
        def no_binary(cmd, **kwargs):
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr(countdown_alerts.sys, "platform", "linux")
        monkeypatch.setattr(countdown_alerts.shutil, "which", lambda name: "/usr/bin/" + name)
        monkeypatch.setattr(countdown_alerts.subprocess, "Popen", no_binary)
        assert NotificationManager().show("Tea", "done") is False

    def test_no_backend(self, monkeypatch, broken_plyer):
        monkeypatch.setattr(countdown_alerts.sys, "platform", "win32")
        assert NotificationManager().show("Tea", "done") is False

    def test_sweep_reaps_exited_children(self, monkeypatch, broken_plyer):
        class FakeChild:
            def __init__(self):
                self.returncode = None

            def poll(self):
                return self.returncode

        children = []

        def launch(cmd, **kwargs):
            children.append(FakeChild())
            return children[-1]

        monkeypatch.setattr(countdown_alerts.sys, "platform", "linux")
        monkeypatch.setattr(countdown_alerts.shutil, "which", lambda name: "/usr/bin/" + name)
        monkeypatch.setattr(countdown_alerts.subprocess, "Popen", launch)

        mgr = NotificationManager()
        mgr.show("Tea", "done")
        mgr.show("Coffee", "done")
        assert mgr.sweep() == 2

        children[0].returncode = 0
        assert mgr.sweep() == 1
        assert mgr.children == [children[1]]

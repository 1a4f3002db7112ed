"""
Clock Countdown - sound and OS notifications
Both are best effort: a missing audio device or notification daemon
must never take a countdown down with it.
"""

import logging
import shutil
import subprocess
import sys

import numpy as np
import pygame
from plyer import notification

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44100

# name -> (frequency Hz, duration s)
TONES = {
    "Beep": (440, 0.15),
    "Alert": (1200, 0.2),
    "Chime": (880, 0.25),
    "Bell": (1760, 0.2),
    "Alarm": (600, 0.35),
}

# ===================== SOUND MANAGER =====================

class SoundManager:
    """Tone generator and fire-and-forget playback.

    Each play() hands back nothing; the channel it started is kept in
    `playing` until sweep() sees it has emptied.
    """

    def __init__(self, enabled=True):
        self.sounds = {}
        self.playing = []
        self.available = False

        if enabled:
            self.available = self._init_mixer()
        if self.available:
            self._generate_sounds()

    def _init_mixer(self):
        try:
            pygame.mixer.init(frequency=SAMPLE_RATE, size=-16, channels=2, buffer=512)
            return True
        except pygame.error as e:
            logger.warning("Audio unavailable, running without sound: %s", e)
            return False

    def _generate_sounds(self):
        for name, (freq, duration) in TONES.items():
            try:
                self.sounds[name] = pygame.sndarray.make_sound(make_tone(freq, duration))
            except (pygame.error, ValueError) as e:
                logger.warning("Sound generation error for %s: %s", name, e)

    def names(self):
        return list(TONES)

    def play(self, sound_name, loops=2):
        if not self.available:
            return
        sound = self.sounds.get(sound_name) or self.sounds.get("Beep")
        if sound is None:
            return

        try:
            channel = sound.play(loops=loops)
        except pygame.error as e:
            logger.warning("Play error: %s", e)
            return
        if channel is not None:
            self.playing.append(channel)

    def sweep(self):
        """Drop channels that finished playing; returns how many are left"""
        still_busy = []
        for channel in self.playing:
            try:
                busy = channel.get_busy()
            except pygame.error:
                busy = False
            if busy:
                still_busy.append(channel)
        self.playing = still_busy
        return len(self.playing)

    def stop(self):
        self.playing = []
        if not self.available:
            return
        try:
            pygame.mixer.stop()
        except pygame.error as e:
            logger.warning("Stop error: %s", e)


def make_tone(freq, duration, sample_rate=SAMPLE_RATE):
    """Stereo int16 sine wave with a 10 ms fade in/out"""
    n = int(duration * sample_rate)
    t = np.linspace(0, duration, n, False)
    wave = np.sin(freq * t * 2 * np.pi)

    fade = min(int(sample_rate * 0.01), n // 2)
    if fade:
        wave[:fade] *= np.linspace(0, 1, fade)
        wave[-fade:] *= np.linspace(1, 0, fade)

    audio = (wave * 32767).astype(np.int16)
    return np.repeat(audio.reshape(n, 1), 2, axis=1)

# ===================== NOTIFICATION MANAGER =====================

class NotificationManager:
    """Native OS notifications"""

    APP_NAME = "Clock Countdown"

    def __init__(self):
        self.children = []

    def show(self, title, message):
        try:
            notification.notify(title=title, message=message,
                                app_name=self.APP_NAME, timeout=10)
            return True
        except Exception as e:
            # plyer raises whatever its backend raises (NotImplementedError, dbus errors, ...)
            logger.info("plyer notification failed, trying platform tool: %s", e)

        return self._show_fallback(title, message)

    def _show_fallback(self, title, message):
        if sys.platform == 'darwin':
            script = f'display notification {_osa_quote(message)} with title {_osa_quote(title)}'
            cmd = ["osascript", "-e", script]
        elif sys.platform.startswith('linux') and shutil.which("notify-send"):
            cmd = ["notify-send", title, message]
        else:
            logger.warning("No notification backend for %s", sys.platform)
            return False

        # Popen, not run: the frame loop must not wait on the notifier
        try:
            child = subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
            self.children.append(child)
            return True
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("Notification error: %s", e)
            return False

    def sweep(self):
        """Reap notifier processes that exited; returns how many still run"""
        self.children = [c for c in self.children if c.poll() is None]
        return len(self.children)


def _osa_quote(text):
    return '"' + text.replace('\\', '\\\\').replace('"', '\\"') + '"'

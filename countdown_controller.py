"""
Clock Countdown - application core
Ties the registry to persistence, sound and notifications. The GUI
calls frame() once per redraw and routes button presses here.
"""

import logging
import time
from datetime import datetime

from countdown_logic import InvalidDuration, ParseError, TaskRegistry

logger = logging.getLogger(__name__)

FINISH_MESSAGE = "Time's up!"


class CountdownController:
    """Owns the TaskRegistry and runs completion side effects.

    `on_finished(entry, message)` is an optional hook for the popup; the
    sound and notification collaborators are called first. A failing
    collaborator is logged and skipped, it never stops the frame.
    """

    def __init__(self, config, sound=None, notifier=None, on_finished=None,
                 clock=time.monotonic, wall_clock=datetime.now):
        self.config = config
        self.sound = sound
        self.notifier = notifier
        self.on_finished = on_finished
        self.registry = TaskRegistry(
            history=config.load_history(),
            next_id=config.load_next_id(),
            clock=clock,
            wall_clock=wall_clock,
        )

    # ---- commands ----

    def add(self, label, text):
        """Start a countdown from user text; returns (task_id, error_message)"""
        try:
            task_id = self.registry.add_from_text(label, text)
        except ParseError:
            return None, "Use S, M:S or H:M:S (whole numbers)"
        except InvalidDuration:
            return None, "Duration must be greater than 0"
        # the new id is spent even if this task never reaches history
        self.save()
        return task_id, None

    def restart(self, history_id):
        """Start a new countdown with the same label and input as a past one"""
        entry = self.registry.find_history(history_id)
        if entry is None:
            return None
        task_id = self.registry.add(entry.label, entry.target_duration,
                                    input_text=entry.input_text)
        self.save()
        return task_id

    def pause(self, task_id):
        self.registry.pause(task_id)

    def resume(self, task_id):
        self.registry.resume(task_id)

    def toggle(self, task_id):
        self.registry.toggle(task_id)

    def stop(self, task_id):
        self.registry.remove(task_id)

    def delete_from_history(self, task_id):
        if self.registry.find_history(task_id) is None:
            return
        self.registry.delete_from_history(task_id)
        self.save()

    def clear_history(self):
        self.registry.clear_history()
        self.save()

    # ---- frame ----

    def frame(self, now=None):
        """One redraw step: finalize, fire side effects, sweep sounds"""
        finished = self.registry.tick(now)

        for task_id in finished:
            entry = self.registry.find_history(task_id)
            if entry is not None:
                self._announce(entry)

        if finished:
            self.save()

        if self.sound is not None:
            self._safe("sound sweep", self.sound.sweep)
        if self.notifier is not None:
            self._safe("notification sweep", self.notifier.sweep)

        return finished

    def views(self, now=None):
        return self.registry.views(now)

    def history(self):
        return list(self.registry.history)

    def _announce(self, entry):
        started = entry.created_at.strftime('%H:%M:%S')
        message = f"{entry.label} (started {started}): {FINISH_MESSAGE}"

        if self.sound is not None:
            self._safe("sound", self.sound.play, self.config.get("sound", "Beep"))
        if self.notifier is not None:
            self._safe("notification", self.notifier.show, f"⏰ {entry.label}", message)
        if self.on_finished is not None:
            self._safe("popup", self.on_finished, entry, message)

    @staticmethod
    def _safe(what, func, *args):
        try:
            return func(*args)
        except Exception:
            logger.warning("%s failed", what, exc_info=True)
            return None

    def save(self):
        return self.config.save_history(self.registry.history, self.registry.next_id)

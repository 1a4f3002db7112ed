"""
Clock Countdown - timer core
Duration parsing, countdown state machine and the task registry.
Nothing in here touches the GUI, audio or the disk.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = ":"
COMPONENT_RE = re.compile(r"^\d+$", re.ASCII)
MAX_DURATION_SECONDS = 2 ** 63 - 1

# ===================== ERRORS =====================

class ParseError(ValueError):
    """Duration text is not S, M:S or H:M:S"""


class InvalidDuration(ValueError):
    """Duration parsed fine but cannot start a countdown"""

# ===================== DURATION PARSER =====================

def parse_duration(text):
    """Parse 'S', 'M:S' or 'H:M:S' into whole seconds.

    Fields are plain non-negative integers without an upper bound, so
    '90' and '1:30' and '0:0:90' are all the same span. Zero is accepted
    here; the registry is the one that refuses to start it.
    """
    parts = text.strip().split(FIELD_SEPARATOR)
    if not 1 <= len(parts) <= 3:
        raise ParseError(f"Expected S, M:S or H:M:S, got {text!r}")

    values = []
    for part in parts:
        if not COMPONENT_RE.match(part):
            raise ParseError(f"Not a whole number: {part!r}")
        values.append(int(part))

    while len(values) < 3:
        values.insert(0, 0)
    hours, minutes, seconds = values

    total = hours * 3600 + minutes * 60 + seconds
    if total > MAX_DURATION_SECONDS:
        raise ParseError(f"Duration too large: {text!r}")
    return total

# ===================== FORMATTING =====================

def format_hms(seconds):
    """Whole seconds -> HH:MM:SS (hours keep growing past 99)"""
    seconds = max(0, int(seconds))
    mins, secs = divmod(seconds, 60)
    hours, mins = divmod(mins, 60)
    return f"{hours:02d}:{mins:02d}:{secs:02d}"


def format_clock(now, use_24h=True):
    return now.strftime('%H:%M:%S' if use_24h else '%I:%M:%S %p')

# ===================== COUNTDOWN TASK =====================

class TaskState(Enum):
    RUNNING = "Running"
    PAUSED = "Paused"
    FINISHED = "Finished"


class CountdownTask:
    """One countdown.

    Elapsed time is kept as the span consumed before the current active
    interval plus the live interval since `running_since`. Pausing folds
    the live interval into `accumulated_elapsed`; resuming starts a new
    interval at the resume instant, so the pause gap is never charged.
    """

    def __init__(self, task_id, label, target_duration, input_text=None,
                 created_at=None, now=None, clock=time.monotonic):
        self.id = task_id
        self.label = label
        self.target_duration = target_duration
        self.input_text = input_text if input_text is not None else str(target_duration)
        self.created_at = created_at or datetime.now()
        self.clock = clock

        self.accumulated_elapsed = 0.0
        self.running_since = self._now(now)
        self.paused = False
        self.finished_at = None

    def _now(self, now):
        return self.clock() if now is None else now

    @property
    def finished(self):
        return self.finished_at is not None

    def elapsed(self, now=None):
        if self.finished:
            return float(self.target_duration)
        if self.paused:
            return self.accumulated_elapsed
        live = self._now(now) - self.running_since
        # A clock that steps backwards must not shrink elapsed
        return self.accumulated_elapsed + max(0.0, live)

    def remaining(self, now=None):
        return max(0.0, self.target_duration - self.elapsed(now))

    def remaining_seconds(self, now=None):
        return int(self.remaining(now))

    def fraction(self, now=None):
        if self.target_duration <= 0:
            return 1.0
        return min(1.0, max(0.0, self.elapsed(now) / self.target_duration))

    def is_due(self, now=None):
        """Running, not finalized yet, and out of time"""
        if self.finished or self.paused:
            return False
        return self.elapsed(now) >= self.target_duration

    def state(self, now=None):
        if self.finished or self.is_due(now):
            return TaskState.FINISHED
        if self.paused:
            return TaskState.PAUSED
        return TaskState.RUNNING

    def pause(self, now=None):
        now = self._now(now)
        # out of time counts as finished even before tick finalizes it
        if self.paused or self.state(now) is TaskState.FINISHED:
            return False
        self.accumulated_elapsed = self.elapsed(now)
        self.running_since = None
        self.paused = True
        return True

    def resume(self, now=None):
        if self.finished or not self.paused:
            return False
        self.running_since = self._now(now)
        self.paused = False
        return True

    def toggle(self, now=None):
        if self.paused:
            return self.resume(now)
        return self.pause(now)

    def finish(self, when=None):
        """Mark finished; True only for the call that actually finalized"""
        if self.finished:
            return False
        self.finished_at = when or datetime.now()
        return True

    def __repr__(self):
        return (f"CountdownTask(id={self.id!r}, label={self.label!r}, "
                f"target={self.target_duration}s, paused={self.paused}, "
                f"finished_at={self.finished_at!r})")

# ===================== HISTORY / VIEWS =====================

@dataclass
class HistoryEntry:
    id: int
    label: str
    input_text: str
    target_duration: int
    created_at: datetime
    finished_at: datetime = field(default=None, compare=False)

    @classmethod
    def from_task(cls, task):
        return cls(
            id=task.id,
            label=task.label,
            input_text=task.input_text,
            target_duration=task.target_duration,
            created_at=task.created_at,
            finished_at=task.finished_at,
        )


@dataclass
class TaskView:
    """What a frame needs to draw one active task"""
    id: int
    label: str
    remaining: str
    fraction: float
    state: TaskState

# ===================== REGISTRY =====================

class TaskRegistry:
    """Owns active countdowns and the finished history.

    Commands naming an id that no longer exists are ignored: they come
    from widgets that may still show a task removed a frame ago.
    """

    def __init__(self, history=None, next_id=None, clock=time.monotonic,
                 wall_clock=datetime.now):
        self.clock = clock
        self.wall_clock = wall_clock
        self._active = {}
        self.history = list(history or [])
        # a saved next_id also covers ids that never reached history
        self.next_id = max(
            max((entry.id for entry in self.history), default=0) + 1,
            next_id or 1,
        )

    def _now(self, now):
        return self.clock() if now is None else now

    def add(self, label, duration, input_text=None, now=None):
        if duration <= 0:
            raise InvalidDuration("Duration must be greater than 0 seconds")

        task_id = self.next_id
        self.next_id += 1

        label = (label or "").strip() or f"Timer {task_id}"
        task = CountdownTask(
            task_id, label, duration,
            input_text=input_text,
            created_at=self.wall_clock(),
            now=self._now(now),
            clock=self.clock,
        )
        self._active[task_id] = task
        logger.debug("Added %r", task)
        return task_id

    def add_from_text(self, label, text, now=None):
        duration = parse_duration(text)
        return self.add(label, duration, input_text=text.strip(), now=now)

    def get(self, task_id):
        return self._active.get(task_id)

    def active_tasks(self):
        return list(self._active.values())

    def __len__(self):
        return len(self._active)

    def __contains__(self, task_id):
        return task_id in self._active

    def tick(self, now=None):
        """Finalize every task that ran out; returns their ids once"""
        now = self._now(now)
        finished = []
        for task in list(self._active.values()):
            if not task.is_due(now):
                continue
            if task.finish(self.wall_clock()):
                self.history.append(HistoryEntry.from_task(task))
                finished.append(task.id)
            del self._active[task.id]

        for task_id in finished:
            logger.info("Countdown %d finished", task_id)
        return finished

    def pause(self, task_id, now=None):
        task = self._active.get(task_id)
        if task:
            task.pause(self._now(now))

    def resume(self, task_id, now=None):
        task = self._active.get(task_id)
        if task:
            task.resume(self._now(now))

    def toggle(self, task_id, now=None):
        task = self._active.get(task_id)
        if task:
            task.toggle(self._now(now))

    def remove(self, task_id):
        self._active.pop(task_id, None)

    def find_history(self, task_id):
        for entry in self.history:
            if entry.id == task_id:
                return entry
        return None

    def delete_from_history(self, task_id):
        self.history = [e for e in self.history if e.id != task_id]

    def clear_history(self):
        self.history = []

    def views(self, now=None):
        now = self._now(now)
        return [
            TaskView(
                id=task.id,
                label=task.label,
                remaining=format_hms(task.remaining_seconds(now)),
                fraction=task.fraction(now),
                state=task.state(now),
            )
            for task in self._active.values()
        ]

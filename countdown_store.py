"""
Clock Countdown - persisted state
History of finished countdowns plus display settings, kept as JSON.
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path

from countdown_logic import HistoryEntry

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#00FF00"
CONFIG_ENV = "CLOCK_COUNTDOWN_CONFIG"
LOG_LEVEL_ENV = "CLOCK_COUNTDOWN_LOG_LEVEL"

# ===================== CONFIG MANAGER =====================

class ConfigManager:
    """Loads and saves the state file.

    Every save rewrites the whole file. Read or write failures are logged
    and otherwise ignored, so the app keeps running on in-memory state.
    """

    def __init__(self, config_file=None):
        if config_file is None:
            config_file = os.environ.get(CONFIG_ENV) or (
                Path.home() / ".clockcountdown" / "countdown_state.json")
        self.config_file = Path(config_file)
        self.data = self.load()

    @staticmethod
    def defaults():
        return {
            "color": DEFAULT_COLOR,
            "sound": "Beep",
            "time_format_24h": True,
            "history": [],
        }

    def load(self):
        """Read the file and merge it over the defaults"""
        default = self.defaults()

        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    default.update(loaded)
                else:
                    logger.warning("Ignoring %s: top level is not an object", self.config_file)
            except (OSError, ValueError) as e:
                logger.warning("Load config error: %s", e)

        return default

    def save(self):
        """Write everything back, via a temp file so a crash can't truncate it"""
        tmp_path = self.config_file.with_suffix(".tmp")
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(self.data, f, indent=2, ensure_ascii=False)
            tmp_path.replace(self.config_file)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Save config error: %s", e)
            return False

    def get(self, key, default=None):
        return self.data.get(key, default)

    def set(self, key, value):
        self.data[key] = value
        self.save()

    # ---- history ----

    def load_history(self):
        entries = []
        raw = self.data.get("history")
        if not isinstance(raw, list):
            return entries

        for item in raw:
            entry = entry_from_dict(item)
            if entry is None:
                logger.warning("Skipping malformed history entry: %r", item)
                continue
            entries.append(entry)
        return entries

    def save_history(self, entries, next_id=None):
        self.data["history"] = [entry_to_dict(e) for e in entries]
        if next_id is not None:
            self.data["next_id"] = next_id
        return self.save()

    def load_next_id(self):
        """Id counter from the last session, or None"""
        value = self.data.get("next_id")
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            return None
        return value


def entry_to_dict(entry):
    return {
        "id": entry.id,
        "label": entry.label,
        "input_text": entry.input_text,
        "target_seconds": int(entry.target_duration),
        "created_at": entry.created_at.isoformat(),
    }


def entry_from_dict(item):
    if not isinstance(item, dict):
        return None
    try:
        task_id = item["id"]
        label = item["label"]
        seconds = item["target_seconds"]
        created_at = datetime.fromisoformat(item["created_at"])
    except (KeyError, TypeError, ValueError):
        return None

    if isinstance(task_id, bool) or not isinstance(task_id, int):
        return None
    if isinstance(seconds, bool) or not isinstance(seconds, int) or seconds < 0:
        return None
    if not isinstance(label, str):
        return None

    input_text = item.get("input_text")
    if not isinstance(input_text, str):
        input_text = str(seconds)

    return HistoryEntry(
        id=task_id,
        label=label,
        input_text=input_text,
        target_duration=seconds,
        created_at=created_at,
    )


def resolve_log_level(name=None):
    """Level name (or CLOCK_COUNTDOWN_LOG_LEVEL) -> logging level, WARNING if unknown"""
    if name is None:
        name = os.environ.get(LOG_LEVEL_ENV, "WARNING")
    level = getattr(logging, str(name).strip().upper(), None)
    if not isinstance(level, int):
        return logging.WARNING
    return level

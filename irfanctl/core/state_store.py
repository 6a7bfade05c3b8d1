"""Sinks that keep the last settled fan intent across restarts."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

import yaml

from irfanctl.core.errors import ConfigError
from irfanctl.core.model import IntentState
from irfanctl.core.settings import UniqueKeyLoader

LOGGER = logging.getLogger(__name__)


class StateSink(Protocol):
    def save(self, state: IntentState) -> None:
        """Store a snapshot of the settled intent."""

    def load(self) -> IntentState | None:
        """Return the last stored snapshot, if any."""


class MemoryStateStore:
    def __init__(self, state: IntentState | None = None) -> None:
        self.state = state
        self.saves = 0

    def save(self, state: IntentState) -> None:
        self.state = state
        self.saves += 1

    def load(self) -> IntentState | None:
        return self.state


class YamlStateStore:
    def __init__(self, path: Path) -> None:
        self.path = path

    def save(self, state: IntentState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(yaml.safe_dump(state.as_dict(), sort_keys=True), encoding="utf-8")
        tmp.replace(self.path)

    def load(self) -> IntentState | None:
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            LOGGER.warning("Could not read state file %s: %s", self.path, exc)
            return None

        try:
            doc = yaml.load(content, Loader=UniqueKeyLoader)
        except (yaml.YAMLError, ConfigError) as exc:
            LOGGER.warning("Ignoring malformed state file %s: %s", self.path, exc)
            return None

        if not isinstance(doc, dict):
            LOGGER.warning("Ignoring state file %s: expected a mapping", self.path)
            return None
        on = _parse_bool(doc.get("on", False))
        speed = doc.get("speed", 0)
        if on is None or isinstance(speed, bool) or not isinstance(speed, int) or not 0 <= speed <= 100:
            LOGGER.warning("Ignoring state file %s: invalid values", self.path)
            return None
        return IntentState(on=on, speed=speed)


def _parse_bool(value: object) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return None

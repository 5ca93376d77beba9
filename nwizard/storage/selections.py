"""Durable record of selector and multiple-selection choices.

Keys are the lowercased variable names declared by menu items. A selector
stores a string, a multiple selection stores a list of strings. The record is
always rewritten wholesale from the live navigator state.
"""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from nwizard.config.settings import ENV_EXPORT_PREFIX
from nwizard.exceptions import PersistenceError
from nwizard.logging import LoggerFactory
from nwizard.menu.model import MultipleSelectionItem, SelectorItem
from nwizard.menu.navigator import MenuNavigator

log = LoggerFactory.for_storage()

SelectionValue = Union[str, List[str]]


@dataclass
class PersistedSelections:
    values: Dict[str, SelectionValue] = field(default_factory=dict)

    def get_single(self, key: str) -> Optional[str]:
        value = self.values.get(key.lower())
        return value if isinstance(value, str) else None

    def get_multiple(self, key: str) -> Optional[List[str]]:
        value = self.values.get(key.lower())
        return list(value) if isinstance(value, list) else None

    def set_single(self, key: str, value: str) -> None:
        self.values[key.lower()] = value

    def set_multiple(self, key: str, values: List[str]) -> None:
        self.values[key.lower()] = list(values)

    @classmethod
    def from_navigator(cls, navigator: MenuNavigator) -> PersistedSelections:
        """Snapshot every variable-bearing item, falling back to its default."""
        selections = cls()
        for item in navigator.config.variable_items():
            if isinstance(item, SelectorItem):
                value = navigator.selector_value(item)
                if value is not None:
                    selections.set_single(item.variable, value)
            elif isinstance(item, MultipleSelectionItem):
                selections.set_multiple(item.variable, navigator.multiple_selection_values(item))
        return selections

    def apply_to(self, navigator: MenuNavigator) -> int:
        """Bind stored values onto matching items; returns how many were applied."""
        applied = 0
        for item in navigator.config.variable_items():
            key = item.variable.lower()
            if key not in self.values:
                continue
            if isinstance(item, SelectorItem):
                value = self.get_single(key)
                if value is not None and navigator.set_selector_value(item.id, value):
                    applied += 1
            elif isinstance(item, MultipleSelectionItem):
                values = self.get_multiple(key)
                if values is not None and navigator.set_multiple_selection_values(item.id, values):
                    applied += 1
        return applied

    def as_environment(self, prefix: str = ENV_EXPORT_PREFIX) -> Dict[str, str]:
        """Flatten to ``PREFIX_KEY`` variables; lists are space-joined."""
        env = {}
        for key, value in sorted(self.values.items()):
            if isinstance(value, list):
                value = " ".join(value)
            env[f"{prefix}{key.upper()}"] = value
        return env


def _coerce(data: object) -> Dict[str, SelectionValue]:
    values: Dict[str, SelectionValue] = {}
    if not isinstance(data, dict):
        return values
    for key, value in data.items():
        if isinstance(value, str):
            values[str(key).lower()] = value
        elif isinstance(value, list) and all(isinstance(entry, str) for entry in value):
            values[str(key).lower()] = list(value)
    return values


class SelectionStore:
    """JSON file holding one PersistedSelections record."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> PersistedSelections:
        """Read the record; a missing or unreadable file yields an empty one."""
        if not self.path.exists():
            return PersistedSelections()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as error:
            log.warning(f"Ignoring unreadable selections file {self.path}: {error}")
            return PersistedSelections()
        return PersistedSelections(values=_coerce(data))

    def save(self, selections: PersistedSelections) -> None:
        """Replace the file atomically. Does not log; it runs inside signal handlers.

        Each call writes its own temporary file, so a save interrupted by a
        signal handler that saves again cannot lose either write.

        Raises:
            PersistenceError: the file could not be written.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
        except OSError as error:
            raise PersistenceError(self.path, error) from error
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(json.dumps(selections.values, indent=2, sort_keys=True) + "\n")
            tmp_path.replace(self.path)
        except OSError as error:
            with contextlib.suppress(OSError):
                tmp_path.unlink()
            raise PersistenceError(self.path, error) from error

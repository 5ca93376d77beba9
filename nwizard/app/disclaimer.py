"""Disclaimer shown before an action is allowed to run."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List


@dataclass
class Disclaimer:
    item_name: str
    path: Path
    lines: List[str]
    scroll_offset: int = 0

    def scroll_up(self) -> None:
        if self.scroll_offset > 0:
            self.scroll_offset -= 1

    def scroll_down(self, height: int) -> None:
        max_scroll = max(len(self.lines) - max(height, 1), 0)
        if self.scroll_offset < max_scroll:
            self.scroll_offset += 1


def load_disclaimer(path: str, item_name: str) -> Disclaimer:
    """Read the disclaimer text. Relative paths resolve against the working directory.

    Raises:
        OSError: the file cannot be read.
    """
    resolved = Path(path).expanduser()
    text = resolved.read_text(encoding="utf-8", errors="replace")
    return Disclaimer(item_name=item_name, path=resolved, lines=text.splitlines())

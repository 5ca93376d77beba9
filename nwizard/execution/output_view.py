"""View model for the output of the command being watched."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional


@dataclass
class StatusMessage:
    message: str
    timestamp: datetime


@dataclass
class OutputView:
    """Scroll position, status-line tracking and the frozen final result.

    ``update`` is fed the runner's full stdout snapshot every tick.
    Lines completed since the previous snapshot are scanned for status lines;
    the unfinished last line is rescanned since a read may split a character.
    """

    command: str
    item_name: str
    status_prefix: Optional[str] = None
    show_output: bool = True
    clock: Callable[[], datetime] = datetime.now
    output: str = ""
    error_output: str = ""
    scroll_offset: int = 0
    follow: bool = True
    current_status: Optional[StatusMessage] = None
    status_history: List[StatusMessage] = field(default_factory=list)
    finished: bool = False
    exit_code: Optional[int] = None
    _scanned: int = field(default=0, init=False, repr=False)

    @property
    def success(self) -> bool:
        return self.finished and self.exit_code == 0

    @property
    def lines(self) -> List[str]:
        """Stdout lines; stderr is appended once the command has finished."""
        lines = self.output.splitlines() if self.output else []
        if self.finished and self.error_output:
            lines.extend(["", "stderr:"])
            lines.extend(self.error_output.splitlines())
        return lines

    def update(self, output: str) -> None:
        if self.finished:
            return
        previous = self._scanned
        self.output = output
        self._scanned = len(output)
        if not self.status_prefix or len(output) <= previous:
            return
        # Rescan the last unfinished line: it was decoded from a partial read.
        start = output.rfind("\n", 0, previous) + 1
        complete, newline, _ = output[start:].rpartition("\n")
        if not newline:
            return
        for line in complete.split("\n"):
            self._consider_status_line(line)

    def _consider_status_line(self, line: str) -> None:
        if not line.startswith(self.status_prefix):
            return
        message = line[len(self.status_prefix):].strip()
        if not message:
            return
        if self.current_status is not None:
            self.status_history.append(self.current_status)
        self.current_status = StatusMessage(message=message, timestamp=self.clock())

    def finish(self, exit_code: int, output: str, error_output: str) -> None:
        """Freeze the view with the final output and exit code."""
        if self.finished:
            return
        self.update(output)
        if self.status_prefix and not self.output.endswith("\n"):
            self._consider_status_line(self.output[self.output.rfind("\n") + 1:])
        self.error_output = error_output
        self.exit_code = exit_code
        self.finished = True

    # -- scrolling ------------------------------------------------------------

    def max_scroll(self, height: int) -> int:
        return max(len(self.lines) - max(height, 1), 0)

    def visible_lines(self, height: int) -> List[str]:
        if self.follow:
            self.scroll_offset = self.max_scroll(height)
        else:
            self.scroll_offset = min(self.scroll_offset, self.max_scroll(height))
        return self.lines[self.scroll_offset:self.scroll_offset + max(height, 0)]

    def scroll_up(self) -> None:
        self.follow = False
        if self.scroll_offset > 0:
            self.scroll_offset -= 1

    def scroll_down(self, height: int) -> None:
        self.scroll_offset = min(self.scroll_offset + 1, self.max_scroll(height))
        self.follow = self.scroll_offset >= self.max_scroll(height)

    def page_up(self, height: int) -> None:
        self.follow = False
        self.scroll_offset = max(self.scroll_offset - max(height, 1), 0)

    def page_down(self, height: int) -> None:
        self.scroll_offset = min(self.scroll_offset + max(height, 1), self.max_scroll(height))
        self.follow = self.scroll_offset >= self.max_scroll(height)

    def scroll_to_top(self) -> None:
        self.follow = False
        self.scroll_offset = 0

    def scroll_to_bottom_and_follow(self) -> None:
        self.follow = True

    def toggle_output_visibility(self) -> None:
        self.show_output = not self.show_output

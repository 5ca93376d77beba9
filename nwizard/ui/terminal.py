"""Curses front end: turns key codes into ``Key`` events and draws each mode.

All state lives in the orchestrator; this module only reads it.
"""

from __future__ import annotations

import contextlib
import curses
import os
import sys
from typing import List, Optional, Tuple

from nwizard.app.orchestrator import AppMode, Key, SessionOrchestrator
from nwizard.menu.model import (
    MenuItem,
    MultipleSelectionItem,
    SelectorItem,
    SubmenuItem,
)
from nwizard.menu.navigator import Mode

CTRL_C = 3
ESCAPE = 27
SPACE = 32
# Rows taken by the header and footer around the scrolling area.
CHROME_ROWS = 5

KEY_MAP = {
    curses.KEY_UP: Key.UP,
    curses.KEY_DOWN: Key.DOWN,
    curses.KEY_LEFT: Key.LEFT,
    curses.KEY_RIGHT: Key.RIGHT,
    curses.KEY_ENTER: Key.ENTER,
    curses.KEY_PPAGE: Key.PAGE_UP,
    curses.KEY_NPAGE: Key.PAGE_DOWN,
    curses.KEY_HOME: Key.TOP,
    curses.KEY_END: Key.BOTTOM,
    10: Key.ENTER,
    13: Key.ENTER,
    ESCAPE: Key.ESCAPE,
    SPACE: Key.SPACE,
    CTRL_C: Key.INTERRUPT,
    ord("k"): Key.UP,
    ord("j"): Key.DOWN,
    ord("q"): Key.QUIT,
    ord("c"): Key.KILL,
    ord("s"): Key.TOGGLE_OUTPUT,
    ord("g"): Key.TOP,
    ord("G"): Key.BOTTOM,
    ord("y"): Key.YES,
    ord("Y"): Key.YES,
    ord("n"): Key.NO,
    ord("N"): Key.NO,
}

MENU_HINTS = "Up/Down move  Enter select  Left/Esc back  q quit"
SELECTOR_HINTS = "Up/Down move  Enter choose  Esc cancel"
MULTI_HINTS = "Up/Down move  Space toggle  Enter/Esc close"
OUTPUT_HINTS = "Up/Down/PgUp/PgDn scroll  g/G top/bottom  s output  c kill  Esc back  q quit"


def translate_key(code: int) -> Optional[Key]:
    return KEY_MAP.get(code)


def check_terminal() -> Tuple[bool, Optional[str]]:
    """Check if the environment can host a curses session."""
    if not sys.stdin.isatty():
        return False, "Not running in a TTY"
    if not os.environ.get("TERM"):
        return False, "TERM environment variable not set"
    try:
        curses.setupterm()
    except curses.error as e:
        return False, f"curses.setupterm() failed: {e}"
    return True, None


def restore_terminal() -> None:
    """Leave curses mode; harmless when curses was never started."""
    with contextlib.suppress(curses.error):
        curses.endwin()


def item_label(orchestrator: SessionOrchestrator, item: MenuItem) -> str:
    navigator = orchestrator.navigator
    if isinstance(item, SubmenuItem):
        return f"{item.name} >"
    if isinstance(item, SelectorItem):
        return f"{item.name}: [{navigator.selector_value(item) or '-'}]"
    if isinstance(item, MultipleSelectionItem):
        chosen = navigator.multiple_selection_values(item)
        return f"{item.name}: [{', '.join(chosen) if chosen else 'none'}]"
    return item.name


class TerminalUI:
    """Draws one frame per call to ``render``."""

    def __init__(self, stdscr) -> None:
        self.stdscr = stdscr
        with contextlib.suppress(curses.error):
            curses.curs_set(0)
        self.stdscr.keypad(True)
        self.stdscr.nodelay(True)
        # Raw mode delivers Ctrl-C as a key instead of SIGINT.
        curses.raw()
        curses.noecho()

    # -- input ----------------------------------------------------------------

    def read_keys(self) -> List[Key]:
        keys = []
        while True:
            try:
                code = self.stdscr.getch()
            except curses.error:
                break
            if code == -1:
                break
            key = translate_key(code)
            if key is not None:
                keys.append(key)
        return keys

    # -- drawing --------------------------------------------------------------

    def _put(self, row: int, col: int, text: str, attr: int = curses.A_NORMAL) -> None:
        height, width = self.stdscr.getmaxyx()
        if row < 0 or row >= height or col >= width:
            return
        try:
            self.stdscr.addnstr(row, col, text, max(width - col - 1, 0), attr)
        except curses.error:
            pass

    def render(self, orchestrator: SessionOrchestrator) -> None:
        height, _ = self.stdscr.getmaxyx()
        orchestrator.view_height = max(height - CHROME_ROWS, 1)
        self.stdscr.erase()
        if orchestrator.mode is AppMode.VIEWING_OUTPUT:
            self._render_output(orchestrator)
        elif orchestrator.mode is AppMode.VIEWING_DISCLAIMER:
            self._render_disclaimer(orchestrator)
        elif orchestrator.mode is AppMode.EXIT_CONFIRMATION:
            self._render_exit_confirmation(orchestrator)
        else:
            self._render_menu(orchestrator)
        self.stdscr.refresh()

    def _render_footer(self, orchestrator: SessionOrchestrator, hints: str) -> None:
        height, _ = self.stdscr.getmaxyx()
        notice = orchestrator.context.last_notice
        if notice:
            self._put(height - 2, 0, notice, curses.A_BOLD)
        self._put(height - 1, 0, hints, curses.A_DIM)

    def _render_menu(self, orchestrator: SessionOrchestrator) -> None:
        navigator = orchestrator.navigator
        config = navigator.config
        row = 0
        if not navigator.menu_stack:
            for line in config.banner:
                self._put(row, 0, line)
                row += 1
            if config.title:
                self._put(row, 0, config.title, curses.A_BOLD)
                row += 1
        title, description = navigator.current_menu()
        self._put(row, 0, title, curses.A_BOLD | curses.A_UNDERLINE)
        row += 1
        if description:
            self._put(row, 0, description, curses.A_DIM)
            row += 1
        row += 1

        selected = navigator.selected_item()
        for index, item in enumerate(navigator.current_items):
            marker = ">" if index == navigator.selected_index else " "
            attr = curses.A_REVERSE if index == navigator.selected_index else curses.A_NORMAL
            self._put(row, 0, f"{marker} {item_label(orchestrator, item)}", attr)
            row += 1
            if item is selected and navigator.mode is not Mode.BROWSING:
                row = self._render_options(orchestrator, item, row)
        if not navigator.current_items:
            self._put(row, 2, "(empty)", curses.A_DIM)
            row += 1

        if selected is not None and selected.description:
            self._put(row + 1, 0, selected.description, curses.A_DIM)

        if navigator.mode is Mode.SELECTOR_OPEN:
            hints = SELECTOR_HINTS
        elif navigator.mode is Mode.MULTI_SELECT_OPEN:
            hints = MULTI_HINTS
        else:
            hints = MENU_HINTS
        self._render_footer(orchestrator, hints)

    def _render_options(self, orchestrator: SessionOrchestrator, item: MenuItem, row: int) -> int:
        navigator = orchestrator.navigator
        for index, option in enumerate(item.options):
            if isinstance(item, SelectorItem):
                checked = option.value == navigator.selector_value(item)
                box = "(*)" if checked else "( )"
            else:
                box = "[x]" if navigator.is_option_selected(item, option.value) else "[ ]"
            text = f"    {box} {option.value}"
            if option.comment:
                text += f"  - {option.comment}"
            attr = curses.A_REVERSE if index == navigator.option_index else curses.A_NORMAL
            self._put(row, 0, text, attr)
            row += 1
        return row

    def _render_output(self, orchestrator: SessionOrchestrator) -> None:
        view = orchestrator.output_view
        if view is None:
            return
        height, _ = self.stdscr.getmaxyx()
        self._put(0, 0, view.item_name, curses.A_BOLD)
        self._put(1, 0, f"$ {view.command}", curses.A_DIM)
        if view.current_status is not None:
            self._put(2, 0, view.current_status.message, curses.A_BOLD)

        body_height = orchestrator.view_height
        if view.show_output:
            lines = view.visible_lines(body_height)
        else:
            history = view.status_history[-body_height:]
            lines = [f"{entry.timestamp:%H:%M:%S} {entry.message}" for entry in history]
        for offset, line in enumerate(lines):
            self._put(3 + offset, 0, line)

        if view.finished:
            state = "Completed" if view.success else f"Failed (exit {view.exit_code})"
        else:
            state = "Running..."
        self._put(height - 2, 0, state, curses.A_BOLD)
        self._put(height - 1, 0, OUTPUT_HINTS, curses.A_DIM)

    def _render_disclaimer(self, orchestrator: SessionOrchestrator) -> None:
        disclaimer = orchestrator.disclaimer
        if disclaimer is None:
            return
        height, _ = self.stdscr.getmaxyx()
        self._put(0, 0, f"Disclaimer: {disclaimer.item_name}", curses.A_BOLD)
        start = disclaimer.scroll_offset
        for offset, line in enumerate(disclaimer.lines[start:start + orchestrator.view_height]):
            self._put(2 + offset, 0, line)
        self._put(height - 1, 0, "Proceed? y/n  Up/Down scroll", curses.A_BOLD)

    def _render_exit_confirmation(self, orchestrator: SessionOrchestrator) -> None:
        self._put(0, 0, "A command is still running.", curses.A_BOLD)
        command = orchestrator.runner.command
        if command:
            self._put(1, 0, f"$ {command}", curses.A_DIM)
        self._put(3, 0, "Press q again to kill it and quit, Esc to go back.")


def run_curses(orchestrator: SessionOrchestrator) -> None:
    """Run the orchestrator loop inside ``curses.wrapper``."""
    os.environ.setdefault("ESCDELAY", "25")

    def _run(stdscr) -> None:
        ui = TerminalUI(stdscr)
        orchestrator.run(ui.read_keys, ui.render)

    curses.wrapper(_run)

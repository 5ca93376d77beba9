"""Event loop gluing the navigator, the process runner and the terminal.

The loop is single-threaded: keys are handled, the runner is polled, the
screen is redrawn, then the loop sleeps for one tick. Only the sudo renewal
thread runs concurrently, and it only talks to the loop through the
supervisor's shutdown flag.
"""

from __future__ import annotations

import signal
import time
from enum import Enum
from typing import Callable, Iterable, Optional

from nwizard.app.context import SessionContext
from nwizard.app.disclaimer import Disclaimer, load_disclaimer
from nwizard.config.settings import TICK_INTERVAL
from nwizard.exceptions import CommandAlreadyRunningError, PersistenceError, SpawnError
from nwizard.execution.output_view import OutputView
from nwizard.logging import LoggerFactory
from nwizard.menu.model import ActionItem
from nwizard.menu.navigator import Mode
from nwizard.storage.selections import PersistedSelections

log = LoggerFactory.for_session()

DEFAULT_VIEW_HEIGHT = 20


class AppMode(Enum):
    MENU = "menu"
    VIEWING_OUTPUT = "viewing_output"
    EXIT_CONFIRMATION = "exit_confirmation"
    VIEWING_DISCLAIMER = "viewing_disclaimer"


class Key(Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    ENTER = "enter"
    ESCAPE = "escape"
    SPACE = "space"
    PAGE_UP = "page_up"
    PAGE_DOWN = "page_down"
    TOP = "top"
    BOTTOM = "bottom"
    QUIT = "quit"
    KILL = "kill"
    TOGGLE_OUTPUT = "toggle_output"
    YES = "yes"
    NO = "no"
    INTERRUPT = "interrupt"


class SessionOrchestrator:
    def __init__(
        self,
        context: SessionContext,
        *,
        tick_interval: float = TICK_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.context = context
        self.mode = AppMode.MENU
        self.output_view: Optional[OutputView] = None
        self.disclaimer: Optional[Disclaimer] = None
        self.view_height = DEFAULT_VIEW_HEIGHT
        self._tick_interval = tick_interval
        self._sleep = sleep
        self._pending_action: Optional[ActionItem] = None
        self._pending_command: Optional[str] = None
        self._mode_before_confirmation = AppMode.MENU
        self._watching = False
        self._quit_requested = False
        self._shutdown_done = False

    @property
    def navigator(self):
        return self.context.navigator

    @property
    def runner(self):
        return self.context.runner

    def should_exit(self) -> bool:
        return self._quit_requested or self.context.supervisor.should_shutdown()

    def request_quit(self) -> None:
        self._quit_requested = True

    # -- main loop ------------------------------------------------------------

    def run(
        self,
        read_keys: Callable[[], Iterable[Key]],
        render: Callable[[SessionOrchestrator], None],
    ) -> None:
        """Drive the loop until quit, Ctrl-C or a shutdown request."""
        log.info("Session loop started")
        try:
            while not self.should_exit():
                for key in read_keys():
                    self.handle_key(key)
                    if self.should_exit():
                        break
                if self.should_exit():
                    break
                self.tick()
                render(self)
                self._sleep(self._tick_interval)
        finally:
            self.shutdown()

    def tick(self) -> None:
        """Poll the runner and freeze the output view once the command ends."""
        if not self._watching:
            return
        self.runner.poll_output()
        if self.output_view is not None:
            self.output_view.update(self.runner.get_output())
        if not self.runner.is_running():
            self._finish_command()

    def _finish_command(self) -> None:
        if not self._watching:
            return
        self._watching = False
        result = self.runner.get_result()
        view = self.output_view
        if view is not None:
            view.finish(result.exit_code, result.output, result.error_output)
        transcript = self.context.transcript
        if transcript is not None and view is not None:
            transcript.log_command(
                view.command, view.item_name, result.output, result.error_output, result.exit_code
            )
        if not result.success:
            self.context.add_notice(f"Command failed with exit code {result.exit_code}")

    # -- key handling ---------------------------------------------------------

    def handle_key(self, key: Key) -> None:
        if key is Key.INTERRUPT:
            self._kill_running("interrupt key")
            self.request_quit()
            return
        if self.mode is AppMode.MENU:
            self._handle_menu_key(key)
        elif self.mode is AppMode.VIEWING_OUTPUT:
            self._handle_output_key(key)
        elif self.mode is AppMode.EXIT_CONFIRMATION:
            self._handle_exit_confirmation_key(key)
        elif self.mode is AppMode.VIEWING_DISCLAIMER:
            self._handle_disclaimer_key(key)

    def _handle_menu_key(self, key: Key) -> None:
        navigator = self.navigator
        if navigator.mode is Mode.SELECTOR_OPEN:
            if key is Key.UP:
                navigator.navigate_selector_up()
            elif key is Key.DOWN:
                navigator.navigate_selector_down()
            elif key is Key.ENTER:
                if navigator.select_selector_option() is not None:
                    self.persist_selections()
            elif key is Key.ESCAPE:
                navigator.exit_selector_mode()
            return
        if navigator.mode is Mode.MULTI_SELECT_OPEN:
            if key is Key.UP:
                navigator.navigate_multiple_selection_up()
            elif key is Key.DOWN:
                navigator.navigate_multiple_selection_down()
            elif key is Key.SPACE:
                navigator.toggle_multiple_selection_option()
            elif key in (Key.ENTER, Key.ESCAPE):
                # Toggles apply immediately, so closing either way keeps them.
                if navigator.exit_multiple_selection_mode() is not None:
                    self.persist_selections()
            return

        if key is Key.UP:
            navigator.navigate_up()
        elif key is Key.DOWN:
            navigator.navigate_down()
        elif key in (Key.ENTER, Key.RIGHT):
            self._activate_selected()
        elif key is Key.LEFT:
            navigator.go_back()
        elif key is Key.ESCAPE:
            if not navigator.go_back():
                self.request_quit()
        elif key is Key.QUIT:
            self._quit_or_confirm()

    def _activate_selected(self) -> None:
        item = self.navigator.selected_item()
        command = self.navigator.activate()
        if command is None or not isinstance(item, ActionItem):
            return
        if item.disclaimer:
            try:
                self.disclaimer = load_disclaimer(item.disclaimer, item.name)
            except OSError as error:
                log.error(f"Cannot read disclaimer {item.disclaimer}: {error}")
                self.context.add_notice(f"Cannot read disclaimer: {item.disclaimer}")
                return
            self._pending_action = item
            self._pending_command = command
            self.mode = AppMode.VIEWING_DISCLAIMER
            return
        self.start_action(item, command)

    def start_action(self, item: ActionItem, command: str) -> bool:
        """Spawn ``command`` for ``item`` and switch to the output view."""
        try:
            self.runner.start(command)
        except CommandAlreadyRunningError:
            log.warning(f"Ignoring {item.id}: a command is already running")
            self.context.add_notice("A command is already running")
            return False
        except SpawnError as error:
            self.context.add_notice(str(error))
            return False
        self.output_view = OutputView(
            command=command,
            item_name=item.name,
            status_prefix=item.status_prefix,
            show_output=item.show_output,
        )
        self._watching = True
        self.mode = AppMode.VIEWING_OUTPUT
        return True

    def _handle_output_key(self, key: Key) -> None:
        view = self.output_view
        height = self.view_height
        if key is Key.QUIT:
            self._quit_or_confirm()
        elif key is Key.ESCAPE:
            self._kill_running("left output view")
            self.output_view = None
            self.mode = AppMode.MENU
        elif key is Key.KILL:
            self._kill_running("kill key")
        elif view is None:
            return
        elif key is Key.UP:
            view.scroll_up()
        elif key is Key.DOWN:
            view.scroll_down(height)
        elif key is Key.PAGE_UP:
            view.page_up(height)
        elif key is Key.PAGE_DOWN:
            view.page_down(height)
        elif key is Key.TOP:
            view.scroll_to_top()
        elif key is Key.BOTTOM:
            view.scroll_to_bottom_and_follow()
        elif key is Key.TOGGLE_OUTPUT:
            view.toggle_output_visibility()

    def _handle_exit_confirmation_key(self, key: Key) -> None:
        if key is Key.QUIT:
            self._kill_running("forced quit")
            self.request_quit()
        elif key is Key.ESCAPE:
            self.mode = self._mode_before_confirmation

    def _handle_disclaimer_key(self, key: Key) -> None:
        if key is Key.YES:
            item, command = self._pending_action, self._pending_command
            self._clear_disclaimer()
            self.mode = AppMode.MENU
            if item is not None and command is not None:
                self.start_action(item, command)
        elif key in (Key.NO, Key.ESCAPE):
            self._clear_disclaimer()
            self.mode = AppMode.MENU
        elif self.disclaimer is not None and key is Key.UP:
            self.disclaimer.scroll_up()
        elif self.disclaimer is not None and key is Key.DOWN:
            self.disclaimer.scroll_down(self.view_height)

    def _clear_disclaimer(self) -> None:
        self.disclaimer = None
        self._pending_action = None
        self._pending_command = None

    def _quit_or_confirm(self) -> None:
        if self.runner.is_running():
            self._mode_before_confirmation = self.mode
            self.mode = AppMode.EXIT_CONFIRMATION
        else:
            self.request_quit()

    def _kill_running(self, reason: str) -> None:
        if not self.runner.is_running():
            return
        command = self.runner.command
        self.runner.kill()
        log.warning(f"Killed running command ({reason}): {command}")
        self._finish_command()

    # -- persistence and shutdown ---------------------------------------------

    def _write_selections(self) -> Optional[PersistenceError]:
        selections = PersistedSelections.from_navigator(self.navigator)
        try:
            self.context.store.save(selections)
        except PersistenceError as error:
            return error
        return None

    def persist_selections(self) -> bool:
        """Snapshot the navigator into the store; failures are reported, not raised."""
        error = self._write_selections()
        if error is not None:
            log.error(str(error))
            self.context.add_notice("Failed to save selections")
            return False
        log.debug(f"Selections saved to {self.context.store.path}")
        return True

    def shutdown(self) -> None:
        """Persist, kill the child, stop renewal. Safe to call more than once."""
        if self._shutdown_done:
            return
        self._shutdown_done = True
        if self.context.exit_signal is not None:
            log.info(f"Shutting down after {self.signal_name(self.context.exit_signal)}")
        self.persist_selections()
        self._kill_running("shutdown")
        # A signal handler may already have killed the child without recording it.
        self._finish_command()
        self.context.supervisor.request_shutdown()
        self.runner.cleanup()
        log.info("Session loop stopped")

    def handle_signal(self, signum: int) -> None:
        """Run from a SIGINT/SIGTERM handler on the main thread.

        Never logs: the interrupted frame may be inside a log call already.
        """
        self.context.exit_signal = signum
        error = self._write_selections()
        if error is not None:
            self.context.add_notice("Failed to save selections")
        self.runner.kill()
        self.context.supervisor.request_shutdown()
        if self.context.restore_terminal is not None:
            self.context.restore_terminal()

    @staticmethod
    def signal_name(signum: int) -> str:
        try:
            return signal.Signals(signum).name
        except ValueError:
            return str(signum)

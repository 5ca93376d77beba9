from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from nwizard.logging import LoggerFactory
from nwizard.menu.model import (
    ActionItem,
    MenuConfig,
    MenuItem,
    MultipleSelectionItem,
    SelectorItem,
    SubmenuItem,
)

log = LoggerFactory.for_menu()


class Mode(Enum):
    BROWSING = "browsing"
    SELECTOR_OPEN = "selector_open"
    MULTI_SELECT_OPEN = "multi_select_open"


def substitute_variables(command: str, items: Iterable[MenuItem], values: Mapping[str, str]) -> str:
    """Replace ``${KEY}`` with the bound value of each sibling selector.

    ``values`` maps selector item ids to their chosen value; selectors without
    a chosen value fall back to their default. Placeholders with nothing bound
    are left as they are.
    """
    result = command
    for item in items:
        if not isinstance(item, SelectorItem) or not item.variable:
            continue
        value = values.get(item.id, item.default)
        if value is None:
            continue
        result = result.replace("${" + item.variable + "}", value)
    return result


class MenuNavigator:
    def __init__(
        self,
        config: MenuConfig,
        selector_values: Optional[Mapping[str, str]] = None,
        multiple_selection_values: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> None:
        if not isinstance(config.get_item(config.root_menu_id), SubmenuItem):
            raise ValueError(f"Unknown root menu: {config.root_menu_id}")
        self._config = config
        self._current_menu_id = config.root_menu_id
        self._current_items: List[MenuItem] = config.menu_items(config.root_menu_id)
        self._stack: List[str] = []
        self._selected_index = 0
        self._mode = Mode.BROWSING
        self._option_index = 0
        self._selector_values: Dict[str, str] = {}
        self._multiple_selection_values: Dict[str, List[str]] = {}
        for item_id, value in (selector_values or {}).items():
            self.set_selector_value(item_id, value)
        for item_id, values in (multiple_selection_values or {}).items():
            self.set_multiple_selection_values(item_id, values)

    # -- read-only accessors polled by the presentation layer -----------------

    @property
    def config(self) -> MenuConfig:
        return self._config

    @property
    def current_menu_id(self) -> str:
        return self._current_menu_id

    @property
    def current_items(self) -> List[MenuItem]:
        return list(self._current_items)

    @property
    def menu_stack(self) -> Tuple[str, ...]:
        return tuple(self._stack)

    @property
    def selected_index(self) -> int:
        return self._selected_index

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def option_index(self) -> int:
        return self._option_index

    @property
    def modal_item_id(self) -> Optional[str]:
        if self._mode is Mode.BROWSING:
            return None
        item = self.selected_item()
        return item.id if item is not None else None

    def current_menu(self) -> Tuple[str, str]:
        """Title and description of the active menu."""
        menu = self._config.get_item(self._current_menu_id)
        if menu is None:
            return "Menu", "Navigation"
        return menu.name, menu.description

    def selected_item(self) -> Optional[MenuItem]:
        if not self._current_items:
            return None
        self._clamp_cursor()
        return self._current_items[self._selected_index]

    # -- browsing -------------------------------------------------------------

    def navigate_up(self) -> None:
        if self._mode is not Mode.BROWSING:
            return
        if self._selected_index > 0:
            self._selected_index -= 1

    def navigate_down(self) -> None:
        if self._mode is not Mode.BROWSING:
            return
        if self._selected_index < len(self._current_items) - 1:
            self._selected_index += 1

    def enter_submenu(self) -> bool:
        item = self.selected_item()
        if self._mode is not Mode.BROWSING or not isinstance(item, SubmenuItem):
            return False
        self._stack.append(self._current_menu_id)
        self._switch_to(item.id)
        log.debug(f"Entered submenu {item.id} (depth {len(self._stack)})")
        return True

    def go_back(self) -> bool:
        if not self._stack:
            return False
        self._mode = Mode.BROWSING
        self._option_index = 0
        parent_id = self._stack.pop()
        self._switch_to(parent_id)
        log.debug(f"Returned to menu {parent_id}")
        return True

    def _switch_to(self, menu_id: str) -> None:
        self._current_menu_id = menu_id
        self._current_items = self._config.menu_items(menu_id)
        self._selected_index = 0

    def _clamp_cursor(self) -> None:
        if not self._current_items:
            self._selected_index = 0
        elif self._selected_index >= len(self._current_items):
            self._selected_index = len(self._current_items) - 1
        elif self._selected_index < 0:
            self._selected_index = 0

    def current_action(self) -> Optional[str]:
        """Command of the highlighted action with sibling variables substituted."""
        item = self.selected_item()
        if not isinstance(item, ActionItem) or item.command is None:
            return None
        return self.substitute_variables(item.command)

    def substitute_variables(self, command: str) -> str:
        return substitute_variables(command, self._current_items, self._selector_values)

    def activate(self) -> Optional[str]:
        """Act on the highlighted item.

        Submenus are entered and modal items are opened; only an action
        yields something for the caller, its substituted command.
        """
        if self._mode is not Mode.BROWSING:
            return None
        item = self.selected_item()
        if isinstance(item, SubmenuItem):
            self.enter_submenu()
        elif isinstance(item, SelectorItem):
            self.enter_selector_mode()
        elif isinstance(item, MultipleSelectionItem):
            self.enter_multiple_selection_mode()
        elif isinstance(item, ActionItem):
            return self.current_action()
        return None

    # -- selector modal -------------------------------------------------------

    def selector_value(self, item: MenuItem) -> Optional[str]:
        if not isinstance(item, SelectorItem):
            return None
        return self._selector_values.get(item.id, item.default)

    def set_selector_value(self, item_id: str, value: str) -> bool:
        if not isinstance(self._config.get_item(item_id), SelectorItem):
            return False
        self._selector_values[item_id] = value
        return True

    def enter_selector_mode(self) -> bool:
        item = self.selected_item()
        if self._mode is not Mode.BROWSING or not isinstance(item, SelectorItem):
            return False
        if not item.options:
            return False
        self._mode = Mode.SELECTOR_OPEN
        self._option_index = item.index_of(self.selector_value(item))
        return True

    def exit_selector_mode(self) -> None:
        if self._mode is Mode.SELECTOR_OPEN:
            self._mode = Mode.BROWSING
        self._option_index = 0

    def navigate_selector_up(self) -> None:
        if self._mode is Mode.SELECTOR_OPEN:
            self._move_option(-1)

    def navigate_selector_down(self) -> None:
        if self._mode is Mode.SELECTOR_OPEN:
            self._move_option(1)

    def select_selector_option(self) -> Optional[SelectorItem]:
        """Commit the highlighted option and close the selector.

        Returns the selector that changed so the caller can persist it.
        """
        if self._mode is not Mode.SELECTOR_OPEN:
            return None
        item = self.selected_item()
        committed = None
        if isinstance(item, SelectorItem) and item.options:
            index = min(self._option_index, len(item.options) - 1)
            self._selector_values[item.id] = item.options[index].value
            committed = item
            log.debug(f"Selector {item.id} set to {item.options[index].value!r}")
        self.exit_selector_mode()
        return committed

    # -- multiple selection modal ---------------------------------------------

    def multiple_selection_values(self, item: MenuItem) -> List[str]:
        """Chosen values of a multiple selection, in option order."""
        if not isinstance(item, MultipleSelectionItem):
            return []
        chosen = self._multiple_selection_values.get(item.id)
        if chosen is None:
            chosen = list(item.defaults)
        ordered = [value for value in item.values if value in chosen]
        ordered.extend(value for value in chosen if value not in ordered)
        return ordered

    def set_multiple_selection_values(self, item_id: str, values: Iterable[str]) -> bool:
        if not isinstance(self._config.get_item(item_id), MultipleSelectionItem):
            return False
        unique: List[str] = []
        for value in values:
            if value not in unique:
                unique.append(value)
        self._multiple_selection_values[item_id] = unique
        return True

    def is_option_selected(self, item: MenuItem, value: str) -> bool:
        return value in self.multiple_selection_values(item)

    def enter_multiple_selection_mode(self) -> bool:
        item = self.selected_item()
        if self._mode is not Mode.BROWSING or not isinstance(item, MultipleSelectionItem):
            return False
        if not item.options:
            return False
        self._mode = Mode.MULTI_SELECT_OPEN
        self._option_index = 0
        if item.id not in self._multiple_selection_values:
            self._multiple_selection_values[item.id] = list(item.defaults)
        return True

    def exit_multiple_selection_mode(self) -> Optional[MultipleSelectionItem]:
        """Close the modal; returns the item whose set may have changed."""
        if self._mode is not Mode.MULTI_SELECT_OPEN:
            return None
        item = self.selected_item()
        self._mode = Mode.BROWSING
        self._option_index = 0
        return item if isinstance(item, MultipleSelectionItem) else None

    def navigate_multiple_selection_up(self) -> None:
        if self._mode is Mode.MULTI_SELECT_OPEN:
            self._move_option(-1)

    def navigate_multiple_selection_down(self) -> None:
        if self._mode is Mode.MULTI_SELECT_OPEN:
            self._move_option(1)

    def toggle_multiple_selection_option(self) -> None:
        if self._mode is not Mode.MULTI_SELECT_OPEN:
            return
        item = self.selected_item()
        if not isinstance(item, MultipleSelectionItem) or not item.options:
            return
        if self._option_index >= len(item.options):
            return
        value = item.options[self._option_index].value
        chosen = self._multiple_selection_values.setdefault(item.id, list(item.defaults))
        if value in chosen:
            chosen.remove(value)
        else:
            chosen.append(value)

    # -- shared ---------------------------------------------------------------

    def _move_option(self, delta: int) -> None:
        item = self.selected_item()
        if not isinstance(item, (SelectorItem, MultipleSelectionItem)):
            return
        count = len(item.options)
        if count == 0:
            return
        self._option_index = (self._option_index + delta) % count

    def navigate(self, delta: int) -> None:
        """Move whichever cursor the current mode owns."""
        if self._mode is Mode.BROWSING:
            if delta < 0:
                self.navigate_up()
            else:
                self.navigate_down()
        else:
            self._move_option(delta)

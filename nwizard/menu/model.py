"""Menu domain model.

Each item type is its own frozen dataclass carrying only the fields that
make sense for it, so a selector can never hold a command and an action can
never hold options.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Tuple, Union

from nwizard.config.settings import DEFAULT_SHELL


ROOT_MENU_ID = "__root__"


class ItemType(str, Enum):
    ACTION = "action"
    SUBMENU = "submenu"
    SELECTOR = "selector"
    MULTIPLE_SELECTION = "multiple_selection"


@dataclass(frozen=True)
class Option:
    """One choice of a selector or multiple selection."""

    value: str
    comment: Optional[str] = None

    @classmethod
    def parse(cls, raw: str) -> Option:
        """Split a ``"value:comment"`` entry."""
        value, sep, comment = raw.partition(":")
        if not sep:
            return cls(value=raw)
        return cls(value=value, comment=comment)


@dataclass(frozen=True)
class ActionItem:
    id: str
    name: str
    description: str = ""
    command: Optional[str] = None
    status_prefix: Optional[str] = None
    show_output: bool = True
    disclaimer: Optional[str] = None

    type: ClassVar[ItemType] = ItemType.ACTION


@dataclass(frozen=True)
class SubmenuItem:
    id: str
    name: str
    description: str = ""
    item_ids: Tuple[str, ...] = ()

    type: ClassVar[ItemType] = ItemType.SUBMENU


@dataclass(frozen=True)
class SelectorItem:
    id: str
    name: str
    description: str = ""
    options: Tuple[Option, ...] = ()
    default: Optional[str] = None
    variable: Optional[str] = None

    type: ClassVar[ItemType] = ItemType.SELECTOR

    @property
    def values(self) -> List[str]:
        return [option.value for option in self.options]

    def index_of(self, value: Optional[str]) -> int:
        """Position of ``value`` among the options, or 0 when absent."""
        if value is None:
            return 0
        for index, option in enumerate(self.options):
            if option.value == value:
                return index
        return 0


@dataclass(frozen=True)
class MultipleSelectionItem:
    id: str
    name: str
    description: str = ""
    options: Tuple[Option, ...] = ()
    defaults: Tuple[str, ...] = ()
    variable: Optional[str] = None

    type: ClassVar[ItemType] = ItemType.MULTIPLE_SELECTION

    @property
    def values(self) -> List[str]:
        return [option.value for option in self.options]


MenuItem = Union[ActionItem, SubmenuItem, SelectorItem, MultipleSelectionItem]


@dataclass(frozen=True)
class MenuConfig:
    """The whole menu, loaded once and read-only for the session."""

    title: str = ""
    description: str = ""
    root_menu_id: str = ROOT_MENU_ID
    items: Dict[str, MenuItem] = field(default_factory=dict)
    banner: Tuple[str, ...] = ()
    shell: str = DEFAULT_SHELL
    logfile: Optional[str] = None
    renewal_period: Optional[float] = None

    def get_item(self, item_id: str) -> Optional[MenuItem]:
        return self.items.get(item_id)

    def menu_items(self, menu_id: str) -> List[MenuItem]:
        """Materialize the children of ``menu_id``; unknown ids yield an empty list."""
        menu = self.items.get(menu_id)
        if not isinstance(menu, SubmenuItem):
            return []
        return [self.items[item_id] for item_id in menu.item_ids if item_id in self.items]

    def variable_items(self) -> List[Union[SelectorItem, MultipleSelectionItem]]:
        """Every selector and multiple selection that declares a variable key."""
        return [
            item
            for item in self.items.values()
            if isinstance(item, (SelectorItem, MultipleSelectionItem)) and item.variable
        ]

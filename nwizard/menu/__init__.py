from nwizard.menu.model import (
    ROOT_MENU_ID,
    ActionItem,
    ItemType,
    MenuConfig,
    MenuItem,
    MultipleSelectionItem,
    Option,
    SelectorItem,
    SubmenuItem,
)
from nwizard.menu.navigator import MenuNavigator, Mode, substitute_variables

__all__ = [
    "ROOT_MENU_ID",
    "ActionItem",
    "ItemType",
    "MenuConfig",
    "MenuItem",
    "MenuNavigator",
    "Mode",
    "MultipleSelectionItem",
    "Option",
    "SelectorItem",
    "SubmenuItem",
    "substitute_variables",
]

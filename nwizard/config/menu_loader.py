"""Build a MenuConfig from a ``menu.toml`` file.

Layout::

    [menu]
    title = "Installer"
    shell = "bash"
    ascii_art = ["line 1", "line 2"]

    [menu.tools]
    type = "submenu"
    name = "Tools"

    [menu.tools.editor]
    type = "selector"
    name = "Editor"
    options = ["vim:Vi improved", "nano"]
    default = "vim"
    install_key = "EDITOR"

Any table carrying ``type``, ``name``, ``command``, ``options`` or
``defaults`` is an item whose id is its dotted path below ``menu``. Its
parent is the nearest enclosing item, or the root menu.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from nwizard.config.settings import DEFAULT_SHELL
from nwizard.exceptions import InvalidMenuConfigError, MenuConfigNotFoundError
from nwizard.logging import LoggerFactory
from nwizard.menu.model import (
    ROOT_MENU_ID,
    ActionItem,
    MenuConfig,
    MenuItem,
    MultipleSelectionItem,
    Option,
    SelectorItem,
    SubmenuItem,
)

log = LoggerFactory.for_system()

GLOBAL_KEYS = {
    "title",
    "description",
    "shell",
    "logfile",
    "ascii_art",
    "sudo_refresh_period",
    "nwiz_status_prefix",
}
ITEM_MARKERS = ("type", "name", "command", "options", "defaults")


def _is_item_table(table: Dict[str, Any]) -> bool:
    return any(marker in table for marker in ITEM_MARKERS)


def _string(table: Dict[str, Any], key: str, default: Optional[str] = None) -> Optional[str]:
    value = table.get(key)
    return value if isinstance(value, str) else default


def _strings(table: Dict[str, Any], key: str) -> List[str]:
    value = table.get(key)
    if not isinstance(value, list):
        return []
    return [entry if isinstance(entry, str) else "" for entry in value]


def _build_item(item_id: str, table: Dict[str, Any], child_ids: Tuple[str, ...]) -> MenuItem:
    name = _string(table, "name", "") or ""
    description = _string(table, "description", "") or ""
    item_type = _string(table, "type", "action")
    if item_type in ("submenu", "menu"):
        return SubmenuItem(id=item_id, name=name, description=description, item_ids=child_ids)
    if item_type == "selector":
        return SelectorItem(
            id=item_id,
            name=name,
            description=description,
            options=tuple(Option.parse(raw) for raw in _strings(table, "options")),
            default=_string(table, "default"),
            variable=_string(table, "install_key"),
        )
    if item_type == "multiple_selection":
        return MultipleSelectionItem(
            id=item_id,
            name=name,
            description=description,
            options=tuple(Option.parse(raw) for raw in _strings(table, "options")),
            defaults=tuple(_strings(table, "defaults")),
            variable=_string(table, "install_key"),
        )
    show_output = table.get("show_output")
    return ActionItem(
        id=item_id,
        name=name,
        description=description,
        command=_string(table, "command"),
        status_prefix=_string(table, "nwiz_status"),
        show_output=show_output if isinstance(show_output, bool) else True,
        disclaimer=_string(table, "disclaimer"),
    )


def _order_children(children: List[Tuple[str, Dict[str, Any]]]) -> Tuple[str, ...]:
    """Items with an ``index`` come first in index order, the rest in file order."""
    positioned = [
        (position, table.get("index"), item_id)
        for position, (item_id, table) in enumerate(children)
    ]
    positioned.sort(
        key=lambda entry: (
            0 if isinstance(entry[1], int) else 1,
            entry[1] if isinstance(entry[1], int) else 0,
            entry[0],
        )
    )
    return tuple(item_id for _, _, item_id in positioned)


def _collect(
    table: Dict[str, Any],
    prefix: str,
    parent_id: str,
    children: Dict[str, List[Tuple[str, Dict[str, Any]]]],
    tables: Dict[str, Dict[str, Any]],
) -> None:
    for key, value in table.items():
        if not prefix and key in GLOBAL_KEYS:
            continue
        if not isinstance(value, dict):
            continue
        full_key = f"{prefix}.{key}" if prefix else key
        nested_parent = parent_id
        if _is_item_table(value):
            tables[full_key] = value
            children.setdefault(parent_id, []).append((full_key, value))
            nested_parent = full_key
        _collect(value, full_key, nested_parent, children, tables)


def parse_menu_config(data: Dict[str, Any], path: Optional[Path] = None) -> MenuConfig:
    menu_table = data.get("menu")
    if not isinstance(menu_table, dict):
        raise InvalidMenuConfigError(path, "missing [menu] table")

    children: Dict[str, List[Tuple[str, Dict[str, Any]]]] = {}
    tables: Dict[str, Dict[str, Any]] = {}
    _collect(menu_table, "", ROOT_MENU_ID, children, tables)

    items: Dict[str, MenuItem] = {}
    for item_id, table in tables.items():
        child_ids = _order_children(children.get(item_id, []))
        items[item_id] = _build_item(item_id, table, child_ids)

    description = _string(menu_table, "description", "") or ""
    items[ROOT_MENU_ID] = SubmenuItem(
        id=ROOT_MENU_ID,
        name="Main Menu",
        description=description,
        item_ids=_order_children(children.get(ROOT_MENU_ID, [])),
    )

    renewal_period = menu_table.get("sudo_refresh_period")
    if isinstance(renewal_period, bool) or not isinstance(renewal_period, (int, float)):
        renewal_period = None
    elif renewal_period <= 0:
        renewal_period = None

    return MenuConfig(
        title=_string(menu_table, "title", "") or "",
        description=description,
        root_menu_id=ROOT_MENU_ID,
        items=items,
        banner=tuple(_strings(menu_table, "ascii_art")),
        shell=_string(menu_table, "shell", DEFAULT_SHELL) or DEFAULT_SHELL,
        logfile=_string(menu_table, "logfile"),
        renewal_period=float(renewal_period) if renewal_period is not None else None,
    )


def load_menu_config(path: Path) -> MenuConfig:
    """Read and parse ``path``.

    Raises:
        MenuConfigNotFoundError: the file does not exist.
        InvalidMenuConfigError: the file is not valid TOML or has no menu.
    """
    path = Path(path).expanduser()
    if not path.is_file():
        raise MenuConfigNotFoundError(path)
    try:
        with open(path, "rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as error:
        raise InvalidMenuConfigError(path, str(error)) from error
    except OSError as error:
        raise InvalidMenuConfigError(path, str(error)) from error
    config = parse_menu_config(data, path)
    log.info(f"Loaded {len(config.items) - 1} menu item(s) from {path}")
    return config

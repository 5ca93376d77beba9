"""Filesystem locations and runtime tunables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


CONFIG_DIR = Path(
    os.environ.get(
        "NWIZARD_CONFIG_DIR",
        Path.home() / ".config" / "nwizard",
    )
)

MENU_FILENAME = "menu.toml"
SELECTIONS_FILENAME = "install.json"

# Default values - use these constants instead of hardcoding values elsewhere
TICK_INTERVAL = 0.025
RENEWAL_SLEEP_STEP = 0.05
RENEWAL_CHECK_INTERVAL = 30.0
DEFAULT_RENEWAL_PERIOD = 240.0
RENEWAL_FRACTION = 0.5
MIN_RENEWAL_PERIOD = 10.0
OUTPUT_PROGRESS_LOG_INTERVAL = 1.0
KILLED_EXIT_CODE = 130
SIGNAL_EXIT_BASE = 128
DEFAULT_SHELL = "bash"
ENV_EXPORT_PREFIX = "NWIZ_"


@dataclass(frozen=True)
class Paths:
    menu_path: Path
    selections_path: Path


def resolve_paths(
    config_file: str | os.PathLike | None = None,
    install_config_dir: str | os.PathLike | None = None,
) -> Paths:
    """Resolve the menu file and the selection file for this session.

    The selection file lives next to the menu file unless an explicit
    directory is given.
    """
    if config_file is not None:
        menu_path = Path(config_file).expanduser()
    else:
        menu_path = CONFIG_DIR / MENU_FILENAME
    if install_config_dir is not None:
        selections_dir = Path(install_config_dir).expanduser()
    else:
        selections_dir = menu_path.parent
    return Paths(
        menu_path=menu_path,
        selections_path=selections_dir / SELECTIONS_FILENAME,
    )

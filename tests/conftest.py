"""
Pytest configuration and shared fixtures for nwizard tests.

This module provides common fixtures and utilities used across all test modules.
"""

import contextlib
from pathlib import Path
from typing import Any, Dict, List
from unittest.mock import Mock

import pytest

from nwizard import logging as logging_module
from nwizard.app.context import SessionContext
from nwizard.config.menu_loader import parse_menu_config
from nwizard.execution.process_runner import ProcessRunner
from nwizard.menu.model import MenuConfig
from nwizard.menu.navigator import MenuNavigator
from nwizard.privilege.sudo import CredentialSupervisor
from nwizard.storage.selections import SelectionStore


SAMPLE_MENU_TOML = """
[menu]
title = "Test Installer"
description = "Pick things"
shell = "/bin/sh"
ascii_art = ["== nwizard =="]

[menu.color]
type = "selector"
name = "Color"
options = ["red:Warm", "blue:Cool", "green"]
default = "red"
install_key = "COLOR"

[menu.paint]
type = "action"
name = "Paint"
command = "echo ${COLOR}"

[menu.tools]
type = "submenu"
name = "Tools"
description = "Extra tools"

[menu.tools.extras]
type = "multiple_selection"
name = "Extras"
options = ["git", "tmux", "ripgrep"]
defaults = ["git"]
install_key = "EXTRAS"

[menu.tools.hello]
type = "action"
name = "Hello"
command = "echo hello"
"""


# ==============================================================================
# Menu Fixtures
# ==============================================================================


@pytest.fixture
def sample_menu_data() -> Dict[str, Any]:
    """
    Fixture providing the parsed form of SAMPLE_MENU_TOML.

    Returns:
        Dict as produced by tomllib for the sample menu.
    """
    return {
        "menu": {
            "title": "Test Installer",
            "description": "Pick things",
            "shell": "/bin/sh",
            "ascii_art": ["== nwizard =="],
            "color": {
                "type": "selector",
                "name": "Color",
                "options": ["red:Warm", "blue:Cool", "green"],
                "default": "red",
                "install_key": "COLOR",
            },
            "paint": {
                "type": "action",
                "name": "Paint",
                "command": "echo ${COLOR}",
            },
            "tools": {
                "type": "submenu",
                "name": "Tools",
                "description": "Extra tools",
                "extras": {
                    "type": "multiple_selection",
                    "name": "Extras",
                    "options": ["git", "tmux", "ripgrep"],
                    "defaults": ["git"],
                    "install_key": "EXTRAS",
                },
                "hello": {
                    "type": "action",
                    "name": "Hello",
                    "command": "echo hello",
                },
            },
        }
    }


@pytest.fixture
def sample_menu_config(sample_menu_data) -> MenuConfig:
    """Fixture providing the sample menu as a MenuConfig."""
    return parse_menu_config(sample_menu_data)


@pytest.fixture
def menu_toml_file(tmp_path) -> Path:
    """Fixture providing the sample menu written to a temporary menu.toml."""
    path = tmp_path / "menu.toml"
    path.write_text(SAMPLE_MENU_TOML, encoding="utf-8")
    return path


@pytest.fixture
def navigator(sample_menu_config) -> MenuNavigator:
    """Fixture providing a navigator positioned at the root of the sample menu."""
    return MenuNavigator(sample_menu_config)


# ==============================================================================
# Process and Privilege Fixtures
# ==============================================================================


@pytest.fixture
def runner():
    """
    Fixture providing a ProcessRunner that uses /bin/sh.

    Any command still running at teardown is killed and reaped.
    """
    process_runner = ProcessRunner(shell="/bin/sh")
    yield process_runner
    process_runner.cleanup()


@pytest.fixture
def mock_subprocess_run() -> Mock:
    """
    Fixture providing a stand-in for subprocess.run injected into the supervisor.

    Returns:
        Mock returning a successful CompletedProcess-like object by default.
    """
    run = Mock()
    run.return_value = Mock(returncode=0, stdout="", stderr="")
    return run


@pytest.fixture
def selection_store(tmp_path) -> SelectionStore:
    """Fixture providing a store in a temporary directory."""
    return SelectionStore(tmp_path / "install.json")


@pytest.fixture
def session_context(sample_menu_config, runner, selection_store) -> SessionContext:
    """
    Fixture providing a fully wired session without sudo or a terminal.
    """
    return SessionContext(
        config=sample_menu_config,
        navigator=MenuNavigator(sample_menu_config),
        runner=runner,
        supervisor=CredentialSupervisor(enabled=False),
        store=selection_store,
        restore_terminal=Mock(),
    )


# ==============================================================================
# Logging Fixtures
# ==============================================================================


@pytest.fixture
def log_records() -> List[dict]:
    """
    Fixture capturing loguru records emitted during the test.

    Returns:
        List that will contain the record dict of every message logged.
    """
    records: List[dict] = []

    def sink(message):
        records.append(message.record)

    sink_id = logging_module.logger.add(sink, level="TRACE", enqueue=False)
    yield records
    # setup_logging may already have removed every sink.
    with contextlib.suppress(ValueError):
        logging_module.logger.remove(sink_id)


@pytest.fixture(autouse=True)
def isolated_log_dir(tmp_path, monkeypatch) -> Path:
    """
    Auto-use fixture keeping log files out of the user's home directory.

    Any sinks added by setup_logging during the test are removed afterwards.
    """
    log_dir = tmp_path / "logs"
    monkeypatch.setattr(logging_module, "DEFAULT_LOG_DIR", log_dir)
    yield log_dir
    logging_module.logger.remove()

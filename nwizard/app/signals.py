"""SIGINT/SIGTERM handling for the interactive session.

The handlers are closures over the orchestrator instead of module globals,
so each session installs its own and restores the previous ones on exit.
"""

from __future__ import annotations

import signal
from typing import Dict

from nwizard.app.orchestrator import SessionOrchestrator

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def install_signal_handlers(orchestrator: SessionOrchestrator) -> Dict[int, object]:
    """Route termination signals to ``orchestrator``; returns the replaced handlers."""

    def handle_termination(signum, frame):
        orchestrator.handle_signal(signum)

    previous = {}
    for signum in HANDLED_SIGNALS:
        previous[signum] = signal.signal(signum, handle_termination)
    return previous


def restore_signal_handlers(previous: Dict[int, object]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler if handler is not None else signal.SIG_DFL)

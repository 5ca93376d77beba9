"""Tests for termination signal routing."""

import os
import signal
from unittest.mock import Mock

import pytest

from nwizard.app.signals import (
    HANDLED_SIGNALS,
    install_signal_handlers,
    restore_signal_handlers,
)


@pytest.fixture
def orchestrator():
    return Mock()


@pytest.fixture
def installed(orchestrator):
    previous = install_signal_handlers(orchestrator)
    yield previous
    restore_signal_handlers(previous)


class TestInstallSignalHandlers:
    """Tests for install_signal_handlers()."""

    def test_handles_interrupt_and_terminate(self):
        assert set(HANDLED_SIGNALS) == {signal.SIGINT, signal.SIGTERM}

    def test_returns_previous_handlers(self, orchestrator):
        before = {signum: signal.getsignal(signum) for signum in HANDLED_SIGNALS}

        previous = install_signal_handlers(orchestrator)
        restore_signal_handlers(previous)

        assert previous == before

    @pytest.mark.parametrize("signum", [signal.SIGINT, signal.SIGTERM])
    def test_handler_forwards_to_orchestrator(self, installed, orchestrator, signum):
        handler = signal.getsignal(signum)

        handler(signum, None)

        orchestrator.handle_signal.assert_called_once_with(signum)

    def test_real_signal_is_delivered(self, installed, orchestrator):
        os.kill(os.getpid(), signal.SIGTERM)

        orchestrator.handle_signal.assert_called_once_with(signal.SIGTERM)


class TestRestoreSignalHandlers:
    """Tests for restore_signal_handlers()."""

    def test_restores_previous(self, orchestrator):
        before = signal.getsignal(signal.SIGTERM)
        previous = install_signal_handlers(orchestrator)

        restore_signal_handlers(previous)

        assert signal.getsignal(signal.SIGTERM) == before

    def test_missing_previous_handler_becomes_default(self):
        before = signal.getsignal(signal.SIGTERM)
        try:
            restore_signal_handlers({signal.SIGTERM: None})

            assert signal.getsignal(signal.SIGTERM) == signal.SIG_DFL
        finally:
            signal.signal(signal.SIGTERM, before)

"""
Tests for nwizard.execution.process_runner.

This test suite covers:
- Exit code reporting for normal, failing and signalled commands
- Complete capture of stdout and stderr, including large outputs
- Non-blocking polling while a command runs
- Kill semantics and the single-command rule
- Spawn failures
"""

import time

import pytest

from nwizard.config.settings import KILLED_EXIT_CODE
from nwizard.exceptions import CommandAlreadyRunningError, SpawnError
from nwizard.execution import process_runner
from nwizard.execution.process_runner import ProcessRunner, exit_code_from_returncode


def wait_for_exit(runner: ProcessRunner, timeout: float = 10.0) -> bool:
    """Poll like the UI loop does until the command finishes."""
    deadline = time.monotonic() + timeout
    while runner.is_running() and time.monotonic() < deadline:
        runner.poll_output()
        time.sleep(0.01)
    return not runner.is_running()


class TestExitCodes:
    """Tests for exit code reporting."""

    def test_successful_command(self, runner):
        """Test that exit 0 reports success."""
        runner.start("exit 0")

        assert wait_for_exit(runner)
        assert runner.get_exit_code() == 0
        assert runner.get_result().success is True

    def test_failing_command(self, runner):
        """Test that a non-zero exit code is reported as is."""
        runner.start("exit 7")

        assert wait_for_exit(runner)
        assert runner.get_exit_code() == 7
        assert runner.get_result().success is False

    def test_signalled_command_maps_to_128_plus_signal(self, runner):
        """Test that a shell killed by SIGTERM reports 143."""
        runner.start("kill -TERM $$")

        assert wait_for_exit(runner)
        assert runner.get_exit_code() == 143

    def test_exit_code_is_none_before_start(self, runner):
        """Test that a fresh runner has no exit code."""
        assert runner.get_exit_code() is None
        assert runner.is_running() is False

    def test_exit_code_from_returncode(self):
        """Test mapping of Popen return codes."""
        assert exit_code_from_returncode(0) == 0
        assert exit_code_from_returncode(3) == 3
        assert exit_code_from_returncode(-9) == 137
        assert exit_code_from_returncode(-15) == 143


class TestOutputCapture:
    """Tests for stdout and stderr capture."""

    def test_stdout_is_captured(self, runner):
        """Test that echo output is captured exactly."""
        runner.start("echo hello")

        assert wait_for_exit(runner)
        assert runner.get_output() == "hello\n"
        assert runner.get_error_output() == ""

    def test_stderr_is_captured_separately(self, runner):
        """Test that stderr goes to its own buffer."""
        runner.start("echo out; echo err >&2")

        assert wait_for_exit(runner)
        assert runner.get_output() == "out\n"
        assert runner.get_error_output() == "err\n"

    def test_trailing_output_without_newline(self, runner):
        """Test that output written just before exit is not lost."""
        runner.start("printf 'no newline'")

        assert wait_for_exit(runner)
        assert runner.get_output() == "no newline"

    def test_large_output_is_complete(self, runner):
        """Test that every line of a large output arrives."""
        runner.start("yes x | head -n 50000")

        assert wait_for_exit(runner)
        lines = runner.get_output().splitlines()
        assert len(lines) == 50000
        assert set(lines) == {"x"}

    def test_buffers_reset_on_next_start(self, runner):
        """Test that starting a new command clears the previous output."""
        runner.start("echo first")
        assert wait_for_exit(runner)

        runner.start("echo second")
        assert wait_for_exit(runner)

        assert runner.get_output() == "second\n"

    def test_result_snapshot(self, runner):
        """Test that get_result bundles output and exit code."""
        runner.start("echo data; echo warn >&2; exit 2")
        assert wait_for_exit(runner)

        result = runner.get_result()

        assert result.output == "data\n"
        assert result.error_output == "warn\n"
        assert result.exit_code == 2
        assert result.success is False


class TestPolling:
    """Tests for non-blocking polling."""

    def test_poll_does_not_block_on_silent_command(self, runner):
        """Test that polling a command that prints nothing returns at once."""
        runner.start("sleep 5")

        started = time.monotonic()
        read_any = runner.poll_output()
        elapsed = time.monotonic() - started

        assert read_any is False
        assert elapsed < 0.5
        assert runner.is_running() is True

    def test_poll_after_finish_is_idempotent(self, runner):
        """Test that polling a finished command changes nothing."""
        runner.start("echo done; exit 4")
        assert wait_for_exit(runner)

        assert runner.poll_output() is False
        assert runner.poll_output() is False
        assert runner.get_exit_code() == 4
        assert runner.get_output() == "done\n"

    def test_poll_without_command(self, runner):
        """Test that polling an idle runner returns False."""
        assert runner.poll_output() is False

    def test_output_progress_trace_is_throttled(self, runner, log_records, monkeypatch):
        """Test that output progress is traced at most once per interval."""
        monkeypatch.setattr(process_runner, "OUTPUT_PROGRESS_LOG_INTERVAL", 60.0)
        runner.start("for i in 1 2 3 4; do echo $i; sleep 0.05; done")

        reads = 0
        deadline = time.monotonic() + 10.0
        while runner.is_running() and time.monotonic() < deadline:
            if runner.poll_output():
                reads += 1
            time.sleep(0.01)

        progress = [r for r in log_records if r["message"].endswith("bytes read")]
        assert reads >= 2
        assert len(progress) == 1
        assert progress[0]["level"].name == "TRACE"
        assert progress[0]["extra"]["source"] == "exec"

    def test_pid_and_command_while_running(self, runner):
        """Test that pid and command are exposed while running."""
        runner.start("sleep 5")

        assert runner.pid is not None
        assert runner.command == "sleep 5"


class TestKill:
    """Tests for kill()."""

    def test_kill_stops_running_immediately(self, runner):
        """Test that kill flips the running flag and reports 130."""
        runner.start("sleep 30")

        runner.kill()

        assert runner.is_running() is False
        assert runner.get_exit_code() == KILLED_EXIT_CODE
        assert runner.pid is None

    def test_kill_is_idempotent(self, runner):
        """Test that a second kill is a no-op."""
        runner.start("sleep 30")
        runner.kill()
        runner.kill()

        assert runner.get_exit_code() == KILLED_EXIT_CODE

    def test_kill_after_exit_keeps_exit_code(self, runner):
        """Test that killing a finished command does not overwrite its exit code."""
        runner.start("exit 3")
        assert wait_for_exit(runner)

        runner.kill()

        assert runner.get_exit_code() == 3

    def test_kill_keeps_output_read_so_far(self, runner):
        """Test that output captured before the kill stays available."""
        runner.start("echo before; sleep 30")
        deadline = time.monotonic() + 5.0
        while "before" not in runner.get_output() and time.monotonic() < deadline:
            runner.poll_output()
            time.sleep(0.01)

        runner.kill()

        assert runner.get_output() == "before\n"
        assert runner.poll_output() is False

    def test_new_command_after_kill(self, runner):
        """Test that the runner accepts a new command after a kill."""
        runner.start("sleep 30")
        runner.kill()

        runner.start("echo again")

        assert wait_for_exit(runner)
        assert runner.get_exit_code() == 0


class TestStartErrors:
    """Tests for start() failures."""

    def test_start_while_running_raises(self, runner):
        """Test that a refused start leaves the running command untouched."""
        runner.start("echo first; sleep 30")
        deadline = time.monotonic() + 10.0
        while runner.get_output() != "first\n" and time.monotonic() < deadline:
            runner.poll_output()
            time.sleep(0.01)

        with pytest.raises(CommandAlreadyRunningError):
            runner.start("echo nope")

        assert runner.get_output() == "first\n"
        assert runner.is_running() is True
        assert runner.command == "echo first; sleep 30"

    def test_missing_shell_raises_spawn_error(self):
        """Test that a shell that cannot be executed raises SpawnError."""
        runner = ProcessRunner(shell="/nonexistent/shell")

        with pytest.raises(SpawnError) as excinfo:
            runner.start("true")

        assert excinfo.value.command == "true"
        assert isinstance(excinfo.value.original_error, OSError)
        assert runner.is_running() is False


class TestCleanup:
    """Tests for cleanup()."""

    def test_cleanup_kills_and_releases(self, runner):
        """Test that cleanup leaves nothing running."""
        runner.start("sleep 30")

        runner.cleanup()

        assert runner.is_running() is False
        assert runner.pid is None

    def test_cleanup_without_command(self):
        """Test that cleanup on an idle runner is safe."""
        ProcessRunner(shell="/bin/sh").cleanup()

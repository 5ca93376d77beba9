"""Tests for the output view model."""

from datetime import datetime

import pytest

from nwizard.execution.output_view import OutputView


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2024, 1, 2, 3, 4, 5)


def make_view(**kwargs) -> OutputView:
    kwargs.setdefault("command", "make install")
    kwargs.setdefault("item_name", "Install")
    return OutputView(**kwargs)


class TestStatusLines:
    """Tests for status prefix tracking."""

    def test_status_line_becomes_current(self, fixed_clock):
        view = make_view(status_prefix="STATUS:", clock=fixed_clock)

        view.update("building\nSTATUS: compiling\n")

        assert view.current_status.message == "compiling"
        assert view.current_status.timestamp == datetime(2024, 1, 2, 3, 4, 5)
        assert view.status_history == []

    def test_previous_status_moves_to_history(self):
        view = make_view(status_prefix="STATUS:")

        view.update("STATUS: one\n")
        view.update("STATUS: one\nSTATUS: two\n")

        assert view.current_status.message == "two"
        assert [entry.message for entry in view.status_history] == ["one"]

    def test_partial_line_waits_for_newline(self):
        view = make_view(status_prefix="STATUS:")

        view.update("STATUS: hal")
        assert view.current_status is None

        view.update("STATUS: halfway\n")
        assert view.current_status.message == "halfway"

    def test_multibyte_character_split_across_reads(self):
        """Test a status line whose UTF-8 bytes arrive in two reads."""
        raw = "STATUS: café\n".encode("utf-8")
        view = make_view(status_prefix="STATUS:")

        view.update(raw[:-2].decode("utf-8", errors="replace"))
        view.update(raw.decode("utf-8", errors="replace"))

        assert view.current_status.message == "café"
        assert view.status_history == []

    def test_earlier_lines_not_rescanned(self):
        view = make_view(status_prefix="STATUS:")

        view.update("STATUS: one\nSTATUS: tw")
        view.update("STATUS: one\nSTATUS: two\n")

        assert view.current_status.message == "two"
        assert [entry.message for entry in view.status_history] == ["one"]

    def test_lines_are_scanned_once(self):
        view = make_view(status_prefix="STATUS:")

        view.update("STATUS: a\n")
        view.update("STATUS: a\n")
        view.update("STATUS: a\n")

        assert view.status_history == []

    def test_empty_status_ignored(self):
        view = make_view(status_prefix="STATUS:")

        view.update("STATUS:   \n")

        assert view.current_status is None

    def test_no_prefix_no_status(self):
        view = make_view()

        view.update("STATUS: x\n")

        assert view.current_status is None

    def test_finish_processes_trailing_partial_line(self):
        view = make_view(status_prefix="STATUS:")
        view.update("STATUS: almost")

        view.finish(0, "STATUS: almost", "")

        assert view.current_status.message == "almost"


class TestFinish:
    """Tests for freezing the view."""

    def test_finish_freezes_result(self):
        view = make_view()

        view.finish(0, "out\n", "")

        assert view.finished is True
        assert view.success is True
        assert view.exit_code == 0

    def test_failed_command(self):
        view = make_view()

        view.finish(2, "", "boom\n")

        assert view.success is False
        assert view.error_output == "boom\n"

    def test_updates_ignored_after_finish(self):
        view = make_view()
        view.finish(0, "final\n", "")

        view.update("final\nmore\n")
        view.finish(1, "x", "y")

        assert view.output == "final\n"
        assert view.exit_code == 0

    def test_stderr_appended_to_lines_after_finish(self):
        view = make_view()
        view.update("out\n")
        assert view.lines == ["out"]

        view.finish(1, "out\n", "err\n")

        assert view.lines == ["out", "", "stderr:", "err"]

    def test_not_successful_while_running(self):
        assert make_view().success is False


class TestScrolling:
    """Tests for scrolling and follow mode."""

    def numbered_view(self, count=20) -> OutputView:
        view = make_view()
        view.update("".join(f"line {i}\n" for i in range(count)))
        return view

    def test_follow_shows_tail(self):
        view = self.numbered_view()

        assert view.visible_lines(5) == [f"line {i}" for i in range(15, 20)]

    def test_follow_tracks_new_output(self):
        view = self.numbered_view()
        view.visible_lines(5)

        view.update("".join(f"line {i}\n" for i in range(25)))

        assert view.visible_lines(5)[-1] == "line 24"

    def test_scroll_up_leaves_follow_mode(self):
        view = self.numbered_view()
        view.visible_lines(5)

        view.scroll_up()

        assert view.follow is False
        assert view.visible_lines(5)[-1] == "line 18"

    def test_scroll_down_to_end_resumes_follow(self):
        view = self.numbered_view()
        view.visible_lines(5)
        view.scroll_up()

        view.scroll_down(5)

        assert view.follow is True

    def test_page_up_and_down(self):
        view = self.numbered_view()
        view.visible_lines(5)

        view.page_up(5)
        assert view.scroll_offset == 10

        view.page_down(5)
        assert view.scroll_offset == 15
        assert view.follow is True

    def test_page_up_stops_at_top(self):
        view = self.numbered_view()
        view.visible_lines(5)

        for _ in range(10):
            view.page_up(5)

        assert view.scroll_offset == 0

    def test_top_and_bottom(self):
        view = self.numbered_view()

        view.scroll_to_top()
        assert view.visible_lines(5)[0] == "line 0"

        view.scroll_to_bottom_and_follow()
        assert view.visible_lines(5)[-1] == "line 19"

    def test_short_output_never_scrolls(self):
        view = self.numbered_view(count=3)

        view.scroll_down(10)

        assert view.max_scroll(10) == 0
        assert view.visible_lines(10) == ["line 0", "line 1", "line 2"]

    def test_toggle_output_visibility(self):
        view = make_view()

        view.toggle_output_visibility()
        assert view.show_output is False

        view.toggle_output_visibility()
        assert view.show_output is True

"""Tests for RunStatus and ProgressReporter."""

from strategylab.progress import ProgressEvent, ProgressReporter, RunStatus


class TestRunStatus:
    """Tests for the shared status record."""

    def test_defaults(self) -> None:
        status = RunStatus()
        assert status.state == "idle"
        assert status.cancel_requested is False
        assert status.fraction_complete == 0.0

    def test_fraction_complete(self) -> None:
        assert RunStatus(total=4, completed=1).fraction_complete == 0.25
        assert RunStatus(total=0, completed=3).fraction_complete == 0.0

    def test_fraction_capped_at_one(self) -> None:
        """total may be an upper bound that the run overshoots."""
        assert RunStatus(total=2, completed=5).fraction_complete == 1.0

    def test_cancel(self) -> None:
        status = RunStatus()
        status.cancel()
        assert status.cancel_requested is True

    def test_snapshot(self) -> None:
        status = RunStatus(total=3, completed=1, current="period=2", state="running")
        assert status.snapshot() == ProgressEvent(
            total=3, completed=1, current="period=2", state="running"
        )


class TestProgressReporter:
    """Tests for status updates and callback delivery."""

    def test_resets_status_on_start(self) -> None:
        status = RunStatus(total=9, completed=9, current="old", state="complete")
        reporter = ProgressReporter(4, status=status)

        assert reporter.status is status
        assert status.total == 4
        assert status.completed == 0
        assert status.current == ""
        assert status.state == "running"

    def test_private_status_when_none(self) -> None:
        reporter = ProgressReporter(2)
        assert reporter.status.total == 2

    def test_events(self) -> None:
        events: list[ProgressEvent] = []
        reporter = ProgressReporter(2, callback=events.append)

        reporter.started("a")
        reporter.advance()
        reporter.advance("b")
        reporter.finish()

        assert [(e.completed, e.current, e.state) for e in events] == [
            (0, "a", "running"),
            (1, "a", "running"),
            (2, "b", "running"),
            (2, "", "complete"),
        ]

    def test_cancelled_finish(self) -> None:
        status = RunStatus()
        reporter = ProgressReporter(5, status=status)

        assert reporter.cancelled is False
        status.cancel()
        assert reporter.cancelled is True

        reporter.finish()
        assert status.state == "cancelled"
        assert status.total == 5

    def test_complete_finish_settles_total(self) -> None:
        """An estimated total is replaced by the trials actually run."""
        status = RunStatus()
        reporter = ProgressReporter(10, status=status)
        for _ in range(7):
            reporter.advance()

        reporter.finish()

        assert status.total == 7
        assert status.fraction_complete == 1.0

    def test_no_callback(self) -> None:
        reporter = ProgressReporter(1)
        reporter.advance("x")
        reporter.finish()
        assert reporter.status.completed == 1
        assert reporter.status.state == "complete"

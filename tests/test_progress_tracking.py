"""
Tests for progress tracking and the run summary report.
"""
import time


class TestProgressTracker:
    """ProgressTracker from drinkoteket_scraper.py"""

    def test_tracker_initialization(self):
        """Tracker initializes with correct values."""
        from drinkoteket_scraper import ProgressTracker

        tracker = ProgressTracker(100)
        assert tracker.total == 100
        assert tracker.completed == 0
        assert tracker.failed == 0
        assert tracker.succeeded == 0
        assert tracker.milestone_every == 10

    def test_tracker_update_success(self):
        """Update increments completed count."""
        from drinkoteket_scraper import ProgressTracker

        tracker = ProgressTracker(10)
        tracker.update(success=True, item_name="Mojito")
        assert tracker.completed == 1
        assert tracker.failed == 0
        assert tracker.succeeded == 1

    def test_tracker_update_failure(self):
        """Update with failure increments failed count."""
        from drinkoteket_scraper import ProgressTracker

        tracker = ProgressTracker(10)
        tracker.update(success=False, item_name="mojito", status="INCOMPLETE")
        assert tracker.completed == 1
        assert tracker.failed == 1
        assert tracker.succeeded == 0

    def test_status_in_output(self, capsys):
        from drinkoteket_scraper import ProgressTracker

        tracker = ProgressTracker(2)
        tracker.update(success=True, item_name="Mojito")
        tracker.update(success=False, item_name="negroni")

        out = capsys.readouterr().out
        assert "[1/2]" in out and "[OK]" in out
        assert "[2/2]" in out and "[ERROR]" in out

    def test_long_names_truncated(self, capsys):
        from drinkoteket_scraper import ProgressTracker

        tracker = ProgressTracker(1)
        tracker.update(success=True, item_name="x" * 60)

        out = capsys.readouterr().out
        assert "x" * 40 in out
        assert "x" * 41 not in out

    def test_milestone_every_n(self, capsys):
        from drinkoteket_scraper import ProgressTracker

        tracker = ProgressTracker(7, milestone_every=3)
        for i in range(7):
            tracker.update(success=i != 4, item_name=f"drink-{i}")

        out = capsys.readouterr().out
        assert "Progress: 3/7 (3 successful, 0 failed)" in out
        assert "Progress: 6/7 (5 successful, 1 failed)" in out
        assert "Progress: 7/7" not in out

    def test_zero_total(self, capsys):
        """An empty run does not divide by zero."""
        from drinkoteket_scraper import ProgressTracker

        tracker = ProgressTracker(0)
        tracker.summary()
        assert "Completed: 0/0" in capsys.readouterr().out

    def test_summary(self, capsys):
        from drinkoteket_scraper import ProgressTracker

        tracker = ProgressTracker(3)
        tracker.start_time = time.time() - 65
        tracker.update(success=True, item_name="a")
        tracker.update(success=True, item_name="b")
        tracker.update(success=False, item_name="c")
        tracker.summary()

        out = capsys.readouterr().out
        assert "Completed: 2/3 (1 failed) in 0:01:05" in out


class TestRunSummary:
    """RunSummary.print_report from drinkoteket_scraper.py"""

    def test_report_totals(self, capsys):
        from drinkoteket_scraper import RunSummary, RunState

        RunSummary(state=RunState.DONE, discovered=5, successes=4, failures=1,
                   ingredient_count=12, category_count=3).print_report()

        out = capsys.readouterr().out
        assert "SCRAPING COMPLETE" in out
        assert "Successfully scraped:       4" in out
        assert "Failed to scrape:           1" in out
        assert "Total unique ingredients:   12" in out
        assert "Total categories:           3" in out

    def test_report_partial_and_aborted(self, capsys):
        from drinkoteket_scraper import RunSummary, RunState

        RunSummary(state=RunState.ABORTED, discovery_complete=False).print_report()

        out = capsys.readouterr().out
        assert "SCRAPING ABORTED" in out
        assert "(partial)" in out

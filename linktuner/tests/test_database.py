"""
Unit tests for the database module.
"""

from datetime import datetime, timedelta

import pytest

from modules.database import DatabaseManager, ScanRun
from modules.models import ScanResult


# ─── Fixtures ────────────────────────────────────────────────────────────────


@pytest.fixture
def db():
    """Create an in-memory database for testing."""
    return DatabaseManager("sqlite:///:memory:", echo=False)


def make_result(frequency, status="success", signal=-60.0, noise=-100.0):
    return ScanResult(
        frequency=frequency,
        status=status,
        signal_strength=signal,
        noise_floor=noise,
        remote_mac_address="4C:5E:0C:7F:D4:B1",
    )


@pytest.fixture
def db_with_run(db, scan_settings):
    """Database holding one sweep: baseline, two successes and an error."""
    db.start_new_scan()
    db.save_result(make_result(5180.0, status="base"), scan_settings)
    db.save_result(make_result(5180.0, signal=-70.0), scan_settings)
    db.save_result(make_result(5190.0, signal=-55.0), scan_settings)
    error = ScanResult(frequency=5200.0)
    error.mark_error("failure: invalid value")
    db.save_result(error, scan_settings)
    return db


# ─── Sink Tests ──────────────────────────────────────────────────────────────


class TestResultSink:
    """Tests for persisting sweep results."""

    def test_first_result_opens_run(self, db, scan_settings):
        """Test that a run is created lazily with the first result."""
        db.start_new_scan()
        assert db.current_run_id is None

        record = db.save_result(make_result(5180.0, status="base"), scan_settings)

        assert db.current_run_id is not None
        assert record.run_id == db.current_run_id
        assert record.status == "base"
        assert record.signal_to_noise_ratio == 40.0

    def test_results_share_run(self, db_with_run):
        """Test that results of one sweep land in one run."""
        runs = db_with_run.get_recent_runs()

        assert len(runs) == 1
        assert runs[0].result_count == 4
        assert runs[0].router_host == "192.168.88.1"
        assert runs[0].interface_name == "wlan1"

    def test_new_scan_new_run(self, db_with_run, scan_settings):
        """Test that start_new_scan starts a separate run."""
        first = db_with_run.current_run_id
        db_with_run.start_new_scan()
        db_with_run.save_result(make_result(5180.0, status="base"), scan_settings)

        assert db_with_run.current_run_id != first
        assert len(db_with_run.get_recent_runs()) == 2

    def test_password_not_stored(self, db_with_run):
        """Test that the run's settings omit the password."""
        run = db_with_run.get_run(db_with_run.current_run_id)
        assert run.to_dict()["settings"]["password"] == "******"

    def test_record_to_dict(self, db_with_run):
        """Test that a record expands to the full result."""
        record = db_with_run.get_run_results(db_with_run.current_run_id)[0]
        data = record.to_dict()

        assert data["id"] == record.id
        assert data["run_id"] == db_with_run.current_run_id
        assert data["frequency"] == 5180.0
        assert data["remote_mac_address"] == "4C:5E:0C:7F:D4:B1"
        assert data["signal_to_noise_ratio"] == 40.0


# ─── History Tests ───────────────────────────────────────────────────────────


class TestHistory:
    """Tests for reading sweep history."""

    def test_results_in_emission_order(self, db_with_run):
        """Test that results come back baseline first."""
        records = db_with_run.get_run_results(db_with_run.current_run_id)
        assert [r.status for r in records] == ["base", "success", "success", "error"]
        assert [r.frequency for r in records] == [5180.0, 5180.0, 5190.0, 5200.0]

    def test_status_filter(self, db_with_run):
        """Test filtering results by status tag."""
        records = db_with_run.get_run_results(db_with_run.current_run_id, status="error")

        assert len(records) == 1
        assert records[0].error_message == "failure: invalid value"

    def test_best_result(self, db_with_run):
        """Test that the best result is the successful one with the highest SNR."""
        best = db_with_run.get_best_result(db_with_run.current_run_id)

        assert best.frequency == 5190.0
        assert best.signal_to_noise_ratio == 45.0

    def test_best_result_none(self, db):
        """Test that an unknown run has no best result."""
        assert db.get_best_result(999) is None

    def test_get_run_missing(self, db):
        """Test looking up an unknown run."""
        assert db.get_run(999) is None


# ─── Maintenance Tests ───────────────────────────────────────────────────────


class TestCleanup:
    """Tests for cleanup_old_data."""

    def test_removes_old_runs(self, db_with_run, scan_settings):
        """Test that runs past retention are deleted with their results."""
        old_id = db_with_run.current_run_id
        session = db_with_run.get_session()
        session.query(ScanRun).filter(ScanRun.id == old_id).update(
            {ScanRun.started_at: datetime.now() - timedelta(days=120)}
        )
        session.commit()
        session.close()

        db_with_run.start_new_scan()
        db_with_run.save_result(make_result(5180.0, status="base"), scan_settings)

        stats = db_with_run.cleanup_old_data(days=90)

        assert stats == {"runs_deleted": 1, "results_deleted": 4}
        assert db_with_run.get_run(old_id) is None
        assert len(db_with_run.get_recent_runs()) == 1

    def test_nothing_to_remove(self, db_with_run):
        """Test that recent runs are kept."""
        assert db_with_run.cleanup_old_data(days=90) == {"runs_deleted": 0, "results_deleted": 0}

"""
Database Module

SQLAlchemy models and the persistence sink for sweep results.  Each sweep
is a ``ScanRun``; every emitted result (baseline first) becomes one
``ScanRecord`` row, written as soon as it is produced.
"""

import json
import logging
import threading
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, create_engine,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from config import DATABASE_URL, DB_ECHO, MAX_EXPORT_RECORDS, RESULT_RETENTION_DAYS
from .models import ScanResult
from .settings import ScanSettings

logger = logging.getLogger(__name__)

Base = declarative_base()


class ScanRun(Base):
    """One sweep."""

    __tablename__ = "scan_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    started_at = Column(DateTime, nullable=False, default=datetime.now)
    router_host = Column(String(45), nullable=True)
    interface_name = Column(String(100), nullable=True)
    result_count = Column(Integer, nullable=False, default=0)
    settings_json = Column(Text, nullable=True)  # ScanSettings without password

    def to_dict(self) -> Dict:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "router_host": self.router_host,
            "interface_name": self.interface_name,
            "result_count": self.result_count,
            "settings": json.loads(self.settings_json) if self.settings_json else None,
        }

    def __repr__(self) -> str:
        return f"<ScanRun {self.id} {self.router_host}/{self.interface_name} - {self.result_count} results>"


class ScanRecord(Base):
    """One persisted ScanResult."""

    __tablename__ = "scan_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(Integer, ForeignKey("scan_runs.id"), nullable=False, index=True)
    scan_time = Column(DateTime, nullable=False, default=datetime.now)
    status = Column(String(20), nullable=True)
    frequency = Column(Float, nullable=True)
    wireless_protocol = Column(String(50), nullable=True)
    channel_width = Column(String(50), nullable=True)
    signal_strength = Column(Float, nullable=True)
    noise_floor = Column(Float, nullable=True)
    signal_to_noise_ratio = Column(Float, nullable=True)
    ccq = Column(Float, nullable=True)
    tx_rate = Column(Float, nullable=True)
    rx_rate = Column(Float, nullable=True)
    remote_mac_address = Column(String(17), nullable=True)
    remote_signal_strength = Column(Float, nullable=True)
    ping_avg_ms = Column(Integer, nullable=True)
    ping_loss_percent = Column(Float, nullable=True)
    ping_success = Column(Boolean, nullable=True)
    error_message = Column(Text, nullable=True)
    raw_json = Column(Text, nullable=True)  # Full ScanResult as JSON

    def to_dict(self) -> Dict:
        """Full result as stored, with record ids."""
        data = json.loads(self.raw_json) if self.raw_json else {}
        data["id"] = self.id
        data["run_id"] = self.run_id
        return data

    def __repr__(self) -> str:
        return f"<ScanRecord {self.id} run={self.run_id} {self.frequency} MHz [{self.status}]>"


class DatabaseManager:
    """Result sink and history store."""

    def __init__(self, database_url: str = DATABASE_URL, echo: bool = DB_ECHO):
        """
        Initialize database manager.

        Args:
            database_url: SQLAlchemy database URL
            echo: Enable SQL query logging
        """
        self.database_url = database_url
        self.engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False} if "sqlite" in database_url else {},
            poolclass=StaticPool if "sqlite" in database_url else None,
        )
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

        self._lock = threading.Lock()
        self._current_run_id: Optional[int] = None

        Base.metadata.create_all(bind=self.engine)
        logger.info("Database initialized successfully")

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    @property
    def current_run_id(self) -> Optional[int]:
        return self._current_run_id

    # Sink operations

    def start_new_scan(self) -> None:
        """Forget the current run; the next saved result opens a new one."""
        with self._lock:
            self._current_run_id = None
        logger.debug("Result sink reset for a new scan")

    def _ensure_run(self, session: Session, settings: ScanSettings) -> int:
        if self._current_run_id is None:
            run = ScanRun(
                router_host=settings.router_host,
                interface_name=settings.interface_name,
                settings_json=json.dumps(settings.to_dict(include_password=False)),
            )
            session.add(run)
            session.flush()
            self._current_run_id = run.id
            logger.info(f"Started scan run {run.id}")
        return self._current_run_id

    def save_result(self, result: ScanResult, settings: ScanSettings) -> ScanRecord:
        """
        Append one result to the current run.

        Args:
            result: Result to persist
            settings: Settings of the sweep that produced it

        Returns:
            ScanRecord object
        """
        with self._lock:
            session = self.get_session()
            try:
                run_id = self._ensure_run(session, settings)
                record = ScanRecord(
                    run_id=run_id,
                    scan_time=result.scan_time,
                    status=result.status,
                    frequency=result.frequency,
                    wireless_protocol=result.wireless_protocol,
                    channel_width=result.channel_width,
                    signal_strength=result.signal_strength,
                    noise_floor=result.noise_floor,
                    signal_to_noise_ratio=result.signal_to_noise_ratio,
                    ccq=result.ccq,
                    tx_rate=result.tx_rate,
                    rx_rate=result.rx_rate,
                    remote_mac_address=result.remote_mac_address,
                    remote_signal_strength=result.remote_signal_strength,
                    ping_avg_ms=result.ping_avg_ms,
                    ping_loss_percent=result.ping_loss_percent,
                    ping_success=result.ping_success,
                    error_message=result.error_message,
                    raw_json=json.dumps(result.to_dict()),
                )
                session.add(record)
                session.query(ScanRun).filter(ScanRun.id == run_id).update(
                    {ScanRun.result_count: ScanRun.result_count + 1}
                )
                session.commit()
                session.refresh(record)

                logger.debug(f"Saved {record!r}")
                return record

            except Exception as e:
                session.rollback()
                logger.error(f"Error saving scan result: {e}")
                raise
            finally:
                session.close()

    # History operations

    def get_recent_runs(self, limit: int = 10) -> List[ScanRun]:
        """
        Get recent sweeps, newest first.

        Args:
            limit: Maximum number of runs to return

        Returns:
            List of ScanRun objects
        """
        session = self.get_session()
        try:
            return (
                session.query(ScanRun)
                .order_by(ScanRun.started_at.desc(), ScanRun.id.desc())
                .limit(limit)
                .all()
            )
        finally:
            session.close()

    def get_run(self, run_id: int) -> Optional[ScanRun]:
        session = self.get_session()
        try:
            return session.query(ScanRun).filter(ScanRun.id == run_id).first()
        finally:
            session.close()

    def get_run_results(
        self,
        run_id: int,
        status: Optional[str] = None,
        limit: int = MAX_EXPORT_RECORDS,
    ) -> List[ScanRecord]:
        """
        Get the results of one run in the order they were emitted.

        Args:
            run_id: ScanRun id
            status: Optional status tag filter (base, success, error)
            limit: Maximum number of records

        Returns:
            List of ScanRecord objects
        """
        session = self.get_session()
        try:
            query = session.query(ScanRecord).filter(ScanRecord.run_id == run_id)
            if status:
                query = query.filter(ScanRecord.status == status)
            return query.order_by(ScanRecord.id.asc()).limit(limit).all()
        finally:
            session.close()

    def get_best_result(self, run_id: int) -> Optional[ScanRecord]:
        """Successful result with the highest signal-to-noise ratio."""
        session = self.get_session()
        try:
            return (
                session.query(ScanRecord)
                .filter(
                    ScanRecord.run_id == run_id,
                    ScanRecord.status == "success",
                    ScanRecord.signal_to_noise_ratio.isnot(None),
                )
                .order_by(ScanRecord.signal_to_noise_ratio.desc())
                .first()
            )
        finally:
            session.close()

    # Maintenance operations

    def cleanup_old_data(self, days: int = RESULT_RETENTION_DAYS) -> Dict[str, int]:
        """
        Delete runs older than ``days`` together with their results.

        Returns:
            Dictionary with cleanup statistics
        """
        session = self.get_session()
        try:
            cutoff = datetime.now() - timedelta(days=days)
            old_ids = [
                row.id for row in session.query(ScanRun.id).filter(ScanRun.started_at < cutoff)
            ]
            results_deleted = 0
            runs_deleted = 0
            if old_ids:
                results_deleted = (
                    session.query(ScanRecord)
                    .filter(ScanRecord.run_id.in_(old_ids))
                    .delete(synchronize_session=False)
                )
                runs_deleted = (
                    session.query(ScanRun)
                    .filter(ScanRun.id.in_(old_ids))
                    .delete(synchronize_session=False)
                )
            session.commit()

            stats = {"runs_deleted": runs_deleted, "results_deleted": results_deleted}
            logger.info(f"Cleanup complete: {stats}")
            return stats

        except Exception as e:
            session.rollback()
            logger.error(f"Error during cleanup: {e}")
            return {"runs_deleted": 0, "results_deleted": 0}
        finally:
            session.close()


def init_database(database_url: str = DATABASE_URL) -> DatabaseManager:
    """
    Initialize database and return manager.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        DatabaseManager instance
    """
    return DatabaseManager(database_url)

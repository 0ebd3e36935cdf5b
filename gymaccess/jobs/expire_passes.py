"""
Pass Expiration Job.

Moves every ACTIVE pass whose valid_until has passed to EXPIRED in one
conditional bulk update. The sweep is idempotent: a second sweep right
after the first expires nothing.

Runs on a fixed period in its own daemon thread, independent of request
handling and sharing only the database:
    python -m gymaccess.jobs.expire_passes

Single sweep (e.g. from cron):
    python -m gymaccess.jobs.expire_passes --once

Configuration:
- PASS_SWEEP_INTERVAL_SECONDS: Seconds between sweeps (default: 60)
"""

import argparse
import logging
import sys
import threading
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, sessionmaker

from gymaccess.config.pass_policy import get_pass_policy
from gymaccess.database.session import get_session_factory
from gymaccess.models.base import utc_now
from gymaccess.models.gym_pass import GymPass, PassStatus

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class ExpirationSweeper:
    """Expires overdue passes."""

    def __init__(self, db_session: Session, clock: Callable[[], datetime] = utc_now):
        """
        Initialize the sweeper.

        Args:
            db_session: Database session
            clock: Time source deciding what "overdue" means
        """
        self.db = db_session
        self.clock = clock

    def sweep_expired_passes(self) -> int:
        """
        Expire every active pass with valid_until <= now.

        Returns:
            Number of passes expired
        """
        now = self.clock()
        try:
            result = self.db.execute(
                update(GymPass)
                .where(
                    GymPass.status == PassStatus.ACTIVE.value,
                    GymPass.valid_until.is_not(None),
                    GymPass.valid_until <= now,
                )
                .values(status=PassStatus.EXPIRED.value)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        expired = result.rowcount or 0
        if expired:
            logger.info(
                "Expired passes",
                extra={"expired_count": expired, "cutoff": now.isoformat()},
            )
        return expired


class PassExpiryScheduler:
    """
    Runs the sweep every interval on a daemon thread.

    A failed sweep is logged and counted as zero; the next tick retries.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        interval_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session_factory = session_factory
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else get_pass_policy().sweep_interval_seconds
        )
        self.clock = clock
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> int:
        """Run one sweep in a fresh session. Never raises."""
        session = self.session_factory()
        try:
            return ExpirationSweeper(session, clock=self.clock).sweep_expired_passes()
        except Exception as e:
            logger.error(
                "Pass expiration sweep failed",
                extra={"error": str(e)},
                exc_info=True,
            )
            return 0
        finally:
            session.close()

    def _run(self) -> None:
        logger.info(
            "Pass expiry scheduler started",
            extra={"interval_seconds": self.interval_seconds},
        )
        while not self._stop_event.is_set():
            self.run_once()
            self._stop_event.wait(self.interval_seconds)
        logger.info("Pass expiry scheduler stopped")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="pass-expiry-scheduler",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


def main(argv=None):
    """Main entry point for the pass expiration job."""
    parser = argparse.ArgumentParser(description="Expire overdue gym passes")
    parser.add_argument("--once", action="store_true", help="Run a single sweep and exit")
    args = parser.parse_args(argv)

    try:
        session_factory = get_session_factory()
    except ValueError as e:
        logger.error("Pass expiration job failed", extra={"error": str(e)})
        sys.exit(1)

    if args.once:
        session = session_factory()
        try:
            expired = ExpirationSweeper(session).sweep_expired_passes()
        except Exception as e:
            logger.error("Pass expiration sweep failed", extra={"error": str(e)}, exc_info=True)
            sys.exit(1)
        finally:
            session.close()
        logger.info("Pass expiration sweep finished", extra={"expired_count": expired})
        return

    scheduler = PassExpiryScheduler(session_factory)
    scheduler.start()
    try:
        while scheduler.is_running:
            scheduler.join(1.0)
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping pass expiry scheduler")
    finally:
        scheduler.stop(timeout=5.0)


if __name__ == "__main__":
    main()

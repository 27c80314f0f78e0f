# lfs_ingest/tools/health_check.py
import argparse
import sys
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from lfs_ingest.core.config import config
from lfs_ingest.core.database import DatabaseClient, get_db
from lfs_ingest.core.errors import IngestError
from lfs_ingest.core.http import HttpClient
from lfs_ingest.pipeline.orchestrator import check_access
from lfs_ingest.tools.common import DB_SETTINGS
from lfs_ingest.utils.logger import get_logger

logger = get_logger(__name__)


class HealthChecker:
    """Health checker for the ingestion jobs: config, datastore, upstream site, data freshness"""

    def __init__(self, db: Optional[DatabaseClient] = None, http: Optional[HttpClient] = None, now=None):
        self._db = db
        self.http = http
        self.now = now or datetime.now(timezone.utc)
        self.checks_passed = 0
        self.checks_failed = 0
        self.warnings: List[str] = []
        self.errors: List[str] = []

    @property
    def db(self) -> DatabaseClient:
        if self._db is None:
            self._db = get_db()
        return self._db

    def _fail(self, message: str) -> bool:
        self.errors.append(message)
        self.checks_failed += 1
        return False

    def check_configuration(self) -> bool:
        logger.info("🔍 Checking configuration...")
        try:
            config.validate_config(DB_SETTINGS)
        except ValueError as e:
            return self._fail(f"Configuration error: {e}")
        logger.info("✅ Configuration is valid")
        self.checks_passed += 1
        return True

    def check_database_connection(self) -> bool:
        logger.info("🔍 Checking database connection...")
        if not self.db.health_check():
            return self._fail("Database connection failed")
        self.checks_passed += 1
        return True

    def check_upstream_access(self) -> bool:
        logger.info("🔍 Checking floorball.lv access...")
        if not check_access(self.http or HttpClient()):
            if config.CI:
                self.warnings.append("floorball.lv not reachable (CI)")
                self.checks_passed += 1
                return True
            return self._fail("floorball.lv not reachable")
        self.checks_passed += 1
        return True

    def check_recent_events(self, days: int = 14) -> bool:
        """Finished matches of the last `days` days that still have no events"""
        logger.info("🔍 Checking event coverage of recent matches...")
        try:
            start = (self.now - timedelta(days=days)).isoformat()
            matches = self.db.fetch_matches_in_range(start, self.now.isoformat(), status="finished")
            ids = [m["id"] for m in matches]
            with_events = {e["match_id"] for e in self.db.fetch_events_for_matches(ids)} if ids else set()
        except IngestError as e:
            return self._fail(f"Event coverage check failed: {e}")

        missing = [i for i in ids if i not in with_events]
        logger.info(f"Recent finished matches: {len(ids)}, without events: {len(missing)}")
        if missing:
            self.warnings.append(f"{len(missing)} recent finished matches without events")
        else:
            logger.info("✅ Recent matches have events")
        self.checks_passed += 1
        return True

    def run_all_checks(self) -> bool:
        logger.info("🏥 Starting health check...")
        if not self.check_configuration():
            return False
        for check in (self.check_database_connection, self.check_upstream_access, self.check_recent_events):
            check()
        return self.checks_failed == 0

    def print_summary(self):
        total_checks = self.checks_passed + self.checks_failed

        print("\n" + "=" * 60)
        print("🏥 HEALTH CHECK SUMMARY")
        print("=" * 60)
        print(f"Total checks: {total_checks}")
        print(f"✅ Passed: {self.checks_passed}")
        print(f"❌ Failed: {self.checks_failed}")
        print(f"⚠️ Warnings: {len(self.warnings)}")

        if self.warnings:
            print("\n⚠️ WARNINGS:")
            for warning in self.warnings:
                print(f"  - {warning}")

        if self.errors:
            print("\n❌ ERRORS:")
            for error in self.errors:
                print(f"  - {error}")

        if self.checks_failed == 0:
            print("\n🎉 ALL CHECKS PASSED!")
        else:
            print(f"\n⚠️ {self.checks_failed} CHECKS FAILED!")

        print("=" * 60)


def main(argv=None) -> int:
    argparse.ArgumentParser(description="Datastore + upstream health check").parse_args(argv)
    checker = HealthChecker()
    success = checker.run_all_checks()
    checker.print_summary()

    if success:
        logger.info("✅ All health checks passed")
        return 0
    logger.error("❌ Some health checks failed")
    return 1


if __name__ == "__main__":
    sys.exit(main())

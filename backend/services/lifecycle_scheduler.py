"""
Lifecycle Scheduler - periodic workspace dissolution

Runs the scheduled dissolution pass on a fixed interval
(LIFECYCLE_CHECK_INTERVAL) and tells connected clients about the
workspaces it dissolved.
"""
import asyncio
import logging
from datetime import datetime

from config.app_config import app_config
from database import get_db
from domain.value_objects import WorkspaceStatus
from repositories import WorkspaceRepository
from services.audit_logger import AuditLogger
from services.event_broadcaster import broadcaster
from services.lifecycle_service import LifecycleService

logger = logging.getLogger(__name__)


class LifecycleScheduler:
    """
    Background task that dissolves workspaces whose retention period ran out.
    """

    def __init__(self, interval: int = None):
        self.interval = interval or app_config.lifecycle_check_interval
        self.running = False
        self.task: asyncio.Task = None
        self.last_run: datetime = None
        self.last_result: dict = None

    def start(self):
        """Start the scheduler background task"""
        if self.running:
            logger.warning("Lifecycle scheduler already running")
            return

        self.running = True
        self.task = asyncio.create_task(self._run())
        logger.info(f"Lifecycle scheduler started (every {self.interval}s)")

    def stop(self):
        """Stop the scheduler background task"""
        if not self.running:
            return

        self.running = False
        if self.task:
            self.task.cancel()
        logger.info("Lifecycle scheduler stopped")

    async def _run(self):
        while self.running:
            try:
                await self.run_once()
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                logger.info("Lifecycle scheduler task cancelled")
                break
            except Exception as e:
                logger.error(f"Lifecycle scheduler error: {e}", exc_info=True)
                # Keep going, the next pass retries
                await asyncio.sleep(self.interval)

    async def run_once(self, now: datetime = None) -> dict:
        """
        Run one dissolution pass and broadcast the dissolved workspaces.

        Returns:
            The pass result (checked, dissolved, pending, failed)
        """
        db = next(get_db())
        try:
            result = LifecycleService(db, AuditLogger(db)).process_automatic_dissolution(now)
            workspace_repo = WorkspaceRepository(db)
            for workspace_id in result["dissolved"]:
                workspace = workspace_repo.get_by_id(workspace_id)
                if workspace is not None:
                    await broadcaster.workspace_status(workspace, WorkspaceStatus.WINDING_DOWN.value)
            for workspace_id in result["failed"]:
                await broadcaster.manager.send_error(
                    "dissolution_failed", "Scheduled dissolution failed", {"workspace_id": workspace_id}
                )
        finally:
            db.close()

        self.last_run = now or datetime.utcnow()
        self.last_result = result
        return result

    def get_status(self) -> dict:
        return {
            "running": self.running,
            "interval": self.interval,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_result": self.last_result,
        }


# Global scheduler instance
scheduler = LifecycleScheduler()


def start_scheduler():
    """Start the lifecycle scheduler (call on app startup)"""
    scheduler.start()


def stop_scheduler():
    """Stop the lifecycle scheduler (call on app shutdown)"""
    scheduler.stop()


def get_scheduler() -> LifecycleScheduler:
    """Get the global scheduler instance"""
    return scheduler

"""
Polling loop - feeds open issues to the pipeline.

Flow per cycle:
1. Poll: list open issues (pull requests excluded)
2. Process: hand each issue to IssuePipeline.process_work_item, one at a time
3. Sleep: wait ``check_interval`` seconds before the next cycle

The deduplicator inside the pipeline makes repeated cycles cheap: an issue
already handled in this process is refused immediately.
"""
from __future__ import annotations

import logging
import signal
import threading
import uuid
from typing import TYPE_CHECKING, Optional

from ..engine.events import EventSink, EventTypes, ProgressEvent, null_sink
from ..integrations.base import IssueTracker
from ..retry import RetryPolicy
from .pipeline import IssuePipeline

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)


class PollingLoop:
    """Main loop for processing open issues."""

    def __init__(
        self,
        pipeline: IssuePipeline,
        tracker: IssueTracker,
        retry: Optional[RetryPolicy] = None,
        interval: int = 300,
        emit: EventSink = null_sink,
    ):
        """Initialize polling loop.

        Args:
            pipeline: Pipeline that processes each issue
            tracker: Source of open issues
            retry: Retry policy for listing issues
            interval: Seconds between poll cycles
            emit: Sink for poll progress events
        """
        self.pipeline = pipeline
        self.tracker = tracker
        self.retry = retry or RetryPolicy()
        self.interval = interval
        self.emit = emit
        self.running = False
        self.worker_id = f"poller-{uuid.uuid4().hex[:8]}"
        self._wake = threading.Event()

        logger.info(
            f"Poller initialized: id={self.worker_id}, interval={self.interval}s"
        )

    def run_cycle(self) -> int:
        """List open issues and process each of them.

        Returns:
            Number of issues the pipeline processed, duplicates excluded
        """
        self.emit(ProgressEvent(type=EventTypes.POLL_STARTED, message="Checking open issues"))
        try:
            issues = self.retry.call(self.tracker.list_open_issues)
        except Exception as e:
            logger.error(f"Poll cycle failed: {e}")
            self.emit(ProgressEvent(type=EventTypes.POLL_FAILED, message=str(e)))
            return 0

        if not issues:
            logger.info("No open issues")
            self.emit(ProgressEvent(type=EventTypes.POLL_IDLE, message="No open issues"))
            return 0

        logger.info(f"Found {len(issues)} open issue(s)")
        processed = 0
        for item in issues:
            if self._wake.is_set():
                logger.info("Stop requested, leaving remaining issues for later")
                break
            if self.pipeline.process_work_item(item) is not None:
                processed += 1
        return processed

    def start(self) -> None:
        """Start the loop. Runs until stopped."""
        self.running = True
        logger.info(f"Poller {self.worker_id} starting...")

        if threading.current_thread() is threading.main_thread():
            signal.signal(signal.SIGINT, self._signal_handler)
            signal.signal(signal.SIGTERM, self._signal_handler)

        try:
            while self.running:
                try:
                    self.run_cycle()
                except Exception as e:
                    logger.exception(f"Error in poll loop: {e}")
                self._wake.wait(self.interval)
        finally:
            logger.info(f"Poller {self.worker_id} stopped")

    def stop(self) -> None:
        """Signal the loop to stop after the current issue."""
        logger.info(f"Poller {self.worker_id} stopping...")
        self.running = False
        self._wake.set()

    def run_in_thread(self) -> threading.Thread:
        """Start the loop on a daemon thread."""
        thread = threading.Thread(target=self.start, name=self.worker_id, daemon=True)
        thread.start()
        return thread

    def _signal_handler(self, signum, frame) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, shutting down...")
        self.stop()


def run_worker(settings: "Settings", once: bool = False) -> None:
    """Build the runtime from ``settings`` and run the poll loop.

    Args:
        settings: Application settings (credentials already checked)
        once: Run a single cycle instead of looping
    """
    from ..runtime import build_runtime

    runtime = build_runtime(settings)
    try:
        if once:
            runtime.loop.run_cycle()
        else:
            runtime.loop.start()
    finally:
        runtime.close()

"""
Background TTL sweep for the S3 storage backend.

Every cleanup interval the sweeper lists the whole bucket and deletes objects
whose LastModified age exceeds the object TTL. Failures while listing or
deleting are logged and counted; they never reach request-serving callers and
never abort the rest of a tick.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import SweepIterationError

logger = logging.getLogger(__name__)

STOP_JOIN_TIMEOUT = 5.0  # seconds to wait for an in-flight tick on stop


@dataclass
class SweepStats:
    """Outcome of a single sweep tick."""

    deleted: int = 0
    failures: List[SweepIterationError] = field(default_factory=list)

    @property
    def errors(self) -> int:
        return len(self.failures)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_missing_key_error(exc: ClientError) -> bool:
    response = getattr(exc, 'response', {}) or {}
    status_code = (response.get('ResponseMetadata') or {}).get('HTTPStatusCode')
    error_code = str((response.get('Error') or {}).get('Code') or '')
    return status_code == 404 or error_code in ('404', 'NoSuchKey', 'NotFound')


class ExpiredObjectSweeper:
    """Daemon thread that removes expired objects from a bucket."""

    def __init__(self, client, bucket: str, object_ttl: timedelta, interval: timedelta):
        self._client = client
        self._bucket = bucket
        self._object_ttl = object_ttl
        self._interval = interval
        self._stop_event = threading.Event()
        self._state_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> None:
        """Start the sweep thread. The sweeper cannot be restarted once stopped."""
        with self._state_lock:
            if self._thread is not None or self._stop_event.is_set():
                return
            self._thread = threading.Thread(
                target=self._run,
                name=f"S3Sweeper-{self._bucket}",
                daemon=True,
            )
            self._thread.start()

    def stop(self, timeout: float = STOP_JOIN_TIMEOUT) -> None:
        """Signal the loop to exit and wait briefly for it. Safe to call repeatedly."""
        with self._state_lock:
            already_stopped = self._stop_event.is_set()
            self._stop_event.set()
            thread = self._thread
        if already_stopped or thread is None:
            return
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning(f"S3 cleanup routine still finishing a sweep after {timeout}s; not waiting further")

    def _run(self) -> None:
        interval_seconds = self._interval.total_seconds()
        logger.info(f"S3 cleanup routine started (interval: {self._interval}, TTL: {self._object_ttl})")
        # Event.wait doubles as the ticker and the cancellation check between ticks
        while not self._stop_event.wait(interval_seconds):
            try:
                self.sweep_once()
            except Exception as e:
                logger.error(f"S3 cleanup tick failed: {e}", exc_info=True)
        logger.info("S3 cleanup routine stopped")

    def sweep_once(self, now: Optional[datetime] = None) -> SweepStats:
        """Run one sweep over the bucket and return the counts."""
        now = now or _utcnow()
        stats = SweepStats()

        kwargs = {'Bucket': self._bucket}
        while True:
            try:
                page = self._client.list_objects_v2(**kwargs)
            except (ClientError, BotoCoreError) as exc:
                self._record(stats, SweepIterationError(f"Error listing objects: {exc}"))
                break

            for obj in page.get('Contents') or []:
                if self._stop_event.is_set():
                    break
                self._sweep_object(obj, now, stats)

            if self._stop_event.is_set() or not page.get('IsTruncated'):
                break
            token = page.get('NextContinuationToken')
            if not token:
                break
            kwargs['ContinuationToken'] = token

        if stats.deleted > 0 or stats.errors > 0:
            logger.info(f"S3 cleanup completed: deleted {stats.deleted} objects, {stats.errors} errors")
        return stats

    def _sweep_object(self, obj: dict, now: datetime, stats: SweepStats) -> None:
        key = obj.get('Key')
        last_modified = obj.get('LastModified')
        if not key or last_modified is None:
            self._record(stats, SweepIterationError(f"Listing entry without key or LastModified: {obj!r}", key=key))
            return
        if last_modified.tzinfo is None:
            last_modified = last_modified.replace(tzinfo=timezone.utc)

        if now - last_modified <= self._object_ttl:
            return

        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except ClientError as exc:
            if is_missing_key_error(exc):
                # Another instance sharing the bucket got there first
                return
            self._record(stats, SweepIterationError(f"Failed to delete expired object {key}: {exc}", key=key))
            return
        except BotoCoreError as exc:
            self._record(stats, SweepIterationError(f"Failed to delete expired object {key}: {exc}", key=key))
            return
        stats.deleted += 1

    @staticmethod
    def _record(stats: SweepStats, error: SweepIterationError) -> None:
        stats.failures.append(error)
        logger.warning(str(error))

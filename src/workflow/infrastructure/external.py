"""
Workflow External Service Integrations
======================================

External services for the editorial workflow:
- YAML SLA policy with file watcher (hot reload)
- Webhook notifier that hands reminder notices to email/push delivery
- APScheduler job that runs the reminder dispatcher
"""

import asyncio
import threading
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from src.config import settings
from src.core import ConfigurationException, NotificationException
from src.shared.infrastructure.logging import get_logger
from src.workflow.application.services import INotifier, IPolicyProvider
from src.workflow.domain import ReminderNotice, SLAPolicy
from src.workflow.infrastructure.repositories import load_policy_file

logger = get_logger(__name__)


class PolicyFileHandler(FileSystemEventHandler):
    """Watchdog event handler for SLA policy file changes."""

    def __init__(self, manager: "PolicyConfigManager", policy_path: Path):
        self.manager = manager
        self.policy_path = policy_path
        super().__init__()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.policy_path.resolve():
            logger.info(f"SLA policy file changed: {event.src_path}")
            self.manager.reload()


class PolicyConfigManager(IPolicyProvider):
    """
    Thread-safe SLA policy holder with hot-reload support.

    Uses watchdog to monitor the policy file; a broken edit keeps the last
    good policy in place.
    """

    def __init__(self):
        self._policy: Optional[SLAPolicy] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> SLAPolicy:
        """Initial policy load; an invalid file fails startup."""
        self._path = Path(path)
        policy = load_policy_file(self._path)
        with self._lock:
            self._policy = policy
        return policy

    def reload(self) -> bool:
        """Reload policy from file."""
        if self._path is None:
            return False

        try:
            policy = load_policy_file(self._path)
        except (ConfigurationException, OSError, ValueError) as e:
            logger.error(f"Failed to reload SLA policy, keeping previous: {e}")
            return False

        with self._lock:
            self._policy = policy
        logger.info("SLA policy reloaded successfully")
        return True

    def start_watching(self) -> None:
        """
        Start watching the policy file for changes.

        Skipped when the file does not exist or the platform cannot watch.
        """
        if self._path is None:
            raise RuntimeError("Policy not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(f"Policy file doesn't exist, skipping file watch: {self._path}")
            return

        try:
            self._observer = Observer()
            self._observer.schedule(
                PolicyFileHandler(self, self._path),
                str(self._path.parent),
                recursive=False
            )
            self._observer.start()
            logger.info(f"Started watching policy file: {self._path}")
        except OSError as e:
            logger.warning(f"File watching not available, using static policy: {e}")
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    def get_policy(self) -> SLAPolicy:
        with self._lock:
            if self._policy is None:
                raise RuntimeError("SLA policy not loaded")
            return self._policy


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for the notification webhook.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if self._clock() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = self._clock()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class WebhookNotifier(INotifier):
    """
    Posts reminder notices to the notification webhook.

    The receiving service owns email/push delivery. Retries with exponential
    backoff and stops calling a failing webhook via the circuit breaker.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._webhook_url = webhook_url if webhook_url is not None else settings.notification_webhook_url
        self._timeout = timeout_seconds or settings.notification_timeout_seconds
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._circuit_breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    @staticmethod
    def _build_payload(notice: ReminderNotice) -> Dict[str, Any]:
        days = notice.days_until_deadline
        subject = f"Reminder: \"{notice.title}\" is due in {days} day{'s' if days != 1 else ''}"
        return {
            "type": "DEADLINE_APPROACHING",
            "subject": subject,
            "link": f"/dashboard/submissions/{notice.submission_id}",
            "send_email": True,
            "reminder": notice.to_dict(),
        }

    async def send_reminder(self, notice: ReminderNotice) -> bool:
        """
        Send a reminder notice.

        Returns:
            True if the webhook accepted it, False when delivery was skipped
            (no webhook configured or circuit open)

        Raises:
            NotificationException: every attempt failed
        """
        if not self._webhook_url:
            logger.debug("Notification webhook not configured, skipping reminder")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping reminder",
                extra={"submission_id": notice.submission_id}
            )
            return False

        payload = self._build_payload(notice)

        for attempt in range(self._max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=payload)

                if response.is_success:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Reminder notice delivered",
                        extra={
                            "submission_id": notice.submission_id,
                            "sequence": notice.sequence
                        }
                    )
                    return True

                logger.warning(
                    "Notification webhook returned an error status",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )
            except httpx.HTTPError as e:
                logger.error(
                    "Notification webhook call failed",
                    extra={
                        "error": str(e),
                        "attempt": attempt + 1,
                        "submission_id": notice.submission_id
                    }
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._backoff_base * 2 ** attempt)

        self._circuit_breaker.record_failure()
        raise NotificationException(
            f"Reminder not delivered after {self._max_retries} attempts",
            {"submission_id": notice.submission_id, "sequence": notice.sequence}
        )

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


class ReminderScheduler:
    """
    Wrapper around APScheduler for the periodic reminder dispatch.

    Manages the lifecycle of the scheduler and its single job.
    """

    def __init__(self, interval_seconds: int = 3600):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func: Callable[[], Awaitable[Any]]) -> None:
        """Start the scheduler with the given job function."""
        if self._running:
            logger.warning("Reminder scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id="deadline_reminders",
            name="Deadline Reminder Job",
            misfire_grace_time=300,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info(
            "Reminder scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("Reminder scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running

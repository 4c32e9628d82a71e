# xmlwatcher/webhook/client.py

"""
Webhook client: deliver notifications and classify the outcome
"""
import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

import httpx

from ..utils.config import SUPPORTED_METHODS, WatchConfig, mask_url
from .overwrite import OverwriteApplier
from .payload import NotificationPayload

logger = logging.getLogger(__name__)

# Longest response body quoted in a failure log line
MAX_LOGGED_BODY = 2000


@dataclass
class DispatchResult:
    """Outcome of one webhook dispatch"""
    status_code: Optional[int] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""
    error: Optional[str] = None  # transport failure, no status received
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.error is None and self.status_code is not None \
            and 200 <= self.status_code < 300

    @property
    def content_type(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return ""

    @property
    def is_xml(self) -> bool:
        return "xml" in self.content_type.lower()

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class WebhookDispatcher:
    """
    Send notifications to the configured webhook

    Handles outcome logging and, when enabled, hands XML responses to the
    OverwriteApplier.
    """

    def __init__(self, config: WatchConfig,
                 client: Optional[httpx.AsyncClient] = None,
                 overwriter: Optional[OverwriteApplier] = None):
        """
        Initialize dispatcher

        Args:
            config: Watch configuration
            client: HTTP client to use; one is created (and owned) if omitted
            overwriter: Applier for response-driven overwrites
        """
        self.config = config
        self.overwriter = overwriter
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=config.http_timeout)

        self.method = config.webhook_method
        if self.method not in SUPPORTED_METHODS:
            logger.warning(f"Unsupported webhook method '{self.method}', using POST")
            self.method = "POST"

        if config.overwrite_with_response and overwriter is None:
            logger.warning("Overwrite with response is enabled but no overwriter was given")

        self.stats = {
            'sent': 0,
            'succeeded': 0,
            'failed_status': 0,
            'failed_transport': 0,
            'retries': 0,
            'overwrites': 0,
        }

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()

    async def _send_once(self, payload: NotificationPayload) -> DispatchResult:
        try:
            response = await self.client.request(
                self.method,
                self.config.webhook_url,
                content=payload.to_json().encode("utf-8"),
                headers={"Content-Type": "application/json"},
                timeout=self.config.http_timeout,
            )
        except httpx.HTTPError as e:
            return DispatchResult(error=f"{type(e).__name__}: {e}")

        return DispatchResult(
            status_code=response.status_code,
            headers=response.headers,
            body=response.content,
        )

    def _should_retry(self, result: DispatchResult, attempt: int) -> bool:
        policy = self.config.retry
        if not policy.enabled or attempt > policy.max_retries:
            return False
        if result.error is not None:
            return True
        return policy.retry_on_status and result.status_code is not None \
            and result.status_code >= 500

    async def send(self, payload: NotificationPayload) -> DispatchResult:
        """
        Deliver the payload, retrying only if a retry policy is configured

        Returns:
            DispatchResult of the last attempt
        """
        attempt = 0
        while True:
            attempt += 1
            self.stats['sent'] += 1
            result = await self._send_once(payload)

            if not self._should_retry(result, attempt):
                break

            delay = self.config.retry.delay_for(attempt)
            self.stats['retries'] += 1
            reason = result.error or f"HTTP {result.status_code}"
            logger.warning(
                f"Webhook attempt {attempt} for {payload.filepath} failed ({reason}), "
                f"retrying in {delay:.1f}s"
            )
            await asyncio.sleep(delay)

        result.attempts = attempt
        return result

    async def dispatch(self, path: Path, payload: NotificationPayload) -> DispatchResult:
        """
        Send the notification for `path`, log the outcome and overwrite if due

        Per-event failures are logged here and never raised.
        """
        logger.info(
            f"Sending webhook for {path} ({self.method} {mask_url(self.config.webhook_url)})",
            extra={'path': str(path)},
        )
        result = await self.send(payload)

        if result.error is not None:
            self.stats['failed_transport'] += 1
            logger.error(
                f"Webhook request failed for {path}: {result.error}",
                extra={'path': str(path), 'error': result.error, 'attempts': result.attempts},
            )
            return result

        if not result.ok:
            self.stats['failed_status'] += 1
            logger.error(
                f"Webhook failed for {path} (HTTP {result.status_code}): "
                f"{result.text[:MAX_LOGGED_BODY]}",
                extra={'path': str(path), 'status': result.status_code,
                       'attempts': result.attempts},
            )
            return result

        self.stats['succeeded'] += 1
        logger.info(
            f"Webhook sent successfully for {path} (HTTP {result.status_code})",
            extra={'path': str(path), 'status': result.status_code},
        )

        if self.should_overwrite(result):
            if await self.overwriter.apply_async(path, result.body):
                self.stats['overwrites'] += 1

        return result

    def should_overwrite(self, result: DispatchResult) -> bool:
        """All overwrite conditions hold for this result"""
        if not self.config.overwrite_enabled or self.overwriter is None:
            return False
        if not result.ok:
            return False
        if not result.is_xml:
            logger.debug(f"Response content-type '{result.content_type}' is not XML, not overwriting")
            return False
        if not result.body:
            logger.debug("Response body is empty, not overwriting")
            return False
        return True

"""Best-effort push delivery through the Expo push relay."""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass

import httpx

from taskmarket.core.logging import span
from taskmarket.schemas.notification import PushMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PushReport:
    sent: int
    failed: int
    total: int


class PushSender:
    """Sends push messages in bounded chunks. Never raises on delivery failure.

    Cumulative counters (``sent_total`` / ``failed_total``) are kept for the
    health endpoint.
    """

    def __init__(
        self,
        *,
        url: str,
        chunk_size: int = 100,
        timeout: float = 10.0,
        enabled: bool = True,
        client: httpx.Client | None = None,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self._url = url
        self._chunk_size = chunk_size
        self._enabled = enabled
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)
        self._lock = threading.Lock()
        self.sent_total = 0
        self.failed_total = 0

    def chunks(self, messages: Sequence[PushMessage]) -> list[list[PushMessage]]:
        return [list(messages[i : i + self._chunk_size]) for i in range(0, len(messages), self._chunk_size)]

    def send(self, messages: Sequence[PushMessage]) -> PushReport:
        if not messages:
            return PushReport(sent=0, failed=0, total=0)
        if not self._enabled:
            logger.debug("Push disabled, dropping %d messages", len(messages))
            return PushReport(sent=0, failed=0, total=len(messages))

        sent = 0
        failed = 0
        with span("push_sender.send", total=len(messages)):
            for index, chunk in enumerate(self.chunks(messages), start=1):
                ok, bad = self._send_chunk(index, chunk)
                sent += ok
                failed += bad

        with self._lock:
            self.sent_total += sent
            self.failed_total += failed

        if failed:
            logger.warning("Push delivery: %d sent, %d failed (of %d)", sent, failed, len(messages))
        else:
            logger.info("Push delivery: %d sent", sent)
        return PushReport(sent=sent, failed=failed, total=len(messages))

    def _send_chunk(self, index: int, chunk: list[PushMessage]) -> tuple[int, int]:
        try:
            response = self._client.post(
                self._url,
                json=[m.to_wire() for m in chunk],
                headers={"Accept": "application/json", "Accept-Encoding": "gzip, deflate"},
            )
        except httpx.HTTPError as e:
            logger.error("Error sending push chunk %d: %s", index, e)
            return 0, len(chunk)

        if response.is_error:
            logger.error("Failed to send push chunk %d: HTTP %s", index, response.status_code)
            return 0, len(chunk)

        try:
            receipts = response.json().get("data")
        except ValueError:
            receipts = None

        if not isinstance(receipts, list):
            return len(chunk), 0

        ok = 0
        for receipt in receipts:
            if isinstance(receipt, dict) and receipt.get("status") == "ok":
                ok += 1
            else:
                logger.warning("Push ticket rejected: %s", receipt)
        return ok, len(chunk) - ok

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

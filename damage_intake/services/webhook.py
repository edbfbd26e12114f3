"""Notification to the external analysis workflow.

The workflow analyses the images on its own schedule and writes the result
back to the assessment record; this side only tells it that images exist.
A failed notification is logged and otherwise ignored.
"""
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class AnalysisWebhook:
    def __init__(
        self,
        url: str,
        token: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.token = token
        self.timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def notify(self, payload: dict[str, Any]) -> bool:
        """POST ``payload``; True only on a 2xx answer. Never raises for I/O."""
        if not self.enabled:
            logger.info("WEBHOOK_URL not configured, skipping analysis notification")
            return False

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error("Error calling analysis webhook: %s", e)
            return False

        if not response.is_success:
            logger.warning("Analysis webhook call failed: %s %s", response.status_code, response.reason_phrase)
            return False

        logger.info("Analysis webhook notified for %s", payload.get("assessmentId") or payload.get("filename"))
        return True

"""
learnlytics/services/insight_client.py
Natural-language insight service client

Posts {type, data} requests to the insight service and validates the
answer. Every failure surfaces as an ExternalServiceError subclass:

- ExternalTimeoutError: no answer within the per-call timeout
- MalformedInsightError: answer is not JSON or fails schema validation
- ExternalServiceError: transport error, non-2xx status, or an
  {"error": ...} payload

No retries: callers fall back on the first failure.
"""
import asyncio
import json
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from learnlytics.config.settings import settings
from learnlytics.exceptions import (
    ExternalServiceError,
    ExternalTimeoutError,
    MalformedInsightError,
)
from learnlytics.schemas.insights import (
    DetailedSummary,
    ExternalQuote,
    ExternalSubjectInsight,
    InsightRequest,
    InsightRequestType,
)

logger = logging.getLogger(__name__)


def _decode_nested(value: Any, field: str) -> Any:
    """The service may return a nested payload as a JSON-encoded string"""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise MalformedInsightError(f"{field} is not valid JSON: {e.msg}")
    return value


class InsightClient:
    """
    Async client for the insight service.

    Pass an httpx.AsyncClient to share a connection pool (or to inject a
    mock transport in tests); otherwise one is created per call.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.base_url = base_url if base_url is not None else settings.INSIGHT_SERVICE_URL
        self.api_key = api_key if api_key is not None else settings.INSIGHT_SERVICE_API_KEY
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None
            else settings.INSIGHT_SERVICE_TIMEOUT_SECONDS
        )
        self._http_client = http_client

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post(self, client: httpx.AsyncClient, body: Dict[str, Any]) -> httpx.Response:
        return await client.post(self.base_url, json=body, headers=self._headers())

    async def request(self, request_type: InsightRequestType, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send one request and return the decoded JSON object.

        Raises:
            ExternalServiceError (or subclass) on any failure
        """
        if not self.configured:
            raise ExternalServiceError("Insight service URL not configured")

        body = InsightRequest(type=request_type, data=data).model_dump()

        try:
            if self._http_client is not None:
                response = await asyncio.wait_for(
                    self._post(self._http_client, body),
                    timeout=self.timeout_seconds
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await asyncio.wait_for(
                        self._post(client, body),
                        timeout=self.timeout_seconds
                    )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"[INSIGHT CLIENT] {request_type} timed out after {self.timeout_seconds}s")
            raise ExternalTimeoutError(self.timeout_seconds)
        except httpx.HTTPError as e:
            logger.warning(f"[INSIGHT CLIENT] {request_type} transport error: {type(e).__name__}")
            raise ExternalServiceError(f"Insight service request failed: {e}")

        if response.status_code >= 400:
            logger.warning(f"[INSIGHT CLIENT] {request_type} returned HTTP {response.status_code}")
            raise ExternalServiceError(f"Insight service returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedInsightError(f"response is not JSON: {e}")

        if not isinstance(payload, dict):
            raise MalformedInsightError("response is not a JSON object")
        if payload.get("error"):
            logger.warning(f"[INSIGHT CLIENT] {request_type} error payload: {payload['error']}")
            raise ExternalServiceError(f"Insight service error: {payload['error']}")

        return payload

    # ================= TYPED REQUESTS =================

    async def subject_insight(self, data: Dict[str, Any]) -> ExternalSubjectInsight:
        """
        Accepts the insight object directly or wrapped as {"insight": ...},
        where the wrapped value may itself be a JSON string.
        """
        payload = await self.request("subject-insight", data)
        candidate = _decode_nested(payload["insight"], "insight") if "insight" in payload else payload
        if not isinstance(candidate, dict):
            raise MalformedInsightError("insight is not an object")
        try:
            return ExternalSubjectInsight.model_validate(candidate)
        except ValidationError as e:
            raise MalformedInsightError(f"{e.error_count()} validation error(s) in insight")

    async def detailed_summary(self, data: Dict[str, Any]) -> DetailedSummary:
        payload = await self.request("detailed-summary", data)
        if not payload.get("summary"):
            raise MalformedInsightError("response has no summary")
        summary = _decode_nested(payload["summary"], "summary")
        try:
            return DetailedSummary.model_validate(summary)
        except ValidationError as e:
            raise MalformedInsightError(f"{e.error_count()} validation error(s) in summary")

    async def motivational_quote(self, average_score: int) -> str:
        payload = await self.request("motivational-quote", {"avgScore": average_score})
        try:
            return ExternalQuote.model_validate(payload).quote
        except ValidationError:
            raise MalformedInsightError("response has no quote")

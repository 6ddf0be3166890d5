"""
Scoring Oracle Client

HTTP client for the external institution-matching service. The oracle gets
the rendered counsel request text and answers with scored institutions.
"""

import logging
from typing import List, Optional

import httpx
from pydantic import ValidationError

from .constants import ORACLE_URL, ORACLE_TIMEOUT_SECONDS
from .contracts import OracleCandidate
from .errors import OracleUnavailable

logger = logging.getLogger(__name__)


class OracleClient:
    """
    Thin synchronous wrapper around the oracle's REST API.

    Every failure mode (timeout, connection error, non-2xx, malformed body)
    surfaces as OracleUnavailable so the caller never persists partial state.
    """

    def __init__(
        self,
        base_url: str = ORACLE_URL,
        timeout: float = ORACLE_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            headers={"Content-Type": "application/json"},
        )

    def score(self, counsel_request_text: str) -> List[OracleCandidate]:
        """
        Ask the oracle to score institutions for a counsel request.

        Returns:
            Candidates in whatever order the oracle sent them (may be empty)
        """
        logger.info(f"Oracle request to {self.base_url} ({len(counsel_request_text)} chars)")
        try:
            with self._client() as client:
                resp = client.post(
                    "/api/v1/recommendations",
                    json={"counsel_request_text": counsel_request_text},
                )
        except httpx.TimeoutException as e:
            logger.warning(f"Oracle timed out after {self.timeout}s: {e}")
            raise OracleUnavailable(f"Recommendation service timed out after {self.timeout:g}s") from e
        except httpx.HTTPError as e:
            logger.warning(f"Oracle transport error: {e}")
            raise OracleUnavailable("Recommendation service is unreachable") from e

        if resp.status_code != 200:
            detail = resp.text
            try:
                detail = resp.json().get("detail", detail)
            except (ValueError, AttributeError):
                pass
            logger.error(f"Oracle answered {resp.status_code}: {detail}")
            raise OracleUnavailable(f"Recommendation service error ({resp.status_code}): {detail}")

        try:
            data = resp.json()
            raw = data["recommendations"]
            candidates = [OracleCandidate.model_validate(item) for item in raw]
        except (ValueError, KeyError, TypeError, ValidationError) as e:
            logger.error(f"Oracle returned a malformed body: {e}")
            raise OracleUnavailable("Recommendation service returned a malformed response") from e

        logger.info(f"Oracle returned {len(candidates)} candidates")
        return candidates

    def health_check(self) -> bool:
        try:
            with self._client() as client:
                resp = client.get("/api/v1/health")
            healthy = resp.status_code == 200 and resp.json().get("status") == "healthy"
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning(f"Oracle health check failed: {e}")
            return False
        logger.info(f"Oracle health check: {'healthy' if healthy else 'unhealthy'}")
        return healthy

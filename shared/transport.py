"""
HTTP transport for the GitHub REST API.

Issues authenticated (or anonymous) requests through ``httpx.AsyncClient`` and
classifies each response as success, rate-limited or HTTP error. The transport
never retries; retry and abort policy belongs to its callers.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from config.settings import GitHubSettings, settings
from shared.exceptions import MalformedResponseError, RateLimitExceeded, UpstreamError
from shared.models import ModelConverter, RateLimitStatus

logger = logging.getLogger(__name__)


class ResponseKind(Enum):
    """Classification of a transport response."""
    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    HTTP_ERROR = "http_error"


@dataclass
class TransportResponse:
    """Outcome of a single API request."""

    kind: ResponseKind
    status_code: Optional[int] = None
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.kind is ResponseKind.SUCCESS

    @property
    def rate_limited(self) -> bool:
        return self.kind is ResponseKind.RATE_LIMITED

    @property
    def empty_repository(self) -> bool:
        """GitHub answers 409 Conflict for commit queries on a repository without commits."""
        return self.kind is ResponseKind.HTTP_ERROR and self.status_code == 409

    @property
    def rate_limit_reset(self) -> Optional[int]:
        value = self.headers.get("x-ratelimit-reset")
        return int(value) if value and value.isdigit() else None


def is_rate_limited(response: httpx.Response) -> bool:
    """Tell a rate-limit refusal apart from other 4xx responses."""
    if response.status_code == 429:
        return True
    if response.status_code != 403:
        return False
    if response.headers.get("x-ratelimit-remaining") == "0":
        return True
    if "retry-after" in response.headers:
        return True
    try:
        message = str(response.json().get("message", ""))
    except (ValueError, AttributeError):
        message = response.text
    return "rate limit" in message.lower()


class GitHubTransport:
    """Async client for the versioned GitHub REST API."""

    def __init__(
        self,
        github_settings: Optional[GitHubSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = github_settings or settings.github
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=self.settings.api_url,
            timeout=self.settings.timeout,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        if self._owns_client:
            await self.client.aclose()

    def build_headers(self) -> Dict[str, str]:
        """Headers sent with every request; bearer auth only when configured."""
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self.settings.api_version,
            "User-Agent": self.settings.user_agent,
        }
        if self.settings.is_authenticated:
            headers["Authorization"] = f"Bearer {self.settings.token.get_secret_value()}"
        return headers

    def _resolve(self, path_or_url: str) -> str:
        # Detail URLs come embedded in list items and are used verbatim.
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        return f"{self.settings.api_url}/{path_or_url.lstrip('/')}"

    async def request(
        self, path_or_url: str, params: Optional[Dict[str, Any]] = None
    ) -> TransportResponse:
        """Issue a GET request and classify the response."""
        url = self._resolve(path_or_url)
        try:
            response = await self.client.get(url, params=params, headers=self.build_headers())
        except httpx.TransportError as e:
            logger.warning(f"Network error requesting {url}: {e}")
            return TransportResponse(kind=ResponseKind.HTTP_ERROR, reason=str(e) or type(e).__name__)

        headers = {key.lower(): value for key, value in response.headers.items()}

        if is_rate_limited(response):
            logger.warning(
                f"Rate limited on {url} (status {response.status_code}, "
                f"reset {headers.get('x-ratelimit-reset', 'unknown')})"
            )
            return TransportResponse(
                kind=ResponseKind.RATE_LIMITED,
                status_code=response.status_code,
                headers=headers,
                reason="rate limit exceeded",
            )

        if response.is_success:
            if not response.content:
                # 204 No Content, e.g. contributors of an empty repository
                return TransportResponse(
                    kind=ResponseKind.SUCCESS,
                    status_code=response.status_code,
                    headers=headers,
                )
            try:
                body = response.json()
            except ValueError:
                return TransportResponse(
                    kind=ResponseKind.HTTP_ERROR,
                    status_code=response.status_code,
                    headers=headers,
                    reason="response body is not JSON",
                )
            return TransportResponse(
                kind=ResponseKind.SUCCESS,
                status_code=response.status_code,
                body=body,
                headers=headers,
            )

        logger.debug(f"GET {url} failed with HTTP {response.status_code}")
        return TransportResponse(
            kind=ResponseKind.HTTP_ERROR,
            status_code=response.status_code,
            headers=headers,
            reason=f"HTTP {response.status_code}",
        )

    async def get_rate_limit(self) -> RateLimitStatus:
        """Read the core rate limit snapshot from ``/rate_limit``."""
        result = await self.request("/rate_limit")
        if result.rate_limited:
            raise RateLimitExceeded(reset=result.rate_limit_reset)
        if not result.ok:
            raise UpstreamError(None, result.status_code, result.reason)
        try:
            return ModelConverter.rate_limit_from_payload(result.body)
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponseError(None, f"rate limit payload missing resources.core: {e}")


__all__ = ["ResponseKind", "TransportResponse", "GitHubTransport", "is_rate_limited"]

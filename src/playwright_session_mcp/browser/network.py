"""
Network request capture

Each page keeps a bounded log of its completed requests: one entry per
response received and per request that failed. Once a log holds
MAX_NETWORK_REQUESTS entries the oldest is evicted for every new one.
"""

import time
from collections import deque
from dataclasses import dataclass
from typing import Any

MAX_NETWORK_REQUESTS = 1000

# Playwright resource types hidden by default when they loaded successfully
STATIC_RESOURCE_TYPES = frozenset({"image", "font", "stylesheet", "script", "media"})


@dataclass(frozen=True)
class StoredRequest:
    method: str
    url: str
    resource_type: str
    status: int | None = None
    failure: str | None = None
    timestamp: int = 0  # milliseconds since epoch

    @classmethod
    def from_response(cls, response: Any) -> "StoredRequest":
        """Build from a Playwright Response."""
        request = response.request
        return cls(
            method=request.method,
            url=request.url,
            resource_type=request.resource_type,
            status=response.status,
            timestamp=int(time.time() * 1000),
        )

    @classmethod
    def from_failed_request(cls, request: Any) -> "StoredRequest":
        """Build from a Playwright Request that never got a response."""
        return cls(
            method=request.method,
            url=request.url,
            resource_type=request.resource_type,
            failure=request.failure or "unknown error",
            timestamp=int(time.time() * 1000),
        )

    @property
    def succeeded(self) -> bool:
        return self.failure is None and (self.status is None or 200 <= self.status < 400)

    @property
    def is_static(self) -> bool:
        return self.resource_type in STATIC_RESOURCE_TYPES

    def format(self) -> str:
        outcome = f"[FAILED] {self.failure}" if self.failure else f"[{self.status}]"
        return f"[{self.method}] {self.url} => {outcome}"


class RequestLog:
    """Bounded FIFO of completed requests for one page."""

    def __init__(self, max_requests: int = MAX_NETWORK_REQUESTS):
        self._requests: deque[StoredRequest] = deque(maxlen=max_requests)

    def __len__(self) -> int:
        return len(self._requests)

    def append(self, request: StoredRequest) -> None:
        self._requests.append(request)

    def requests(self, include_static: bool = False) -> list[StoredRequest]:
        """Requests oldest first; successful static resources only on request."""
        if include_static:
            return list(self._requests)
        return [r for r in self._requests if not (r.is_static and r.succeeded)]

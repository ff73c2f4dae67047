"""Pending request store correlating redirect responses to their requests.

The store is owned by the caller and passed to whatever completes the flow;
there is no process-wide instance. Entries are single-use.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

from ..clock import SYSTEM_CLOCK, Clock
from ..errors import InvalidArgumentError, InvalidStateError, NotFoundError
from ..telemetry import get_logger, trace_operation, traced


@dataclass(frozen=True)
class PendingRequest:
    """A request awaiting its redirect response."""

    state: str
    request: Any
    continuation: Any = None
    registered_at: int = 0


class PendingRequestStore:
    """Thread-safe map from state token to pending request."""

    def __init__(self, *, clock: Clock = SYSTEM_CLOCK) -> None:
        self._clock = clock
        self._entries: dict[str, PendingRequest] = {}
        self._lock = threading.Lock()

    def register(
        self,
        state: str,
        request: Any,
        continuation: Any = None,
    ) -> PendingRequest:
        """Register a request under its state token.

        Raises:
            InvalidArgumentError: If the state token is empty.
            InvalidStateError: If the token is already registered.
        """
        if not state:
            raise InvalidArgumentError("state cannot be null or empty", field="state")

        with trace_operation("pending_request.register"):
            entry = PendingRequest(
                state=state,
                request=request,
                continuation=continuation,
                registered_at=self._clock.current_time_millis(),
            )
            with self._lock:
                if state in self._entries:
                    raise InvalidStateError(
                        "a pending request is already registered for this state",
                        field="state",
                    )
                self._entries[state] = entry
            get_logger().debug(
                "pending_request_registered", request_type=_request_type(request)
            )
            return entry

    def register_request(
        self,
        request: Any,
        continuation: Any = None,
    ) -> PendingRequest:
        """Register a request under its own ``state``."""
        state = getattr(request, "state", None)
        if state is None:
            raise InvalidStateError("request has no state to correlate", field="state")
        return self.register(state, request, continuation)

    def consume(self, state: str) -> PendingRequest:
        """Remove and return the entry for a state token.

        At most one caller obtains a given entry.

        Raises:
            NotFoundError: If nothing is registered under the token.
        """
        with trace_operation("pending_request.consume"):
            with self._lock:
                entry = self._entries.pop(state, None)
            if entry is None:
                get_logger().warning("pending_request_not_found")
                raise NotFoundError(state)
            return entry

    def discard(self, state: str) -> bool:
        """Drop the entry for a state token, if any."""
        with self._lock:
            return self._entries.pop(state, None) is not None

    @traced("pending_request.purge")
    def purge_older_than(self, max_age_ms: int) -> int:
        """Drop entries registered more than ``max_age_ms`` ago.

        Returns:
            Number of entries removed.
        """
        cutoff = self._clock.current_time_millis() - max_age_ms
        with self._lock:
            stale = [
                state
                for state, entry in self._entries.items()
                if entry.registered_at < cutoff
            ]
            for state in stale:
                del self._entries[state]
        if stale:
            get_logger().info("pending_requests_purged", count=len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, state: object) -> bool:
        with self._lock:
            return state in self._entries


def _request_type(request: Any) -> str:
    return getattr(request, "kind", type(request).__name__)

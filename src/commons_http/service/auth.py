"""Authentication stance state machine and pending request queue."""

from collections import deque
from enum import Enum
from typing import ClassVar

import structlog

from commons_http.service.models import HttpRequestRecord


logger = structlog.get_logger()


class AuthState(Enum):
    """Authentication stance of an HttpService.

    State transitions:
        CONFIGURED -> RENEGOTIATION_REQUIRED: A response reported an
            authorization failure; credentials must be refreshed
        RENEGOTIATION_REQUIRED -> CONFIGURED: New credentials installed
        CONFIGURED/RENEGOTIATION_REQUIRED -> FAILED: Renegotiation failed
    FAILED is terminal; a new service must be built to recover.
    """

    CONFIGURED = "configured"
    RENEGOTIATION_REQUIRED = "renegotiation_required"
    FAILED = "failed"


class AuthStateError(Exception):
    """Raised when an invalid authentication state transition is attempted."""

    def __init__(self, from_state: AuthState, to_state: AuthState) -> None:
        """Initialize the error.

        Args:
            from_state: The current state.
            to_state: The attempted target state.
        """
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid auth state transition: {from_state.name} -> {to_state.name}"
        )


class AuthStateMachine:
    """Authentication stance plus the queue of requests waiting on it.

    Requests parked while renegotiation is in progress are kept in arrival
    order. ``drain`` hands the whole queue over at once so a resubmission
    pass never interleaves with new arrivals.
    """

    VALID_TRANSITIONS: ClassVar[dict[AuthState, set[AuthState]]] = {
        AuthState.CONFIGURED: {
            AuthState.RENEGOTIATION_REQUIRED,
            AuthState.FAILED,
        },
        AuthState.RENEGOTIATION_REQUIRED: {
            AuthState.CONFIGURED,
            AuthState.FAILED,
        },
        AuthState.FAILED: set(),  # Terminal state
    }

    def __init__(self) -> None:
        """Initialize in CONFIGURED state with an empty queue."""
        self._state = AuthState.CONFIGURED
        self._pending: deque[HttpRequestRecord] = deque()
        self._log = logger.bind(component="http", subcomponent="auth")

    @property
    def state(self) -> AuthState:
        """Get the current state."""
        return self._state

    @property
    def pending(self) -> int:
        """Get the number of queued requests."""
        return len(self._pending)

    def is_configured(self) -> bool:
        """Check if requests may be sent normally."""
        return self._state == AuthState.CONFIGURED

    def is_renegotiating(self) -> bool:
        """Check if credentials are being refreshed."""
        return self._state == AuthState.RENEGOTIATION_REQUIRED

    def is_failed(self) -> bool:
        """Check if renegotiation failed for good."""
        return self._state == AuthState.FAILED

    def can_transition(self, to_state: AuthState) -> bool:
        """Check if a transition to the given state is valid."""
        return to_state in self.VALID_TRANSITIONS.get(self._state, set())

    def transition(self, to_state: AuthState) -> None:
        """Transition to a new state.

        Args:
            to_state: The target state.

        Raises:
            AuthStateError: If the transition is invalid.
        """
        if not self.can_transition(to_state):
            self._log.error(
                "invariant_violation",
                error_type="illegal_state_transition",
                from_state=self._state.name,
                to_state=to_state.name,
            )
            raise AuthStateError(self._state, to_state)

        old_state = self._state
        self._state = to_state
        self._log.info(
            "auth_state_transition",
            from_state=old_state.name,
            to_state=to_state.name,
            pending=len(self._pending),
        )

    def enqueue(self, record: HttpRequestRecord) -> None:
        """Park a request until renegotiation finishes.

        Raises:
            AuthStateError: If the stance is FAILED; nothing is queued then.
        """
        if self._state == AuthState.FAILED:
            raise AuthStateError(self._state, AuthState.RENEGOTIATION_REQUIRED)

        self._pending.append(record)
        self._log.debug(
            "request_queued",
            request_id=record.request_id,
            pending=len(self._pending),
        )

    def drain(self) -> list[HttpRequestRecord]:
        """Remove and return every queued request in arrival order."""
        drained = list(self._pending)
        self._pending.clear()
        return drained

    def discard(self, record: HttpRequestRecord) -> bool:
        """Remove a queued request whose caller gave up on it.

        Returns:
            True if the record was queued.
        """
        try:
            self._pending.remove(record)
        except ValueError:
            return False

        self._log.debug(
            "request_dequeued",
            request_id=record.request_id,
            pending=len(self._pending),
        )
        return True

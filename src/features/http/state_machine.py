"""Request lifecycle state machine."""

from enum import Enum

import structlog


logger = structlog.get_logger()


class RequestState(Enum):
    """States of a single request.

    State transitions:
    CONFIGURED -> SENDING -> COMPLETED | FAILED | ABORTED
    A request is sent at most once.
    """

    CONFIGURED = "configured"
    SENDING = "sending"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"


# Valid state transitions (from_state -> [to_states])
_VALID_TRANSITIONS: dict[RequestState, list[RequestState]] = {
    RequestState.CONFIGURED: [RequestState.SENDING, RequestState.ABORTED],
    RequestState.SENDING: [
        RequestState.COMPLETED,
        RequestState.FAILED,
        RequestState.ABORTED,
    ],
    RequestState.COMPLETED: [],
    RequestState.FAILED: [],
    RequestState.ABORTED: [],
}

_TERMINAL_STATES = frozenset(
    {RequestState.COMPLETED, RequestState.FAILED, RequestState.ABORTED}
)


class RequestStateTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_state: RequestState, to_state: RequestState) -> None:
        """Initialize the error.

        Args:
            from_state: Current state.
            to_state: Attempted target state.
        """
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid request state transition: {from_state.value} -> {to_state.value}"
        )


class RequestStateMachine:
    """Enforces the configured -> sending -> outcome order of a request."""

    def __init__(self, request_id: str) -> None:
        """Initialize the state machine.

        Args:
            request_id: Request identifier for logging.
        """
        self._state = RequestState.CONFIGURED
        self._log = logger.bind(component="request", request_id=request_id)

    @property
    def state(self) -> RequestState:
        """Get the current state."""
        return self._state

    def is_configured(self) -> bool:
        """Check if the request has not been sent yet."""
        return self._state == RequestState.CONFIGURED

    def is_sending(self) -> bool:
        """Check if the request is in flight."""
        return self._state == RequestState.SENDING

    def is_terminal(self) -> bool:
        """Check if the request reached an outcome."""
        return self._state in _TERMINAL_STATES

    def can_transition(self, to_state: RequestState) -> bool:
        """Check if a transition to the given state is valid.

        Args:
            to_state: Target state.

        Returns:
            True if transition is valid.
        """
        return to_state in _VALID_TRANSITIONS.get(self._state, [])

    def transition(self, to_state: RequestState) -> None:
        """Transition to a new state.

        Args:
            to_state: Target state.

        Raises:
            RequestStateTransitionError: If the transition is invalid.
        """
        if not self.can_transition(to_state):
            raise RequestStateTransitionError(self._state, to_state)

        from_state = self._state
        self._state = to_state
        self._log.debug(
            "request_state_transition",
            from_state=from_state.value,
            to_state=to_state.value,
        )

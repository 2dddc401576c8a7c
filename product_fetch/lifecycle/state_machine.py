"""State machine for a product subject's load lifecycle."""

from enum import Enum

import structlog


logger = structlog.get_logger()


class LoadState(str, Enum):
    """State of a product subject as seen by the consumer.

    - LOADING: A fetch for the current request token is in flight
    - SUCCESS: A canonical record is available
    - ERROR: The latest fetch failed
    """

    LOADING = "LOADING"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


# Valid state transitions
_VALID_TRANSITIONS: dict[LoadState, set[LoadState]] = {
    # LOADING -> LOADING: a newer request supersedes the one in flight
    LoadState.LOADING: {LoadState.LOADING, LoadState.SUCCESS, LoadState.ERROR},
    # Revalidation or subject change
    LoadState.SUCCESS: {LoadState.LOADING},
    # Automatic or manual retry
    LoadState.ERROR: {LoadState.LOADING},
}


class StateTransitionError(Exception):
    """Raised when an illegal state transition is attempted."""

    def __init__(
        self,
        subject_id: str | None,
        from_state: LoadState,
        to_state: LoadState,
    ) -> None:
        """Initialize the transition error.

        Args:
            subject_id: Identifier of the subject.
            from_state: Current state.
            to_state: Attempted target state.
        """
        self.subject_id = subject_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal state transition for subject '{subject_id}': "
            f"{from_state.value} -> {to_state.value}"
        )


class LoadStateMachine:
    """Manages state transitions for one product subject.

    Enforces valid transitions and logs all state changes.
    """

    def __init__(
        self,
        subject_id: str | None = None,
        initial_state: LoadState = LoadState.LOADING,
    ) -> None:
        """Initialize the state machine.

        Args:
            subject_id: Identifier for the subject.
            initial_state: Starting state.
        """
        self._subject_id = subject_id
        self._state = initial_state
        self._log = logger.bind(component="coordinator", subject_id=subject_id)

    @property
    def state(self) -> LoadState:
        """Get the current state."""
        return self._state

    def reset(
        self,
        subject_id: str | None,
        state: LoadState = LoadState.LOADING,
    ) -> None:
        """Rebind to a new subject and force ``state``.

        A subject change reinitializes unconditionally, so no transition
        check applies.
        """
        self._subject_id = subject_id
        self._state = state
        self._log = logger.bind(component="coordinator", subject_id=subject_id)
        self._log.debug("state_reset", to_state=state.value)

    def can_transition_to(self, target: LoadState) -> bool:
        """Check if a transition to the target state is valid.

        Args:
            target: The target state.

        Returns:
            True if the transition is valid.
        """
        return target in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: LoadState) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            StateTransitionError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "illegal_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise StateTransitionError(
                subject_id=self._subject_id,
                from_state=self._state,
                to_state=target,
            )

        old_state = self._state
        self._state = target

        self._log.info(
            "state_transition",
            from_state=old_state.value,
            to_state=target.value,
        )

    def to_loading(self) -> None:
        """Transition to LOADING state."""
        self.transition_to(LoadState.LOADING)

    def to_success(self) -> None:
        """Transition to SUCCESS state."""
        self.transition_to(LoadState.SUCCESS)

    def to_error(self) -> None:
        """Transition to ERROR state."""
        self.transition_to(LoadState.ERROR)

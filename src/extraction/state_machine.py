"""State machine for a single adaptive parse."""

from enum import Enum

import structlog


logger = structlog.get_logger()


class ParseState(str, Enum):
    """State of one adaptive parse.

    - START: Nothing attempted yet
    - STRUCTURED_ATTEMPT: Running the structured parser
    - COMPLETE: Structured parse produced every required field
    - INCOMPLETE: Structured parse left required fields empty
    - STRUCTURAL_FAILURE: Structured parser found no anchor
    - ACCEPTED: Incomplete record returned as-is
    - PATCHED: Incomplete record repaired by the fallback extractor
    - RECONSTRUCTED: Record rebuilt from fallback output
    - FAILED: No record could be produced
    """

    START = "START"
    STRUCTURED_ATTEMPT = "STRUCTURED_ATTEMPT"
    COMPLETE = "COMPLETE"
    INCOMPLETE = "INCOMPLETE"
    STRUCTURAL_FAILURE = "STRUCTURAL_FAILURE"
    ACCEPTED = "ACCEPTED"
    PATCHED = "PATCHED"
    RECONSTRUCTED = "RECONSTRUCTED"
    FAILED = "FAILED"


_VALID_TRANSITIONS: dict[ParseState, set[ParseState]] = {
    ParseState.START: {ParseState.STRUCTURED_ATTEMPT},
    ParseState.STRUCTURED_ATTEMPT: {
        ParseState.COMPLETE,
        ParseState.INCOMPLETE,
        ParseState.STRUCTURAL_FAILURE,
    },
    # Incomplete records are always returned, patched or not
    ParseState.INCOMPLETE: {ParseState.ACCEPTED, ParseState.PATCHED},
    ParseState.STRUCTURAL_FAILURE: {ParseState.RECONSTRUCTED, ParseState.FAILED},
    ParseState.COMPLETE: set(),
    ParseState.ACCEPTED: set(),
    ParseState.PATCHED: set(),
    ParseState.RECONSTRUCTED: set(),
    ParseState.FAILED: set(),
}

TERMINAL_STATES = frozenset(
    state for state, targets in _VALID_TRANSITIONS.items() if not targets
)


class ParseStateTransitionError(Exception):
    """Raised when an illegal state transition is attempted."""

    def __init__(self, from_state: ParseState, to_state: ParseState) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal parse state transition: {from_state.value} -> {to_state.value}"
        )


class ParseStateMachine:
    """Tracks and validates the states of one adaptive parse."""

    def __init__(self, record_type: str, url: str | None = None) -> None:
        """Initialize the state machine.

        Args:
            record_type: Name of the record type being parsed.
            url: Source URL, if known.
        """
        self._state = ParseState.START
        self._history: list[ParseState] = [ParseState.START]
        self._log = logger.bind(
            component="extraction",
            subcomponent="parse_state",
            record_type=record_type,
            url=url,
        )

    @property
    def state(self) -> ParseState:
        """Get the current state."""
        return self._state

    @property
    def history(self) -> list[ParseState]:
        """Get every state visited, in order."""
        return list(self._history)

    @property
    def is_terminal(self) -> bool:
        """Check whether the parse has finished."""
        return self._state in TERMINAL_STATES

    def transition(self, to_state: ParseState) -> None:
        """Move to a new state.

        Raises:
            ParseStateTransitionError: If the transition is not allowed.
        """
        if to_state not in _VALID_TRANSITIONS[self._state]:
            raise ParseStateTransitionError(self._state, to_state)
        self._log.debug(
            "parse_state_transition",
            from_state=self._state.value,
            to_state=to_state.value,
        )
        self._state = to_state
        self._history.append(to_state)

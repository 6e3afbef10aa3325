"""Recording session state machine.

Idle ⇄ RecordingReference and Idle ⇄ RecordingDrift are the only legal
moves; switching directly between the two recording modes is refused so a
reference lap and a drift run can never share a tick.
"""

import logging
import threading
from typing import Dict, FrozenSet

from .errors import InvalidTransition
from .model import SessionState

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.IDLE: frozenset(
        {SessionState.RECORDING_REFERENCE, SessionState.RECORDING_DRIFT}
    ),
    SessionState.RECORDING_REFERENCE: frozenset({SessionState.IDLE}),
    SessionState.RECORDING_DRIFT: frozenset({SessionState.IDLE}),
}
"""Legal targets for each state. Self-transitions are not listed."""


class SessionStateMachine:
    """Tracks the engine's recording mode.

    The state is a single enum value swapped under a lock, so a reader on
    another thread sees either the old or the new state, never a mix.
    """

    def __init__(self, initial: SessionState = SessionState.IDLE) -> None:
        self._state = initial
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"SessionStateMachine(state={self._state.value})"

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_idle(self) -> bool:
        return self._state is SessionState.IDLE

    def can_transition(self, target: SessionState) -> bool:
        return target in ALLOWED_TRANSITIONS[self._state]

    def transition(self, target: SessionState) -> SessionState:
        """Move to ``target``.

        Args:
            target: Requested state.

        Returns:
            The previous state.

        Raises:
            InvalidTransition: If the move is not allowed. State is unchanged.
        """
        with self._lock:
            current = self._state
            if target not in ALLOWED_TRANSITIONS[current]:
                logger.warning(f"Refused transition {current.value} -> {target.value}")
                raise InvalidTransition(current, target)
            self._state = target
        logger.debug(f"Session state {current.value} -> {target.value}")
        return current

    def start_reference(self) -> SessionState:
        return self.transition(SessionState.RECORDING_REFERENCE)

    def stop_reference(self) -> SessionState:
        self._expect(SessionState.RECORDING_REFERENCE)
        return self.transition(SessionState.IDLE)

    def start_drift(self) -> SessionState:
        return self.transition(SessionState.RECORDING_DRIFT)

    def stop_drift(self) -> SessionState:
        self._expect(SessionState.RECORDING_DRIFT)
        return self.transition(SessionState.IDLE)

    def _expect(self, required: SessionState) -> None:
        # Stopping the mode that is not running must not end the other one
        current = self._state
        if current is not required:
            logger.warning(f"Refused stop of {required.value} while {current.value}")
            raise InvalidTransition(current, SessionState.IDLE)

"""
Async State Machine

Finite state machine with an allowed-transition map, terminal states,
transition history and an async callback. Drives the evaluation job
lifecycle (Pending -> Running -> Completed/Failed).

Usage:
    from enum import Enum

    class Phase(Enum):
        IDLE = "Idle"
        BUSY = "Busy"
        DONE = "Done"

    sm = StateMachine(
        initial_state=Phase.IDLE,
        allowed_transitions={Phase.IDLE: [Phase.BUSY], Phase.BUSY: [Phase.DONE]},
        terminal_states=[Phase.DONE],
    )

    async def on_change(old, new, reason):
        print(f"{old.name} -> {new.name}: {reason}")
    sm.on_transition(on_change)

    await sm.transition_to(Phase.BUSY, reason="work arrived")
    print(sm.state)  # Phase.BUSY
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Dict, Generic, Iterable, List, Optional, TypeVar

from utils.exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=Enum)


@dataclass
class StateTransition(Generic[S]):
    """Records a single state transition."""
    from_state: S
    to_state: S
    timestamp: datetime
    reason: str


class StateMachine(Generic[S]):
    """
    Generic async state machine with transition history.

    Features:
    - Enum-based states (any Enum subclass)
    - Optional allowed_transitions map; violations raise InvalidTransitionError
    - Terminal states accept no further transitions
    - Async callback on every transition
    - Rolling history (configurable max size)
    """

    def __init__(
        self,
        initial_state: S,
        allowed_transitions: Optional[Dict[S, List[S]]] = None,
        terminal_states: Iterable[S] = (),
        max_history: int = 100,
    ):
        """
        Args:
            initial_state: The starting state.
            allowed_transitions: Optional dict mapping each state to its valid
                                 target states. If None, all transitions allowed.
            terminal_states: States that can never be left once entered.
            max_history: Max number of transitions to keep in history.
        """
        self._state: S = initial_state
        self._allowed = allowed_transitions
        self._terminal = frozenset(terminal_states)
        self._max_history = max_history
        self._history: List[StateTransition[S]] = []
        self._callback: Optional[Callable[[S, S, str], Awaitable[None]]] = None

    @property
    def state(self) -> S:
        """Current state."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in self._terminal

    @property
    def history(self) -> List[StateTransition[S]]:
        """Transition history (read-only copy)."""
        return list(self._history)

    def on_transition(self, callback: Callable[[S, S, str], Awaitable[None]]) -> None:
        """Register an async callback: (old_state, new_state, reason) -> None."""
        self._callback = callback

    def can_transition(self, new_state: S) -> bool:
        if self.is_terminal or new_state == self._state:
            return False
        if self._allowed is None:
            return True
        return new_state in self._allowed.get(self._state, [])

    async def transition_to(self, new_state: S, reason: str = "") -> None:
        """
        Transition to a new state.

        Args:
            new_state: Target state.
            reason: Human-readable reason (for debugging/logging).

        If the callback raises, the transition is undone and the error
        propagates.

        Raises:
            InvalidTransitionError: If the current state is terminal or the
                target is not reachable from it.
        """
        if not self.can_transition(new_state):
            allowed = [] if self._allowed is None else self._allowed.get(self._state, [])
            raise InvalidTransitionError(
                f"Invalid transition: {self._state.name} -> {new_state.name} "
                f"(allowed: {[s.name for s in allowed]})"
            )

        old_state = self._state
        self._state = new_state

        self._history.append(
            StateTransition(
                from_state=old_state,
                to_state=new_state,
                timestamp=datetime.now(timezone.utc),
                reason=reason,
            )
        )
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

        logger.info("State: %s -> %s (%s)", old_state.name, new_state.name, reason)

        if self._callback:
            try:
                await self._callback(old_state, new_state, reason)
            except Exception:
                self._state = old_state
                self._history.pop()
                logger.warning("State: %s -> %s rolled back", old_state.name, new_state.name)
                raise

    def get_status(self) -> dict:
        """Get current state and recent transitions as a dict."""
        return {
            "state": self._state.name,
            "terminal": self.is_terminal,
            "last_transitions": [
                {
                    "from": t.from_state.name,
                    "to": t.to_state.name,
                    "timestamp": t.timestamp.isoformat(),
                    "reason": t.reason,
                }
                for t in self._history[-5:]
            ],
        }

"""Simple finite state machine utility for enforcing allowed status transitions.

Used for ticket lifecycle (open -> in_progress -> completed) and the asset
maintenance machine. Usage:
    from assetcare.utils.fsm import TransitionValidator
    TICKET_FSM = TransitionValidator({
        'open': {'in_progress', 'cancelled'},
        'in_progress': {'completed', 'cancelled'},
        'completed': set(),
    }, field_name='ticket status')
    TICKET_FSM.assert_can_transition(current_status, target_status)

Raises InvalidTransition (rendered as 400) if the edge is not in the graph.
"""
from __future__ import annotations
from enum import Enum
from typing import Dict, Iterable, Set, Union
from assetcare.errors import InvalidTransition

State = Union[str, Enum]


def _key(state: State) -> str:
    return state.value if isinstance(state, Enum) else str(state)


class TransitionValidator:
    def __init__(self, graph: Dict[State, Iterable[State]], field_name: str = 'status'):
        self.graph: Dict[str, Set[str]] = {_key(k): {_key(t) for t in v} for k, v in graph.items()}
        self.field_name = field_name

    def can_transition(self, current: State, target: State) -> bool:
        return _key(target) in self.graph.get(_key(current), set())

    def assert_can_transition(self, current: State, target: State):
        if not self.can_transition(current, target):
            raise InvalidTransition(f"Invalid {self.field_name} transition {_key(current)} -> {_key(target)}")
        return True

    def targets(self, current: State) -> Set[str]:
        return set(self.graph.get(_key(current), set()))

__all__ = ['TransitionValidator']

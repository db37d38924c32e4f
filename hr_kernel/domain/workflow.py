"""
Canonical workflow types (``hr_kernel.domain.workflow``).

Responsibility
--------------
One explicit state-transition table per entity: state x action ->
next state + the roles allowed to perform it. ``EmployeeStatus``,
``LeaveRequest`` and ``AnnualLeavePlan`` validate every transition against
their table instead of re-deriving allowed moves at each call site.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects. ZERO I/O.

Invariants enforced
-------------------
* At most one transition per (state, action).
* Terminal states have no outgoing transitions.
* ``resolve`` raises ``InvalidTransitionError`` before checking the actor,
  so an illegal move is reported as such regardless of who attempts it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from hr_kernel.domain.values import Actor, Role
from hr_kernel.exceptions import InvalidTransitionError, UnauthorizedActorError


@dataclass(frozen=True)
class Transition:
    """A permitted move between two states.

    ``owner_may_act`` lets the employee who owns the record perform the
    action with any role other than VIEWER.
    """

    from_state: Enum
    action: str
    to_state: Enum
    allowed_roles: frozenset[Role]
    owner_may_act: bool = False

    def permits(self, actor: Actor, owner_id: str | None = None) -> bool:
        if actor.role in self.allowed_roles:
            return True
        return (
            self.owner_may_act
            and owner_id is not None
            and actor.role != Role.VIEWER
            and actor.owns(owner_id)
        )


class TransitionTable:
    """Lookup structure over a fixed set of transitions."""

    def __init__(
        self,
        entity_type: str,
        transitions: Iterable[Transition],
        terminal_states: Iterable[Enum] = (),
    ):
        self.entity_type = entity_type
        self.terminal_states = frozenset(terminal_states)
        self._by_key: dict[tuple[Enum, str], Transition] = {}
        for t in transitions:
            key = (t.from_state, t.action)
            if key in self._by_key:
                raise ValueError(
                    f"Duplicate transition for {entity_type}: {t.from_state.value} / {t.action}"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Terminal state {t.from_state.value} of {entity_type} has an outgoing transition"
                )
            self._by_key[key] = t

    def find(self, state: Enum, action: str) -> Transition | None:
        return self._by_key.get((state, action))

    def actions_from(self, state: Enum) -> tuple[str, ...]:
        return tuple(a for (s, a) in self._by_key if s == state)

    def targets_from(self, state: Enum) -> frozenset[Enum]:
        return frozenset(t.to_state for (s, _), t in self._by_key.items() if s == state)

    def is_terminal(self, state: Enum) -> bool:
        return state in self.terminal_states

    def resolve(
        self,
        state: Enum,
        action: str,
        actor: Actor,
        owner_id: str | None = None,
    ) -> Transition:
        """Return the transition or raise the matching state-machine error."""
        transition = self.find(state, action)
        if transition is None:
            raise InvalidTransitionError(self.entity_type, state.value, action)
        if not transition.permits(actor, owner_id):
            raise UnauthorizedActorError(
                self.entity_type, action, actor.actor_id, actor.role.value
            )
        return transition

    def __iter__(self):
        return iter(self._by_key.values())

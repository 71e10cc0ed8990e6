"""Request states and the transition table of each workflow kind."""

import enum
from dataclasses import dataclass
from typing import Any, FrozenSet, Mapping, Type

from components.core.errors import InvalidTransitionError


class RequestKind(str, enum.Enum):
    VERIFICATION = "verification"
    WITHDRAWAL = "withdrawal"
    MEETING = "meeting"


class VerificationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class WithdrawalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"


class MeetingStatus(str, enum.Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Urgency(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class MeetingType(str, enum.Enum):
    VIDEO = "video"
    PHONE = "phone"
    IN_PERSON = "in_person"


@dataclass(frozen=True)
class WorkflowDefinition:
    """States and allowed transitions for one request kind.

    A state with no outgoing transitions is terminal. Every (state, target)
    pair missing from ``transitions`` is rejected.
    """
    kind: RequestKind
    states: Type[enum.Enum]
    initial: enum.Enum
    transitions: Mapping[enum.Enum, FrozenSet[enum.Enum]]

    def parse_state(self, value: Any) -> enum.Enum:
        try:
            return self.states(value)
        except ValueError:
            raise InvalidTransitionError(
                f"'{value}' is not a {self.kind.value} request state"
            )

    def targets(self, state: enum.Enum) -> FrozenSet[enum.Enum]:
        return self.transitions.get(state, frozenset())

    def allows(self, current: enum.Enum, target: enum.Enum) -> bool:
        return target in self.targets(current)

    def is_terminal(self, state: enum.Enum) -> bool:
        return not self.targets(state)


VERIFICATION_WORKFLOW = WorkflowDefinition(
    kind=RequestKind.VERIFICATION,
    states=VerificationStatus,
    initial=VerificationStatus.PENDING,
    transitions={
        VerificationStatus.PENDING: frozenset({VerificationStatus.APPROVED, VerificationStatus.REJECTED}),
    },
)

WITHDRAWAL_WORKFLOW = WorkflowDefinition(
    kind=RequestKind.WITHDRAWAL,
    states=WithdrawalStatus,
    initial=WithdrawalStatus.PENDING,
    transitions={
        WithdrawalStatus.PENDING: frozenset({WithdrawalStatus.APPROVED, WithdrawalStatus.REJECTED}),
        WithdrawalStatus.APPROVED: frozenset({WithdrawalStatus.PROCESSED}),
    },
)

MEETING_WORKFLOW = WorkflowDefinition(
    kind=RequestKind.MEETING,
    states=MeetingStatus,
    initial=MeetingStatus.PENDING,
    transitions={
        MeetingStatus.PENDING: frozenset({MeetingStatus.SCHEDULED, MeetingStatus.CANCELLED}),
        MeetingStatus.SCHEDULED: frozenset({MeetingStatus.COMPLETED, MeetingStatus.CANCELLED}),
    },
)

WORKFLOWS = {
    definition.kind: definition
    for definition in (VERIFICATION_WORKFLOW, WITHDRAWAL_WORKFLOW, MEETING_WORKFLOW)
}

"""Workflow engine: one state machine runner for every request kind.

Each kind is bound to its transition table, its model, a payload builder for
submissions, per-target preconditions and per-target side-effect hooks.
Adding a kind means adding a table and a binding, not new branches.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Type

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.errors import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from components.core.money import parse_money
from components.loan.repository import LoanRepository
from components.transaction.models import TransactionType
from components.transaction.processor import TransactionProcessor
from components.user.models import utcnow
from components.user.repository import UserRepository
from components.workflow.models import MeetingRequest, VerificationRequest, WithdrawalRequest
from components.workflow.states import (
    WORKFLOWS,
    MeetingStatus,
    MeetingType,
    RequestKind,
    Urgency,
    VerificationStatus,
    WithdrawalStatus,
    WorkflowDefinition,
)

logger = logging.getLogger(__name__)

Payload = Mapping[str, Any]


def _require_text(payload: Payload, name: str) -> str:
    value = payload.get(name)
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required")
    return str(value).strip()


def _optional_text(payload: Payload, name: str) -> Optional[str]:
    value = payload.get(name)
    if value is None or not str(value).strip():
        return None
    return str(value).strip()


def _parse_choice(enum_cls: Type, value: Any, name: str, default: Any) -> str:
    if value is None or value == "":
        return default.value
    try:
        return enum_cls(value).value
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"{name} must be one of: {allowed}")


def parse_date(value: Any, name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"{name} must be a date in YYYY-MM-DD format")


def parse_time(value: Any, name: str) -> time:
    if isinstance(value, time):
        return value
    try:
        parsed = time.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"{name} must be a time in HH:MM format")
    return parsed.replace(tzinfo=None)


@dataclass
class KindBinding:
    """Everything the engine needs to run one workflow kind."""
    definition: WorkflowDefinition
    model: Type
    created_column: str
    build: Callable[["WorkflowEngine", int, Payload], Awaitable[Dict[str, Any]]]
    preconditions: Dict[Any, Callable[[Any, Payload], Dict[str, Any]]] = field(default_factory=dict)
    hooks: Dict[Any, Callable[["WorkflowEngine", Any, int], Awaitable[None]]] = field(default_factory=dict)


# Submission payload builders

async def _build_verification(engine: "WorkflowEngine", user_id: int, payload: Payload) -> Dict[str, Any]:
    user = await engine.users.get_user(user_id)
    if user.account_verified:
        raise ConflictError("Account is already verified")
    pending = await engine.session.execute(
        select(VerificationRequest.id).where(
            VerificationRequest.user_id == user_id,
            VerificationRequest.status == VerificationStatus.PENDING.value,
        )
    )
    if pending.first() is not None:
        raise ConflictError("A verification request is already pending")
    return {"requested_at": utcnow()}


async def _build_withdrawal(engine: "WorkflowEngine", user_id: int, payload: Payload) -> Dict[str, Any]:
    if payload.get("amount") is None:
        raise ValidationError("amount is required")
    amount = parse_money(payload["amount"], "amount")
    if amount <= 0:
        raise ValidationError("amount must be greater than zero")
    reason = _require_text(payload, "reason")
    urgency = _parse_choice(Urgency, payload.get("urgency"), "urgency", Urgency.NORMAL)

    loan = await engine.loans.get_loan_by_user(user_id)
    if amount > loan.current_balance:
        raise ValidationError("Withdrawal amount exceeds current balance")
    return {
        "loan_id": loan.id,
        "amount": amount,
        "reason": reason,
        "urgency": urgency,
        "notes": _optional_text(payload, "notes"),
    }


async def _build_meeting(engine: "WorkflowEngine", user_id: int, payload: Payload) -> Dict[str, Any]:
    purpose = _require_text(payload, "purpose")
    if payload.get("preferred_date") in (None, ""):
        raise ValidationError("preferred_date is required")
    if payload.get("preferred_time") in (None, ""):
        raise ValidationError("preferred_time is required")
    preferred_date = parse_date(payload["preferred_date"], "preferred_date")
    if preferred_date < utcnow().date():
        raise ValidationError("preferred_date must not be in the past")
    return {
        "purpose": purpose,
        "preferred_date": preferred_date,
        "preferred_time": parse_time(payload["preferred_time"], "preferred_time"),
        "meeting_type": _parse_choice(MeetingType, payload.get("meeting_type"), "meeting_type", MeetingType.VIDEO),
        "urgency": _parse_choice(Urgency, payload.get("urgency"), "urgency", Urgency.NORMAL),
        "topics": _optional_text(payload, "topics"),
        "notes": _optional_text(payload, "notes"),
        "phone_number": _optional_text(payload, "phone_number"),
        "location": _optional_text(payload, "location"),
    }


# Transition preconditions: return extra column values to write

def _schedule_meeting(request: MeetingRequest, extra: Payload) -> Dict[str, Any]:
    if extra.get("scheduled_date") in (None, "") or extra.get("scheduled_time") in (None, ""):
        raise ValidationError("scheduled_date and scheduled_time are required to schedule a meeting")
    meeting_link = _optional_text(extra, "meeting_link")
    if request.meeting_type == MeetingType.VIDEO.value and meeting_link is None:
        raise ValidationError("meeting_link is required for video meetings")
    values = {
        "scheduled_date": parse_date(extra["scheduled_date"], "scheduled_date"),
        "scheduled_time": parse_time(extra["scheduled_time"], "scheduled_time"),
    }
    if meeting_link is not None:
        values["meeting_link"] = meeting_link
    return values


# Side-effect hooks, run inside the transition's unit of work

async def _approve_verification(engine: "WorkflowEngine", request: VerificationRequest, actor_id: int) -> None:
    await engine.users.set_verified(request.user_id, True, actor_id=actor_id, commit=False)


async def _process_withdrawal(engine: "WorkflowEngine", request: WithdrawalRequest, actor_id: int) -> None:
    if request.loan_id is None:
        raise NotFoundError("The loan for this withdrawal request no longer exists")
    await engine.processor.add_transaction(
        request.loan_id,
        TransactionType.WITHDRAWAL,
        request.amount,
        description=f"Withdrawal request #{request.id}: {request.reason}",
        reference_id=str(request.id),
        commit=False,
    )


BINDINGS: Dict[RequestKind, KindBinding] = {
    RequestKind.VERIFICATION: KindBinding(
        definition=WORKFLOWS[RequestKind.VERIFICATION],
        model=VerificationRequest,
        created_column="requested_at",
        build=_build_verification,
        hooks={VerificationStatus.APPROVED: _approve_verification},
    ),
    RequestKind.WITHDRAWAL: KindBinding(
        definition=WORKFLOWS[RequestKind.WITHDRAWAL],
        model=WithdrawalRequest,
        created_column="created_at",
        build=_build_withdrawal,
        hooks={WithdrawalStatus.PROCESSED: _process_withdrawal},
    ),
    RequestKind.MEETING: KindBinding(
        definition=WORKFLOWS[RequestKind.MEETING],
        model=MeetingRequest,
        created_column="created_at",
        build=_build_meeting,
        preconditions={MeetingStatus.SCHEDULED: _schedule_meeting},
    ),
}


class WorkflowEngine:
    """Runs submissions and guarded transitions for every request kind."""

    def __init__(self, session: AsyncSession):
        """Initialize engine with database session."""
        self.session = session
        self.users = UserRepository(session)
        self.loans = LoanRepository(session)
        self.processor = TransactionProcessor(session)

    @staticmethod
    def binding(kind: Any) -> KindBinding:
        try:
            return BINDINGS[RequestKind(kind)]
        except ValueError:
            raise ValidationError(f"Unknown request kind: {kind}")

    async def submit(self, kind: Any, user_id: int, payload: Optional[Payload] = None) -> Any:
        """Create a request in the initial (pending) state."""
        binding = self.binding(kind)
        await self.users.get_user(user_id)
        values = await binding.build(self, user_id, payload or {})
        request = binding.model(
            user_id=user_id,
            status=binding.definition.initial.value,
            **values,
        )
        self.session.add(request)
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(request)
        logger.info("User %s submitted %s request %s", user_id, binding.definition.kind.value, request.id)
        return request

    async def get(self, kind: Any, request_id: int) -> Any:
        """Load a request straight from the store."""
        binding = self.binding(kind)
        result = await self.session.execute(
            select(binding.model)
            .where(binding.model.id == request_id)
            .execution_options(populate_existing=True)
        )
        request = result.scalar_one_or_none()
        if request is None:
            raise NotFoundError(f"{binding.definition.kind.value.capitalize()} request not found")
        return request

    async def list_requests(
        self,
        kind: Any,
        user_id: Optional[int] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Any]:
        """List requests newest first, optionally for one user or status."""
        binding = self.binding(kind)
        model = binding.model
        query = select(model)
        if user_id is not None:
            query = query.where(model.user_id == user_id)
        if status:
            query = query.where(model.status == status)
        query = (
            query.order_by(getattr(model, binding.created_column).desc(), model.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def transition(
        self,
        kind: Any,
        request_id: int,
        target: Any,
        actor_id: int,
        admin_notes: Optional[str] = None,
        **extra: Any,
    ) -> Any:
        """
        Move a request to ``target`` on behalf of an admin.

        The state write is a compare-and-swap on the status read here, so of
        two concurrent transitions from the same state only one commits. The
        kind's hook for ``target`` runs in the same unit of work; if it fails
        the status change is rolled back with it.
        """
        binding = self.binding(kind)
        definition = binding.definition
        model = binding.model

        if not await self.users.is_admin(actor_id):
            raise AuthorizationError("Admin role required")

        target_state = definition.parse_state(target)
        request = await self.get(kind, request_id)
        current_state = definition.states(request.status)
        if not definition.allows(current_state, target_state):
            logger.warning(
                "Rejected %s request %s transition %s -> %s",
                definition.kind.value, request_id, current_state.value, target_state.value,
            )
            raise InvalidTransitionError(
                f"Cannot move {definition.kind.value} request from "
                f"{current_state.value} to {target_state.value}"
            )

        values: Dict[str, Any] = {"status": target_state.value}
        precondition = binding.preconditions.get(target_state)
        if precondition is not None:
            values.update(precondition(request, extra))

        now = utcnow()
        if current_state == definition.initial:
            values["reviewed_at"] = now
            values["reviewer_id"] = actor_id
        if target_state == WithdrawalStatus.PROCESSED and definition.kind == RequestKind.WITHDRAWAL:
            values["completed_at"] = now
            values["completed_by"] = actor_id
        if admin_notes is not None:
            values["admin_notes"] = admin_notes
        if hasattr(model, "updated_at"):
            values["updated_at"] = now

        try:
            swapped = await self._compare_and_swap(model, request_id, current_state.value, values)
            if not swapped:
                logger.warning(
                    "%s request %s left %s concurrently",
                    definition.kind.value, request_id, current_state.value,
                )
                raise InvalidTransitionError(
                    f"{definition.kind.value.capitalize()} request is no longer {current_state.value}"
                )
            hook = binding.hooks.get(target_state)
            if hook is not None:
                await hook(self, request, actor_id)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Admin %s moved %s request %s from %s to %s",
            actor_id, definition.kind.value, request_id, current_state.value, target_state.value,
        )
        return await self.get(kind, request_id)

    async def complete_withdrawal(self, request_id: int, actor_id: int, admin_notes: Optional[str] = None) -> WithdrawalRequest:
        """The admin "Complete" action: approved -> processed."""
        return await self.transition(
            RequestKind.WITHDRAWAL, request_id, WithdrawalStatus.PROCESSED, actor_id, admin_notes=admin_notes,
        )

    async def _compare_and_swap(self, model: Type, request_id: int, expected: str, values: Dict[str, Any]) -> bool:
        result = await self.session.execute(
            update(model)
            .where(model.id == request_id, model.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

"""
Claim lifecycle: status transitions, timeline steps and admin attribution.

    pending ──► approved | rejected | incomplete
    incomplete ──► pending (resubmission) | rejected

approved and rejected are terminal. Re-asserting the current status is
always allowed. Rows stored with a status outside the enum (legacy data)
are not guarded.
"""

from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.errors import InvalidTransition, NotFound, VersionConflict
from app.models.database import atomic
from app.models.enums import ClaimStatus, StepType
from app.models.tables import AccidentDetail, ClaimRequest, ClaimRequestStep, utcnow
from app.observability.metrics import claim_transitions_total, claims_created_total
from app.schemas.claims import ClaimStatusPatch

logger = structlog.get_logger(__name__)


ALLOWED_TRANSITIONS: dict[ClaimStatus, frozenset[ClaimStatus]] = {
    ClaimStatus.PENDING: frozenset({
        ClaimStatus.APPROVED, ClaimStatus.REJECTED, ClaimStatus.INCOMPLETE,
    }),
    ClaimStatus.INCOMPLETE: frozenset({ClaimStatus.PENDING, ClaimStatus.REJECTED}),
    ClaimStatus.APPROVED: frozenset(),
    ClaimStatus.REJECTED: frozenset(),
}

# Statuses from which the customer may ask to correct documents
CORRECTABLE = frozenset({ClaimStatus.PENDING, ClaimStatus.INCOMPLETE})


def can_transition(current: str, target: ClaimStatus) -> bool:
    """Check a move against the allowed-transition table."""
    if current == target.value:
        return True
    try:
        current_status = ClaimStatus(current)
    except ValueError:
        return True
    return target in ALLOWED_TRANSITIONS[current_status]


def can_correct(current: str) -> bool:
    try:
        return ClaimStatus(current) in CORRECTABLE
    except ValueError:
        return True


def ensure_transition(current: str, target: ClaimStatus) -> None:
    if settings.ENFORCE_TRANSITIONS and not can_transition(current, target):
        raise InvalidTransition(current, target.value)


def check_version(entity: str, stored: int, expected: Optional[int]) -> None:
    """Optimistic concurrency: a caller-supplied version must match the row."""
    if expected is not None and expected != stored:
        raise VersionConflict(entity, expected, stored)


def touch(claim: ClaimRequest) -> None:
    claim.updated_at = utcnow()
    claim.version += 1


async def lock_claim(session: AsyncSession, claim_id: int) -> ClaimRequest:
    """Load a claim for update. FOR UPDATE serialises concurrent writers on Postgres."""
    result = await session.execute(
        select(ClaimRequest).where(ClaimRequest.id == claim_id).with_for_update()
    )
    claim = result.scalar_one_or_none()
    if claim is None:
        raise NotFound("claim not found")
    return claim


async def next_step_order(session: AsyncSession, claim_id: int) -> int:
    result = await session.execute(
        select(func.max(ClaimRequestStep.step_order))
        .where(ClaimRequestStep.claim_request_id == claim_id)
    )
    current = result.scalar()
    return 1 if current is None else current + 1


async def append_step(
    session: AsyncSession,
    claim_id: int,
    step_type: StepType,
    note: Optional[str] = None,
) -> ClaimRequestStep:
    step = ClaimRequestStep(
        claim_request_id=claim_id,
        step_type=step_type.value,
        step_order=await next_step_order(session, claim_id),
        note=note,
    )
    session.add(step)
    await session.flush()
    return step


async def create_claim(
    session: AsyncSession,
    user_id: int,
    selected_car_id: Optional[int] = None,
) -> ClaimRequest:
    """Create a bare pending claim with no accident detail yet."""
    async with atomic(session, "create_claim"):
        claim = ClaimRequest(
            user_id=user_id,
            selected_car_id=selected_car_id,
            status=ClaimStatus.PENDING.value,
            approved_by=None,
            approved_at=None,
            admin_note=None,
        )
        session.add(claim)
        await session.flush()

    claims_created_total.inc()
    logger.info("claim_created", claim_id=claim.id, user_id=user_id)
    return claim


async def patch_status(
    session: AsyncSession,
    claim_id: int,
    patch: ClaimStatusPatch,
) -> ClaimRequest:
    """
    Admin transition. Each field keeps its stored value when omitted
    (COALESCE semantics); updated_at is always refreshed.
    """
    async with atomic(session, "patch_status"):
        claim = await lock_claim(session, claim_id)
        check_version("claim", claim.version, patch.version)

        previous = claim.status
        if patch.status is not None:
            ensure_transition(previous, patch.status)
            claim.status = patch.status.value
        if patch.admin_note is not None:
            claim.admin_note = patch.admin_note
        if patch.approved_by is not None:
            claim.approved_by = patch.approved_by
        if patch.approved_at is not None:
            claim.approved_at = patch.approved_at
        touch(claim)
        await session.flush()

    if claim.status != previous:
        claim_transitions_total.labels(from_status=previous, to_status=claim.status).inc()
    logger.info(
        "claim_status_patched",
        claim_id=claim_id,
        from_status=previous,
        to_status=claim.status,
        approved_by=claim.approved_by,
        version=claim.version,
    )
    return claim


async def request_correction(
    session: AsyncSession,
    claim_id: int,
    note: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> ClaimRequest:
    """Mark a claim incomplete and record a 'corrected' timeline step, atomically."""
    async with atomic(session, "request_correction"):
        claim = await lock_claim(session, claim_id)
        check_version("claim", claim.version, expected_version)

        previous = claim.status
        if settings.ENFORCE_TRANSITIONS and not can_correct(previous):
            raise InvalidTransition(previous, ClaimStatus.INCOMPLETE.value)

        claim.status = ClaimStatus.INCOMPLETE.value
        touch(claim)
        step = await append_step(session, claim_id, StepType.CORRECTED, note)

    if previous != claim.status:
        claim_transitions_total.labels(from_status=previous, to_status=claim.status).inc()
    logger.info(
        "claim_correction_requested",
        claim_id=claim_id,
        from_status=previous,
        step_order=step.step_order,
    )
    return claim


def reset_for_resubmission(claim: ClaimRequest) -> str:
    """Back to pending with admin decision fields cleared. Returns the previous status."""
    previous = claim.status
    ensure_transition(previous, ClaimStatus.PENDING)
    claim.status = ClaimStatus.PENDING.value
    claim.approved_by = None
    claim.approved_at = None
    claim.admin_note = None
    touch(claim)
    return previous


async def attach_accident(
    session: AsyncSession,
    claim_id: int,
    accident_detail_id: int,
) -> ClaimRequest:
    """Rebind a claim to an existing accident detail row."""
    async with atomic(session, "attach_accident"):
        claim = await lock_claim(session, claim_id)
        accident = await session.get(AccidentDetail, accident_detail_id)
        if accident is None:
            raise NotFound("accident detail not found")
        claim.accident_detail_id = accident_detail_id
        touch(claim)
        await session.flush()

    logger.info("claim_accident_attached", claim_id=claim_id, accident_detail_id=accident_detail_id)
    return claim

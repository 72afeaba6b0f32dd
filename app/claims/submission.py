"""
Claim submission and resubmission.

Submit writes AccidentDetail -> ClaimRequest -> EvaluationImage x N in one
transaction. Resubmit overwrites the claim's accident detail, replaces its
whole image set and sends the claim back to pending.
"""

from typing import Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.claims.lifecycle import check_version, lock_claim, reset_for_resubmission
from app.claims.normalize import normalize_location, normalize_time
from app.errors import ClaimServiceError
from app.models.database import atomic
from app.models.enums import ClaimStatus, DamageSide, ErrorKind
from app.models.tables import (
    AccidentDetail, ClaimRequest, EvaluationImage, ImageDamageAnnotation, utcnow,
)
from app.observability.metrics import (
    claim_transitions_total,
    claims_resubmitted_total,
    claims_submitted_total,
    damage_images_stored_total,
)
from app.schemas.claims import (
    AccidentDraft,
    ClaimSubmitRequest,
    ClaimUpdateRequest,
    DamagePhoto,
    SubmitResult,
)

logger = structlog.get_logger(__name__)


def accident_columns(draft: AccidentDraft) -> dict:
    """Column values for accident_details from a wizard draft. Missing optionals become None."""
    location = normalize_location(
        draft.location.lat, draft.location.lng, draft.location.accuracy
    )
    return {
        "accident_type": draft.accident_type,
        "accident_date": draft.accident_date,
        "accident_time": normalize_time(draft.accident_time),
        "province": draft.province,
        "district": draft.district,
        "road": draft.road,
        "area_type": draft.area_type,
        "nearby": draft.nearby,
        "details": draft.details,
        "latitude": location.latitude,
        "longitude": location.longitude,
        "accuracy": location.accuracy,
    }


def build_images(claim_id: int, photos: list[Optional[DamagePhoto]]) -> list[EvaluationImage]:
    """One evaluation image per photo that has a URL."""
    images = []
    for photo in photos:
        if photo is None or not photo.url:
            continue
        images.append(EvaluationImage(
            claim_id=claim_id,
            original_url=photo.url,
            damage_note=photo.note,
            side=(photo.side or DamageSide.UNSPECIFIED).value,
            is_annotated=False,
        ))
    return images


async def submit_claim(session: AsyncSession, body: ClaimSubmitRequest) -> SubmitResult:
    """Create accident detail, pending claim and damage images atomically."""
    draft = body.accident
    evidence = draft.evidence_media[0] if draft.evidence_media else None

    async with atomic(session, "submit_claim"):
        accident = AccidentDetail(
            **accident_columns(draft),
            file_url=evidence.url if evidence else None,
            media_type=evidence.type if evidence else None,
            agreed=body.agreed,
        )
        session.add(accident)
        await session.flush()

        claim = ClaimRequest(
            user_id=body.user_id,
            selected_car_id=body.selected_car_id,
            accident_detail_id=accident.id,
            status=ClaimStatus.PENDING.value,
            approved_by=None,
            approved_at=None,
            admin_note=None,
        )
        session.add(claim)
        await session.flush()

        images = build_images(claim.id, draft.damage_photos)
        session.add_all(images)
        await session.flush()

    claims_submitted_total.inc()
    damage_images_stored_total.inc(len(images))
    logger.info(
        "claim_submitted",
        claim_id=claim.id,
        accident_detail_id=accident.id,
        user_id=body.user_id,
        selected_car_id=body.selected_car_id,
        images=len(images),
        latitude=accident.latitude,
        longitude=accident.longitude,
        accuracy=accident.accuracy,
    )
    return SubmitResult(
        accident_detail_id=accident.id,
        claim_id=claim.id,
        inserted_image_damage=len(images),
    )


async def replace_images(
    session: AsyncSession,
    claim_id: int,
    photos: list[Optional[DamagePhoto]],
) -> list[EvaluationImage]:
    """Replace-all: drop every image of the claim (and its annotations), insert the new set."""
    old_ids = select(EvaluationImage.id).where(EvaluationImage.claim_id == claim_id)
    await session.execute(
        delete(ImageDamageAnnotation)
        .where(ImageDamageAnnotation.evaluation_image_id.in_(old_ids))
        .execution_options(synchronize_session=False)
    )
    await session.execute(
        delete(EvaluationImage)
        .where(EvaluationImage.claim_id == claim_id)
        .execution_options(synchronize_session=False)
    )

    images = build_images(claim_id, photos)
    session.add_all(images)
    await session.flush()
    return images


async def resubmit_claim(
    session: AsyncSession,
    claim_id: int,
    body: ClaimUpdateRequest,
) -> tuple[ClaimRequest, int]:
    """
    Overwrite the claim's accident detail in place, replace its images and
    reset it to pending. Returns the claim and the number of images stored.
    """
    async with atomic(session, "resubmit_claim"):
        claim = await lock_claim(session, claim_id)
        check_version("claim", claim.version, body.version)

        if claim.accident_detail_id is None:
            raise ClaimServiceError("claim has no accident detail to update", ErrorKind.CONFLICT)
        accident = await session.get(AccidentDetail, claim.accident_detail_id, with_for_update=True)
        if accident is None:
            raise ClaimServiceError("claim has no accident detail to update", ErrorKind.CONFLICT)

        for column, value in accident_columns(body.accident).items():
            setattr(accident, column, value)
        accident.updated_at = utcnow()

        images = await replace_images(session, claim_id, body.accident.damage_photos)
        previous = reset_for_resubmission(claim)
        await session.flush()

    claims_resubmitted_total.inc()
    damage_images_stored_total.inc(len(images))
    if previous != claim.status:
        claim_transitions_total.labels(from_status=previous, to_status=claim.status).inc()
    logger.info(
        "claim_resubmitted",
        claim_id=claim_id,
        from_status=previous,
        images=len(images),
        version=claim.version,
    )
    return claim, len(images)

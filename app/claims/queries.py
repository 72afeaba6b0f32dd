"""
Claim reads: listings and nested detail.
Only claims linked to an accident detail are visible here.
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager, joinedload, selectinload

from app.config import settings
from app.errors import NotFound
from app.models.tables import AccidentDetail, ClaimRequest, EvaluationImage
from app.schemas.claims import (
    AnnotationSummary,
    ClaimDetail,
    ClaimListItem,
    DamageImageRead,
    ImageSummary,
    StepRead,
)


def clamp_limit(limit: Optional[int]) -> int:
    if not limit or limit < 1:
        return settings.LIST_DEFAULT_LIMIT
    return min(limit, settings.LIST_MAX_LIMIT)


def _claims_with_accident():
    return (
        select(ClaimRequest)
        .join(AccidentDetail, AccidentDetail.id == ClaimRequest.accident_detail_id)
        .options(
            contains_eager(ClaimRequest.accident),
            joinedload(ClaimRequest.policy),
            selectinload(ClaimRequest.steps),
        )
        .execution_options(populate_existing=True)
    )


def _car_fields(claim: ClaimRequest) -> dict:
    policy = claim.policy
    if policy is None:
        return {}
    return {
        "car_brand": policy.car_brand,
        "car_model": policy.car_model,
        "car_year": policy.car_year,
        "license_plate": policy.car_license_plate,
        "car_path": policy.car_path,
    }


def _accident_fields(claim: ClaimRequest) -> dict:
    accident = claim.accident
    return {
        "accident_type": accident.accident_type,
        "accident_date": accident.accident_date,
        "accident_time": accident.accident_time,
        "area_type": accident.area_type,
        "province": accident.province,
        "district": accident.district,
        "road": accident.road,
        "nearby": accident.nearby,
        "details": accident.details,
        "latitude": accident.latitude,
        "longitude": accident.longitude,
        "accuracy": accident.accuracy,
        "media_type": accident.media_type,
    }


def to_list_item(claim: ClaimRequest) -> ClaimListItem:
    return ClaimListItem(
        claim_id=claim.id,
        user_id=claim.user_id,
        status=claim.status,
        car_id=claim.selected_car_id,
        selected_car_id=claim.selected_car_id,
        accident_detail_id=claim.accident_detail_id,
        version=claim.version,
        created_at=claim.created_at,
        updated_at=claim.updated_at,
        thumbnail_url=claim.accident.file_url,
        images=[ImageSummary.model_validate(i) for i in claim.images],
        steps=[StepRead.model_validate(s) for s in claim.steps],
        **_accident_fields(claim),
        **_car_fields(claim),
    )


def to_detail(claim: ClaimRequest) -> ClaimDetail:
    policy = claim.policy
    extra_car = {}
    if policy is not None:
        extra_car = {
            "registration_province": policy.registration_province,
            "chassis_number": policy.chassis_number,
            "insurance_type": policy.insurance_type,
            "policy_number": policy.policy_number,
            "coverage_end_date": policy.coverage_end_date,
            "insured_name": policy.insured_name,
        }
    return ClaimDetail(
        claim_id=claim.id,
        user_id=claim.user_id,
        status=claim.status,
        selected_car_id=claim.selected_car_id,
        accident_detail_id=claim.accident_detail_id,
        admin_note=claim.admin_note,
        approved_by=claim.approved_by,
        approved_at=claim.approved_at,
        version=claim.version,
        created_at=claim.created_at,
        updated_at=claim.updated_at,
        evidence_file_url=claim.accident.file_url,
        damage_images=[
            DamageImageRead(
                id=image.id,
                original_url=image.original_url,
                damage_note=image.damage_note,
                side=image.side,
                is_annotated=image.is_annotated,
                version=image.version,
                annotations=[
                    AnnotationSummary(
                        id=a.id,
                        part=a.part_name,
                        damage=list(a.damage_name or []),
                        severity=a.severity,
                        area_percent=a.area_percent,
                        x=a.x, y=a.y, w=a.w, h=a.h,
                    )
                    for a in image.annotations
                ],
            )
            for image in claim.images
        ],
        steps=[StepRead.model_validate(s) for s in claim.steps],
        **_accident_fields(claim),
        **_car_fields(claim),
        **extra_car,
    )


def to_admin_detail(detail: ClaimDetail) -> dict:
    """Reshape a detail into the nested car/accident layout of the admin inspect screen."""
    return {
        "claim_id": detail.claim_id,
        "user_id": detail.user_id,
        "status": detail.status,
        "selected_car_id": detail.selected_car_id,
        "accident_detail_id": detail.accident_detail_id,
        "admin_note": detail.admin_note,
        "version": detail.version,
        "created_at": detail.created_at,
        "car": {
            "insured_name": detail.insured_name,
            "policy_number": detail.policy_number,
            "car_brand": detail.car_brand,
            "car_model": detail.car_model,
            "car_year": detail.car_year,
            "car_license_plate": detail.license_plate,
            "insurance_type": detail.insurance_type,
            "coverage_end_date": detail.coverage_end_date,
            "car_path": detail.car_path,
            "registration_province": detail.registration_province,
            "chassis_number": detail.chassis_number,
        },
        "accident": {
            "accidentType": detail.accident_type,
            "accident_date": detail.accident_date,
            "accident_time": detail.accident_time,
            "areaType": detail.area_type,
            "province": detail.province,
            "district": detail.district,
            "road": detail.road,
            "nearby": detail.nearby,
            "details": detail.details,
            "location": {
                "lat": detail.latitude,
                "lng": detail.longitude,
                "accuracy": detail.accuracy,
            },
            "evidenceMedia": (
                [{"url": detail.evidence_file_url, "type": detail.media_type}]
                if detail.evidence_file_url else []
            ),
            "damagePhotos": detail.damage_images,
        },
        "steps": detail.steps,
    }


async def list_claims(
    session: AsyncSession,
    user_id: Optional[int] = None,
    limit: Optional[int] = None,
) -> list[ClaimListItem]:
    """Newest activity first; optionally only one owner's claims."""
    query = _claims_with_accident().options(selectinload(ClaimRequest.images))
    if user_id is not None:
        query = query.where(ClaimRequest.user_id == user_id)
    query = query.order_by(
        func.coalesce(ClaimRequest.updated_at, ClaimRequest.created_at).desc(),
        ClaimRequest.created_at.desc(),
    ).limit(clamp_limit(limit))

    result = await session.execute(query)
    return [to_list_item(c) for c in result.unique().scalars().all()]


async def get_claim_detail(
    session: AsyncSession,
    claim_id: int,
    user_id: Optional[int] = None,
) -> ClaimDetail:
    query = (
        _claims_with_accident()
        .options(selectinload(ClaimRequest.images).selectinload(EvaluationImage.annotations))
        .where(ClaimRequest.id == claim_id)
    )
    if user_id is not None:
        query = query.where(ClaimRequest.user_id == user_id)

    result = await session.execute(query)
    claim = result.unique().scalar_one_or_none()
    if claim is None:
        raise NotFound("claim not found")
    return to_detail(claim)

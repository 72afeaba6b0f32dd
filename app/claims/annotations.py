"""
Damage annotations on evaluation images.

Box normalisation (applied to every write path):
- damage_name: always a list, blanks dropped, case-insensitive dedupe keeping first casing
- severity: upper-cased A/B/C/D, anything else -> A
- area_percent: None passthrough, else clamped 0..100 and rounded to an integer
- x, y: clamped 0..1, 3 dp
- w, h: clamped to 1, 3 dp, then floored at 0.0001 so no box has zero area
- mask_iou: None passthrough, else clamped 0..1
- source: manual / model / legacy, default manual
"""

from typing import Any, Optional

import structlog
from pydantic import BaseModel
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.claims.lifecycle import check_version
from app.claims.normalize import clamp, round_half_up
from app.errors import NotFound
from app.models.database import atomic
from app.models.enums import AnnotationSource, Severity
from app.models.tables import EvaluationImage, ImageDamageAnnotation, utcnow
from app.observability.metrics import annotation_boxes_saved_total, annotation_sets_saved_total
from app.schemas.annotations import AnnotationBox

logger = structlog.get_logger(__name__)

MIN_EXTENT = 0.0001

_SEVERITIES = {s.value for s in Severity}
_SOURCES = {s.value for s in AnnotationSource}


class NormalizedBox(BaseModel):
    part_name: str
    damage_name: list[str]
    severity: str
    area_percent: Optional[int] = None
    x: float
    y: float
    w: float
    h: float
    confidence: Optional[float] = None
    mask_iou: Optional[float] = None
    source: str


def normalize_damage_names(value: Any) -> list[str]:
    if isinstance(value, (list, tuple)):
        items = value
    elif value is None or value == "":
        items = []
    else:
        items = [value]

    names: list[str] = []
    seen: set[str] = set()
    for item in items:
        if item is None:
            continue
        name = str(item).strip()
        if not name:
            continue
        key = name.lower()
        if key not in seen:
            seen.add(key)
            names.append(name)
    return names


def normalize_severity(value: Any) -> str:
    if value is None:
        return Severity.A.value
    upper = str(value).upper()
    return upper if upper in _SEVERITIES else Severity.A.value


def normalize_source(value: Optional[str]) -> str:
    return value if value in _SOURCES else AnnotationSource.MANUAL.value


def _extent(value: float) -> float:
    return max(MIN_EXTENT, round_half_up(min(1.0, value), 3))


def normalize_box(box: AnnotationBox) -> NormalizedBox:
    return NormalizedBox(
        part_name=box.part_name,
        damage_name=normalize_damage_names(box.damage_name),
        severity=normalize_severity(box.severity),
        area_percent=(
            None if box.area_percent is None
            else int(round_half_up(clamp(box.area_percent, 0, 100), 0))
        ),
        x=round_half_up(clamp(box.x, 0.0, 1.0), 3),
        y=round_half_up(clamp(box.y, 0.0, 1.0), 3),
        w=_extent(box.w),
        h=_extent(box.h),
        confidence=box.confidence,
        mask_iou=None if box.mask_iou is None else clamp(box.mask_iou, 0.0, 1.0),
        source=normalize_source(box.source),
    )


def build_annotations(
    image_id: int,
    boxes: list[NormalizedBox],
    created_by: Optional[int] = None,
) -> list[ImageDamageAnnotation]:
    return [
        ImageDamageAnnotation(evaluation_image_id=image_id, created_by=created_by, **box.model_dump())
        for box in boxes
    ]


async def list_for_image(session: AsyncSession, image_id: int) -> list[ImageDamageAnnotation]:
    result = await session.execute(
        select(ImageDamageAnnotation)
        .where(ImageDamageAnnotation.evaluation_image_id == image_id)
        .order_by(ImageDamageAnnotation.id)
    )
    return list(result.scalars().all())


async def _lock_image(session: AsyncSession, image_id: int) -> EvaluationImage:
    image = await session.get(EvaluationImage, image_id, with_for_update=True)
    if image is None:
        raise NotFound("image not found")
    return image


async def _refresh_flag(session: AsyncSession, image: EvaluationImage) -> None:
    """Re-derive is_annotated from the rows actually stored for the image."""
    result = await session.execute(
        select(func.count(ImageDamageAnnotation.id))
        .where(ImageDamageAnnotation.evaluation_image_id == image.id)
    )
    image.is_annotated = (result.scalar() or 0) > 0
    image.version += 1


async def replace_annotation_set(
    session: AsyncSession,
    image_id: int,
    boxes: list[AnnotationBox],
    created_by: Optional[int] = None,
    expected_version: Optional[int] = None,
) -> EvaluationImage:
    """
    Replace every annotation of one image with `boxes`.

    Delete, bulk insert and the is_annotated update share one transaction.
    Saving the same list twice leaves the same rows and flag.
    """
    normalized = [normalize_box(b) for b in boxes]

    async with atomic(session, "replace_annotations"):
        image = await _lock_image(session, image_id)
        check_version("image", image.version, expected_version)

        await session.execute(
            delete(ImageDamageAnnotation)
            .where(ImageDamageAnnotation.evaluation_image_id == image_id)
            .execution_options(synchronize_session=False)
        )
        session.add_all(build_annotations(image_id, normalized, created_by))
        image.is_annotated = len(normalized) > 0
        image.version += 1
        await session.flush()

    annotation_sets_saved_total.labels(is_annotated=str(image.is_annotated).lower()).inc()
    annotation_boxes_saved_total.inc(len(normalized))
    logger.info(
        "annotations_replaced",
        image_id=image_id,
        saved=len(normalized),
        is_annotated=image.is_annotated,
        created_by=created_by,
    )
    return image


async def update_annotation(session: AsyncSession, annotation_id: int, box: AnnotationBox) -> int:
    """Overwrite one box with its normalised values. Returns the affected row count."""
    normalized = normalize_box(box)

    async with atomic(session, "update_annotation"):
        annotation = await session.get(ImageDamageAnnotation, annotation_id, with_for_update=True)
        if annotation is None:
            return 0
        for column, value in normalized.model_dump().items():
            setattr(annotation, column, value)
        annotation.updated_at = utcnow()
        image = await _lock_image(session, annotation.evaluation_image_id)
        await session.flush()
        await _refresh_flag(session, image)
        await session.flush()

    logger.info("annotation_updated", annotation_id=annotation_id, image_id=annotation.evaluation_image_id)
    return 1


async def delete_annotation(session: AsyncSession, annotation_id: int) -> int:
    """Delete one box. Returns the affected row count."""
    async with atomic(session, "delete_annotation"):
        annotation = await session.get(ImageDamageAnnotation, annotation_id, with_for_update=True)
        if annotation is None:
            return 0
        image_id = annotation.evaluation_image_id
        await session.delete(annotation)
        await session.flush()
        image = await _lock_image(session, image_id)
        await _refresh_flag(session, image)
        await session.flush()

    logger.info("annotation_deleted", annotation_id=annotation_id, image_id=image_id)
    return 1

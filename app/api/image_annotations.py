"""
/api/image-annotations endpoints.
Damage boxes drawn by reviewers on evaluation images.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.claims import annotations
from app.dependencies import get_db, verify_api_key
from app.errors import ValidationFailed
from app.schemas.annotations import (
    AffectedResponse,
    AnnotationBox,
    AnnotationListResponse,
    AnnotationRead,
    AnnotationSaveRequest,
    AnnotationSaveResponse,
)

router = APIRouter(prefix="/api/image-annotations", tags=["image-annotations"], dependencies=[Depends(verify_api_key)])


@router.get("/by-image", response_model=AnnotationListResponse)
async def list_by_image(
    image_id: Optional[int] = Query(None, gt=0),
    session: AsyncSession = Depends(get_db),
):
    """All boxes of one image, oldest first."""
    if not image_id:
        raise ValidationFailed("image_id required")
    rows = await annotations.list_for_image(session, image_id)
    return AnnotationListResponse(data=[AnnotationRead.model_validate(r) for r in rows])


@router.post("/save", response_model=AnnotationSaveResponse, status_code=status.HTTP_201_CREATED)
async def save_annotations(
    body: AnnotationSaveRequest,
    session: AsyncSession = Depends(get_db),
):
    """Replace the image's whole annotation set with the posted boxes."""
    image = await annotations.replace_annotation_set(
        session,
        body.image_id,
        body.boxes,
        created_by=body.created_by,
        expected_version=body.version,
    )
    return AnnotationSaveResponse(
        saved=len(body.boxes),
        is_annotated=image.is_annotated,
        version=image.version,
    )


@router.patch("/{annotation_id}", response_model=AffectedResponse)
async def patch_annotation(
    annotation_id: int,
    body: AnnotationBox,
    session: AsyncSession = Depends(get_db),
):
    """Overwrite a single box outside the bulk save flow."""
    if annotation_id < 1:
        raise ValidationFailed("id required")
    affected = await annotations.update_annotation(session, annotation_id, body)
    return AffectedResponse(affected=affected)


@router.delete("/{annotation_id}", response_model=AffectedResponse)
async def delete_annotation(
    annotation_id: int,
    session: AsyncSession = Depends(get_db),
):
    if annotation_id < 1:
        raise ValidationFailed("id required")
    affected = await annotations.delete_annotation(session, annotation_id)
    return AffectedResponse(affected=affected)

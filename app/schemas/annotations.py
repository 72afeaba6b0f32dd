"""
Pydantic schemas for the /api/image-annotations endpoints.
Box input is deliberately loose; normalisation happens in app.claims.annotations.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class AnnotationBox(BaseModel):
    """One drawn box as posted by the annotation editor."""
    part_name: str
    damage_name: Any = None  # str or list of str
    severity: Any = None
    area_percent: Optional[float] = None
    x: float
    y: float
    w: float
    h: float
    confidence: Optional[float] = None
    mask_iou: Optional[float] = None
    source: Optional[str] = None


class AnnotationSaveRequest(BaseModel):
    image_id: int = Field(gt=0)
    created_by: Optional[int] = None
    boxes: list[AnnotationBox] = Field(default_factory=list)
    version: Optional[int] = None


class AnnotationRead(BaseModel):
    id: int
    evaluation_image_id: int
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
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AnnotationListResponse(BaseModel):
    ok: bool = True
    data: list[AnnotationRead]


class AnnotationSaveResponse(BaseModel):
    ok: bool = True
    saved: int
    is_annotated: bool
    version: int


class AffectedResponse(BaseModel):
    ok: bool = True
    affected: int

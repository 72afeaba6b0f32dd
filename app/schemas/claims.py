"""
Pydantic request/response schemas for claim requests, submission and reads.
Field aliases follow the camelCase draft the browser form posts.
"""

from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, Field

from app.models.enums import ClaimStatus, DamageSide


# ── Lifecycle requests ───────────────────────────────────────

class ClaimCreateRequest(BaseModel):
    """Bare pending claim, accident detail attached later."""
    user_id: int = Field(gt=0)
    selected_car_id: Optional[int] = None


class ClaimStatusPatch(BaseModel):
    """Admin transition. Omitted or null fields keep their stored value."""
    status: Optional[ClaimStatus] = None
    admin_note: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    version: Optional[int] = None


class CorrectionRequest(BaseModel):
    note: Optional[str] = None
    version: Optional[int] = None


class AttachAccidentRequest(BaseModel):
    accident_detail_id: int = Field(gt=0)


# ── Submission requests ──────────────────────────────────────

class MediaItem(BaseModel):
    url: Optional[str] = None
    type: Optional[str] = None
    publicId: Optional[str] = None


class DamagePhoto(MediaItem):
    side: Optional[DamageSide] = None
    note: Optional[str] = None


class GeoLocation(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None
    accuracy: Optional[float] = None


class AccidentDraft(BaseModel):
    """Accident step of the claim wizard."""
    accident_type: str = Field(alias="accidentType", min_length=1)
    accident_date: date = Field(alias="date")
    accident_time: str = Field(alias="time", min_length=1)  # HH:mm or HH:mm:ss
    province: Optional[str] = None
    district: Optional[str] = None
    road: Optional[str] = None
    area_type: str = Field(alias="areaType", min_length=1)
    nearby: Optional[str] = None
    details: Optional[str] = None
    location: GeoLocation
    evidence_media: list[MediaItem] = Field(default_factory=list, alias="evidenceMedia")
    damage_photos: list[Optional[DamagePhoto]] = Field(default_factory=list, alias="damagePhotos")

    model_config = {"populate_by_name": True}


class ClaimSubmitRequest(BaseModel):
    user_id: Optional[int] = None
    selected_car_id: int = Field(gt=0)
    accident: AccidentDraft
    agreed: bool = True


class ClaimUpdateRequest(BaseModel):
    """Resubmission of a claim returned for correction."""
    accident: AccidentDraft
    version: Optional[int] = None


# ── Lifecycle responses ──────────────────────────────────────

class ClaimRead(BaseModel):
    id: int
    user_id: Optional[int] = None
    selected_car_id: Optional[int] = None
    accident_detail_id: Optional[int] = None
    status: str
    admin_note: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ClaimEnvelope(BaseModel):
    ok: bool = True
    claim: ClaimRead


class SubmitResult(BaseModel):
    accident_detail_id: int
    claim_id: int
    inserted_image_damage: int


class SubmitResponse(BaseModel):
    ok: bool = True
    data: SubmitResult


class ResubmitResponse(BaseModel):
    ok: bool = True
    claim_id: int
    updated_images: int
    version: int


# ── Read models ──────────────────────────────────────────────

class ImageSummary(BaseModel):
    id: int
    original_url: str
    damage_note: Optional[str] = None
    side: str

    model_config = {"from_attributes": True}


class AnnotationSummary(BaseModel):
    """Compact annotation shape used inside claim detail."""
    id: int
    part: str
    damage: list[str]
    severity: str
    area_percent: Optional[int] = None
    x: float
    y: float
    w: float
    h: float


class DamageImageRead(ImageSummary):
    is_annotated: bool
    version: int
    annotations: list[AnnotationSummary] = []


class StepRead(BaseModel):
    step_type: str
    step_order: int
    note: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ClaimListItem(BaseModel):
    claim_id: int
    user_id: Optional[int] = None
    status: str
    car_id: Optional[int] = None
    selected_car_id: Optional[int] = None
    accident_detail_id: Optional[int] = None
    version: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    accident_type: str
    accident_date: date
    accident_time: time
    area_type: str
    province: Optional[str] = None
    district: Optional[str] = None
    road: Optional[str] = None
    nearby: Optional[str] = None
    details: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None
    thumbnail_url: Optional[str] = None
    media_type: Optional[str] = None

    car_brand: Optional[str] = None
    car_model: Optional[str] = None
    car_year: Optional[int] = None
    license_plate: Optional[str] = None
    car_path: Optional[str] = None

    images: list[ImageSummary] = []
    steps: list[StepRead] = []


class ClaimListResponse(BaseModel):
    ok: bool = True
    data: list[ClaimListItem]


class ClaimDetail(BaseModel):
    claim_id: int
    user_id: Optional[int] = None
    status: str
    selected_car_id: Optional[int] = None
    accident_detail_id: Optional[int] = None
    admin_note: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    accident_type: str
    accident_date: date
    accident_time: time
    area_type: str
    province: Optional[str] = None
    district: Optional[str] = None
    road: Optional[str] = None
    nearby: Optional[str] = None
    details: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None
    evidence_file_url: Optional[str] = None
    media_type: Optional[str] = None

    car_brand: Optional[str] = None
    car_model: Optional[str] = None
    car_year: Optional[int] = None
    license_plate: Optional[str] = None
    registration_province: Optional[str] = None
    chassis_number: Optional[str] = None
    insurance_type: Optional[str] = None
    policy_number: Optional[str] = None
    coverage_end_date: Optional[date] = None
    car_path: Optional[str] = None
    insured_name: Optional[str] = None

    damage_images: list[DamageImageRead] = []
    steps: list[StepRead] = []


class ClaimDetailResponse(BaseModel):
    ok: bool = True
    data: ClaimDetail

"""
/api/claim-requests endpoints.
Claim creation, admin transitions, customer corrections and reads.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import admin
from app.claims import lifecycle, queries
from app.dependencies import Principal, get_db, get_principal, verify_api_key
from app.errors import ValidationFailed
from app.schemas.claims import (
    AttachAccidentRequest,
    ClaimCreateRequest,
    ClaimDetailResponse,
    ClaimEnvelope,
    ClaimListResponse,
    ClaimRead,
    ClaimStatusPatch,
    CorrectionRequest,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/claim-requests", tags=["claim-requests"], dependencies=[Depends(verify_api_key)])


def _scope_user(user_id: Optional[int], principal: Optional[Principal]) -> Optional[int]:
    """Customers only ever see their own claims; admins and anonymous callers filter by query."""
    if principal is not None and not principal.is_admin:
        return principal.id
    return user_id


@router.post("", response_model=ClaimEnvelope, status_code=status.HTTP_201_CREATED)
async def create_claim(
    body: ClaimCreateRequest,
    session: AsyncSession = Depends(get_db),
):
    """Create a pending claim before the accident step is filled in."""
    claim = await lifecycle.create_claim(session, body.user_id, body.selected_car_id)
    return ClaimEnvelope(claim=ClaimRead.model_validate(claim))


@router.patch("/{claim_id}/correction", response_model=ClaimEnvelope)
async def request_correction(
    claim_id: int,
    body: Optional[CorrectionRequest] = None,
    session: AsyncSession = Depends(get_db),
):
    """
    Customer uploads corrected documents: claim goes incomplete and the timeline gets a step.

    Only pending or incomplete claims can be corrected. With ENFORCE_TRANSITIONS
    on, an approved or rejected claim answers 409 invalid_transition and is left
    unchanged.
    """
    if claim_id < 1:
        raise ValidationFailed("claim_id is required")
    body = body or CorrectionRequest()
    claim = await lifecycle.request_correction(session, claim_id, body.note, body.version)
    return ClaimEnvelope(claim=ClaimRead.model_validate(claim))


@router.get("/listall", response_model=ClaimListResponse)
async def list_all_claims(
    limit: Optional[int] = Query(None),
    session: AsyncSession = Depends(get_db),
):
    """Every user's claims, newest activity first."""
    items = await queries.list_claims(session, user_id=None, limit=limit)
    return ClaimListResponse(data=items)


@router.get("/list", response_model=ClaimListResponse)
async def list_claims(
    user_id: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    session: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    """Claims of one user (or all, when no user is given), with images and timeline."""
    items = await queries.list_claims(session, user_id=_scope_user(user_id, principal), limit=limit)
    return ClaimListResponse(data=items)


@router.get("/detail", response_model=ClaimDetailResponse)
async def get_claim_detail(
    claim_id: Optional[int] = Query(None, gt=0),
    user_id: Optional[int] = Query(None),
    session: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    """One claim with damage images, their annotations and the timeline."""
    if not claim_id:
        raise ValidationFailed("claim_id is required")
    detail = await queries.get_claim_detail(session, claim_id, _scope_user(user_id, principal))
    return ClaimDetailResponse(data=detail)


router.add_api_route("/admin/detail", admin.get_claim_detail, methods=["GET"])


@router.patch("/{claim_id}", response_model=ClaimEnvelope)
async def patch_claim_status(
    claim_id: int,
    body: ClaimStatusPatch,
    session: AsyncSession = Depends(get_db),
):
    """Admin update of status, note and approver. Omitted fields are left unchanged."""
    claim = await lifecycle.patch_status(session, claim_id, body)
    return ClaimEnvelope(claim=ClaimRead.model_validate(claim))


@router.put("/{claim_id}/accident", response_model=ClaimEnvelope)
async def attach_accident(
    claim_id: int,
    body: AttachAccidentRequest,
    session: AsyncSession = Depends(get_db),
):
    """Bind the claim to an accident detail row."""
    claim = await lifecycle.attach_accident(session, claim_id, body.accident_detail_id)
    return ClaimEnvelope(claim=ClaimRead.model_validate(claim))

"""
/api/claim-submit endpoints.
Atomic claim submission and resubmission after a correction request.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.claims.submission import resubmit_claim, submit_claim
from app.dependencies import get_db, verify_api_key
from app.schemas.claims import (
    ClaimSubmitRequest,
    ClaimUpdateRequest,
    ResubmitResponse,
    SubmitResponse,
)

router = APIRouter(prefix="/api/claim-submit", tags=["claim-submit"], dependencies=[Depends(verify_api_key)])


@router.post("/submit", response_model=SubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit(
    body: ClaimSubmitRequest,
    session: AsyncSession = Depends(get_db),
):
    """Create accident detail, pending claim and damage images in one transaction."""
    result = await submit_claim(session, body)
    return SubmitResponse(data=result)


@router.put("/update/{claim_id}", response_model=ResubmitResponse)
async def update(
    claim_id: int,
    body: ClaimUpdateRequest,
    session: AsyncSession = Depends(get_db),
):
    """Resubmit a claim: overwrite accident detail, replace images, back to pending."""
    claim, stored = await resubmit_claim(session, claim_id, body)
    return ResubmitResponse(claim_id=claim.id, updated_images=stored, version=claim.version)

"""
/api/admin endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.claims import queries
from app.dependencies import get_db, verify_api_key
from app.errors import ValidationFailed

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(verify_api_key)])


@router.get("/detail")
async def get_claim_detail(
    claim_id: Optional[int] = Query(None, gt=0),
    session: AsyncSession = Depends(get_db),
):
    """
    Claim detail for the inspection screen, in the nested car/accident layout.
    Also served at /api/claim-requests/admin/detail.
    """
    if not claim_id:
        raise ValidationFailed("claim_id is required")
    detail = await queries.get_claim_detail(session, claim_id)
    return {"ok": True, "data": queries.to_admin_detail(detail)}

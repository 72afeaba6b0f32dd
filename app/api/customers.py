"""
/api/customers endpoints.
Read-only view of registered users for the admin customer pages.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.dependencies import get_db, verify_api_key
from app.errors import NotFound
from app.models.enums import UserRole
from app.models.tables import InsurancePolicy, User
from app.schemas.policies import CustomerRead

router = APIRouter(prefix="/api/customers", tags=["customers"], dependencies=[Depends(verify_api_key)])


def _to_customer(user: User, policy_count: Optional[int] = None) -> CustomerRead:
    return CustomerRead(
        id=user.id,
        name=user.full_name,
        citizen_id=user.citizen_id,
        email=user.email,
        phone_number=user.phone_number,
        address=user.address,
        role=user.role,
        created_at=user.created_at,
        policy_count=policy_count,
    )


@router.get("", response_model=list[CustomerRead], response_model_exclude_none=True)
async def list_customers(
    role: Optional[str] = Query(None),
    with_policy_count: Optional[str] = Query(None, alias="withPolicyCount"),
    session: AsyncSession = Depends(get_db),
):
    """Users with a role (default customer), optionally with their policy count."""
    role = role or UserRole.CUSTOMER.value
    order = (User.created_at.desc(), User.id.desc())

    if with_policy_count == "1":
        counts = (
            select(InsurancePolicy.citizen_id, func.count().label("cnt"))
            .group_by(InsurancePolicy.citizen_id)
            .subquery()
        )
        result = await session.execute(
            select(User, func.coalesce(counts.c.cnt, 0))
            .outerjoin(counts, counts.c.citizen_id == User.citizen_id)
            .where(User.role == role)
            .order_by(*order)
        )
        return [_to_customer(user, count) for user, count in result.all()]

    result = await session.execute(select(User).where(User.role == role).order_by(*order))
    return [_to_customer(user) for user in result.scalars().all()]


@router.get("/{user_id}", response_model=CustomerRead, response_model_exclude_none=True)
async def get_customer(user_id: int, session: AsyncSession = Depends(get_db)):
    user = await session.get(User, user_id)
    if user is None:
        raise NotFound("user not found")
    return _to_customer(user)

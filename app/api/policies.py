"""
/api/policy endpoints.
Insurance policies, one insured car each. Claims reference them as selected_car_id.
"""

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.dependencies import get_db, verify_api_key
from app.errors import NotFound, ValidationFailed
from app.models.database import atomic
from app.models.tables import InsurancePolicy
from app.schemas.policies import PolicyRead, PolicyWrite

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/policy", tags=["policy"], dependencies=[Depends(verify_api_key)])


@router.get("", response_model=list[PolicyRead])
async def list_policies(session: AsyncSession = Depends(get_db)):
    result = await session.execute(
        select(InsurancePolicy).order_by(InsurancePolicy.created_at.desc())
    )
    return [PolicyRead.model_validate(p) for p in result.scalars().all()]


@router.get("/by-id/{car_id}", response_model=list[PolicyRead])
async def get_policy_by_id(car_id: str, session: AsyncSession = Depends(get_db)):
    """Single policy by id, returned as a one-item list."""
    if not car_id.isdigit():
        raise ValidationFailed("invalid car_id")

    policy = await session.get(InsurancePolicy, int(car_id))
    if policy is None:
        raise NotFound("policy not found")
    return [PolicyRead.model_validate(policy)]


@router.get("/{citizen_id}", response_model=list[PolicyRead])
async def list_policies_for_citizen(citizen_id: str, session: AsyncSession = Depends(get_db)):
    result = await session.execute(
        select(InsurancePolicy)
        .where(InsurancePolicy.citizen_id == citizen_id)
        .order_by(InsurancePolicy.created_at.desc(), InsurancePolicy.id.desc())
    )
    policies = result.scalars().all()
    if not policies:
        raise NotFound("no policies for this citizen")
    return [PolicyRead.model_validate(p) for p in policies]


@router.post("", response_model=PolicyRead, status_code=status.HTTP_201_CREATED)
async def create_policy(body: PolicyWrite, session: AsyncSession = Depends(get_db)):
    async with atomic(session, "create_policy"):
        policy = InsurancePolicy(**body.model_dump())
        session.add(policy)
        await session.flush()

    logger.info("policy_created", policy_id=policy.id, citizen_id=policy.citizen_id)
    return PolicyRead.model_validate(policy)


@router.put("/{policy_id}", response_model=PolicyRead)
async def replace_policy(policy_id: int, body: PolicyWrite, session: AsyncSession = Depends(get_db)):
    """Overwrite every column of a policy."""
    async with atomic(session, "replace_policy"):
        policy = await session.get(InsurancePolicy, policy_id, with_for_update=True)
        if policy is None:
            raise NotFound("policy not found")
        for column, value in body.model_dump().items():
            setattr(policy, column, value)
        await session.flush()

    logger.info("policy_replaced", policy_id=policy_id)
    return PolicyRead.model_validate(policy)

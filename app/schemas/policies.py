"""
Pydantic schemas for insurance policies (insured cars) and customers.
"""

from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, Field


class PolicyFields(BaseModel):
    address: Optional[str] = None
    coverage_start_date: Optional[date] = None
    coverage_end_date: Optional[date] = None
    coverage_end_time: Optional[time] = None
    car_brand: Optional[str] = None
    car_model: Optional[str] = None
    car_year: Optional[int] = None
    car_color: Optional[str] = None
    car_license_plate: Optional[str] = None
    registration_province: Optional[str] = None
    chassis_number: Optional[str] = None
    insurance_type: Optional[str] = None
    car_path: Optional[str] = None


class PolicyWrite(PolicyFields):
    """Full policy body. PUT overwrites every column with these values."""
    policy_number: str = Field(min_length=1)
    insurance_company: str = Field(min_length=1)
    insured_name: str = Field(min_length=1)
    citizen_id: str = Field(min_length=1)


class PolicyRead(PolicyFields):
    id: int
    policy_number: str
    insurance_company: str
    insured_name: str
    citizen_id: str
    created_at: datetime

    model_config = {"from_attributes": True}


class CustomerRead(BaseModel):
    id: int
    name: str
    citizen_id: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    role: str
    created_at: datetime
    policy_count: Optional[int] = None

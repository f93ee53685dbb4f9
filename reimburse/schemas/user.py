from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from reimburse.models.user import UserRole


class UserCreate(BaseModel):
    email: str
    name: str = Field(min_length=1)
    role: UserRole = UserRole.employee
    manager_id: Optional[UUID] = None
    reimbursement_budget: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if "@" not in value:
            raise ValueError("Invalid email address")
        return value


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[UserRole] = None
    manager_id: Optional[UUID] = None
    reimbursement_budget: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip().lower()
        if "@" not in value:
            raise ValueError("Invalid email address")
        return value


class UserOut(BaseModel):
    id: UUID
    email: str
    name: str
    role: UserRole
    manager_id: Optional[UUID]
    reimbursement_budget: Decimal
    created_at: Optional[datetime]

    class Config:
        from_attributes = True

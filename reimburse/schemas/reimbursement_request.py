# reimburse/schemas/reimbursement_request.py

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from reimburse.core.constants import (
    DESCRIPTION_MIN_LENGTH,
    EXPENSE_CATEGORIES,
    MERCHANT_MIN_LENGTH,
    MIN_AMOUNT,
)
from reimburse.models.reimbursement_request import RequestStatus


class RequestFields(BaseModel):
    description: str = Field(min_length=DESCRIPTION_MIN_LENGTH)
    amount: Decimal = Field(ge=Decimal(MIN_AMOUNT), decimal_places=2)
    category: str
    expense_date: date
    merchant: str = Field(min_length=MERCHANT_MIN_LENGTH)
    notes: Optional[str] = None

    @field_validator("description", "merchant")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return value.strip()

    @field_validator("category")
    @classmethod
    def known_category(cls, value: str) -> str:
        if value not in EXPENSE_CATEGORIES:
            raise ValueError("Please select a category")
        return value


class RequestCreate(RequestFields):
    pass


class RequestUpdate(RequestFields):
    pass


class DecisionIn(BaseModel):
    status: RequestStatus
    comments: Optional[str] = None


class BulkDecisionIn(DecisionIn):
    request_ids: List[UUID] = Field(min_length=1)


class RequestOut(BaseModel):
    id: UUID
    user_id: UUID
    approver: UUID
    amount: Decimal
    category: str
    expense_date: date
    status: RequestStatus
    description: str
    merchant: Optional[str]
    notes: Optional[str]
    receipt_urls: List[str] = []
    approval_comments: Optional[str]
    decision_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class SubmissionOut(BaseModel):
    request: RequestOut
    receipt_urls: List[str] = []
    receipt_error: Optional[str] = None


class ReceiptListOut(BaseModel):
    request_id: UUID
    files: List[str]
    receipt_urls: List[str]


class BudgetOut(BaseModel):
    user_id: UUID
    year: int
    allocated: Decimal
    pending: Decimal
    approved: Decimal
    consumed: Decimal
    available: Decimal

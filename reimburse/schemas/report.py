# reimburse/schemas/report.py

import calendar
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from reimburse.models.reimbursement_request import RequestStatus
from reimburse.schemas.reimbursement_request import RequestOut


class ReportFilters(BaseModel):
    # reference date for every "current year/month" default
    today: date

    start_date: Optional[date] = None
    end_date: Optional[date] = None

    year: Optional[int] = Field(default=None, ge=1)
    month: Optional[int] = Field(default=None, ge=1, le=12)
    day: Optional[int] = Field(default=None, ge=1, le=31)

    category: Optional[str] = None
    status: Optional[RequestStatus] = None
    search: str = ""

    @model_validator(mode="after")
    def validate_range(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self

    @classmethod
    def current_month(cls, today: date, **overrides) -> "ReportFilters":
        last_day = calendar.monthrange(today.year, today.month)[1]
        values = {
            "today": today,
            "start_date": today.replace(day=1),
            "end_date": today.replace(day=last_day),
        }
        values.update(overrides)
        return cls(**values)

    @property
    def effective_month(self) -> Optional[int]:
        if self.month:
            return self.month
        if self.day:
            return self.today.month
        return None


class UserTotals(BaseModel):
    user_id: Union[UUID, str]
    name: str
    request_count: int = 0
    approved_count: int = 0
    total_amount: Decimal = Decimal("0")
    approved_amount: Decimal = Decimal("0")
    pending_amount: Decimal = Decimal("0")
    rejected_amount: Decimal = Decimal("0")


class MonthlySeries(BaseModel):
    labels: List[str]
    expenses: List[Decimal]
    reimbursements: List[Decimal]
    pending: List[Decimal]
    rejected: List[Decimal]


class WeeklySeries(BaseModel):
    labels: List[str]
    by_status: Dict[str, List[Decimal]]


class ReportSummary(BaseModel):
    total_employees: int = 0
    total_requests: int = 0
    total_amount: Decimal = Decimal("0")
    total_budget_allocated: Decimal = Decimal("0")

    count_by_status: Dict[str, int]
    amount_by_status: Dict[str, Decimal]
    approved_amount_by_category: Dict[str, Decimal]
    amount_by_category: Dict[str, Decimal]

    monthly: MonthlySeries
    weekly: WeeklySeries

    top_users: List[UserTotals] = []
    user_breakdown: List[UserTotals] = []


class ManagerDashboard(BaseModel):
    manager_id: UUID
    year: int
    team_count: int
    pending_count: int
    total_pending_amount: Decimal
    total_approved_amount: Decimal
    pending_requests: List[RequestOut] = []
    decided_requests: List[RequestOut] = []

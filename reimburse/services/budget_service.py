# reimburse/services/budget_service.py
"""
Yearly budget ledger.

available = allocated - consumed, where consumed is the sum of Pending and
Approved request amounts whose expense_date falls in the given calendar year.
Read-only; store failures surface as StoreUnavailable.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from reimburse.core.exceptions import NotFound
from reimburse.db.session import store_guard
from reimburse.models.reimbursement_request import (
    CONSUMING_STATUSES,
    ReimbursementRequest,
    RequestStatus,
)
from reimburse.models.user import User
from reimburse.utils.calculations import ZERO, parse_amount, year_bounds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BudgetSummary:
    user_id: object
    year: int
    allocated: Decimal
    pending: Decimal
    approved: Decimal

    @property
    def consumed(self) -> Decimal:
        return self.pending + self.approved

    @property
    def available(self) -> Decimal:
        return self.allocated - self.consumed


def get_user_or_404(db: Session, user_id) -> User:
    with store_guard(db):
        user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User", user_id)
    return user


def allocated_budget(user: User) -> Decimal:
    if not user.role.holds_budget:
        return ZERO
    return parse_amount(user.reimbursement_budget)


def _consumed_by_status(
    db: Session,
    user_id,
    year: int,
    exclude_request_id=None,
):
    start, end = year_bounds(year)
    query = (
        db.query(
            ReimbursementRequest.status,
            func.coalesce(func.sum(ReimbursementRequest.amount), 0),
        )
        .filter(
            ReimbursementRequest.user_id == user_id,
            ReimbursementRequest.status.in_(CONSUMING_STATUSES),
            ReimbursementRequest.expense_date >= start,
            ReimbursementRequest.expense_date <= end,
        )
    )
    if exclude_request_id is not None:
        query = query.filter(ReimbursementRequest.id != exclude_request_id)

    with store_guard(db):
        rows = query.group_by(ReimbursementRequest.status).all()

    totals = {status: ZERO for status in CONSUMING_STATUSES}
    for status, total in rows:
        totals[RequestStatus(status)] = parse_amount(total)
    return totals


def consumed_budget(
    db: Session,
    user_id,
    year: int,
    exclude_request_id=None,
) -> Decimal:
    totals = _consumed_by_status(db, user_id, year, exclude_request_id)
    return sum(totals.values(), ZERO)


def available_budget(
    db: Session,
    user_id,
    year: Optional[int] = None,
    exclude_request_id=None,
) -> Decimal:
    """
    Remaining budget for ``year`` (defaults to the current calendar year).

    A negative result means no budget is left; it is never a claw-back.
    ``exclude_request_id`` drops one request from the consumed sum so an
    edit can be checked against old amount + remaining balance.
    """
    if year is None:
        year = date.today().year

    user = get_user_or_404(db, user_id)
    allocated = allocated_budget(user)
    consumed = consumed_budget(db, user.id, year, exclude_request_id)
    logger.debug(
        "budget user=%s year=%s allocated=%s consumed=%s",
        user.id, year, allocated, consumed,
    )
    return allocated - consumed


def budget_summary(db: Session, user_id, year: int) -> BudgetSummary:
    user = get_user_or_404(db, user_id)
    totals = _consumed_by_status(db, user.id, year)
    return BudgetSummary(
        user_id=user.id,
        year=year,
        allocated=allocated_budget(user),
        pending=totals[RequestStatus.pending],
        approved=totals[RequestStatus.approved],
    )

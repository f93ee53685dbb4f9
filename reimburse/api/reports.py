# reimburse/api/reports.py

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError
from sqlalchemy.orm import Session

from reimburse.api.auth import get_current_user
from reimburse.db.session import get_db, store_guard
from reimburse.models.reimbursement_request import ReimbursementRequest, RequestStatus
from reimburse.models.user import User, UserRole
from reimburse.schemas.report import ReportFilters, ReportSummary
from reimburse.services.report_service import build_report

router = APIRouter(prefix="/reports", tags=["Reports"])


def _report_scope(db: Session, current_user: User):
    """Users and requests the caller may aggregate over, keyed on role."""
    role = current_user.role
    if role in (UserRole.admin, UserRole.finance):
        users_query = db.query(User)
    elif role == UserRole.manager:
        users_query = db.query(User).filter(User.manager_id == current_user.id)
    elif role == UserRole.employee:
        users_query = db.query(User).filter(User.id == current_user.id)
    else:
        raise HTTPException(status_code=403, detail="Access denied")

    with store_guard(db):
        users = users_query.all()
        user_ids = [u.id for u in users]
        requests = (
            db.query(ReimbursementRequest)
            .filter(ReimbursementRequest.user_id.in_(user_ids))
            .all()
            if user_ids
            else []
        )
    return users, requests


@router.get("/summary", response_model=ReportSummary)
def get_summary(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    day: Optional[int] = None,
    category: Optional[str] = None,
    status: Optional[RequestStatus] = None,
    search: str = "",
    top_n: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        filters = ReportFilters(
            today=date.today(),
            start_date=start_date,
            end_date=end_date,
            year=year,
            month=month,
            day=day,
            category=category,
            status=status,
            search=search,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

    users, requests = _report_scope(db, current_user)
    return build_report(requests, users, filters, top_n=top_n)

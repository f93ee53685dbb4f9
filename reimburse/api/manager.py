# reimburse/api/manager.py

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from reimburse.core.permissions import require_roles
from reimburse.db.session import get_db
from reimburse.models.reimbursement_request import RequestStatus
from reimburse.models.user import User, UserRole
from reimburse.schemas.report import ManagerDashboard
from reimburse.schemas.user import UserOut
from reimburse.schemas.reimbursement_request import (
    BulkDecisionIn,
    DecisionIn,
    RequestOut,
)
from reimburse.services import request_service
from reimburse.services.manager_service import manager_dashboard, team_members

router = APIRouter(prefix="/manager", tags=["Manager"])

APPROVERS = [UserRole.manager, UserRole.admin]


@router.get("/dashboard", response_model=ManagerDashboard)
def get_dashboard(
    year: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(APPROVERS)),
):
    return manager_dashboard(db, current_user.id, year or date.today().year)


@router.get("/team", response_model=List[UserOut])
def get_team(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(APPROVERS)),
):
    return team_members(db, current_user.id)


@router.get("/requests", response_model=List[RequestOut])
def list_requests_to_decide(
    status: Optional[RequestStatus] = None,
    year: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(APPROVERS)),
):
    return request_service.list_approver_requests(
        db,
        current_user.id,
        [status] if status else None,
        year=year,
    )


# --------------------------------------------------
# DECIDE (APPROVE / REJECT)
# --------------------------------------------------
@router.post("/requests/{request_id}/decision", response_model=RequestOut)
def decide(
    request_id: UUID,
    payload: DecisionIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(APPROVERS)),
):
    return request_service.decide_request(
        db,
        request_id,
        payload.status,
        comments=payload.comments,
        approver_id=current_user.id,
    )


@router.post("/requests/bulk-decision", response_model=List[RequestOut])
def bulk_decision(
    payload: BulkDecisionIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(APPROVERS)),
):
    return request_service.bulk_decide(
        db,
        payload.request_ids,
        payload.status,
        comments=payload.comments,
        approver_id=current_user.id,
    )

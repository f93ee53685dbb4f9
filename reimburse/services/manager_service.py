from sqlalchemy.orm import Session

from reimburse.db.session import store_guard
from reimburse.models.reimbursement_request import DECISION_STATUSES, RequestStatus
from reimburse.models.user import User
from reimburse.schemas.report import ManagerDashboard
from reimburse.schemas.reimbursement_request import RequestOut
from reimburse.services.budget_service import get_user_or_404
from reimburse.services.request_service import list_approver_requests
from reimburse.utils.calculations import sum_amounts


def manager_dashboard(db: Session, manager_id, year: int) -> ManagerDashboard:
    """Summary cards and queues for the approver page."""
    manager = get_user_or_404(db, manager_id)

    with store_guard(db):
        team_count = db.query(User).filter(User.manager_id == manager.id).count()

    pending = list_approver_requests(db, manager.id, [RequestStatus.pending], year=year)
    approved = list_approver_requests(db, manager.id, [RequestStatus.approved], year=year)
    # decided history is not limited to the year
    decided = list_approver_requests(db, manager.id, DECISION_STATUSES)

    return ManagerDashboard(
        manager_id=manager.id,
        year=year,
        team_count=team_count,
        pending_count=len(pending),
        total_pending_amount=sum_amounts(r.amount for r in pending),
        total_approved_amount=sum_amounts(r.amount for r in approved),
        pending_requests=[RequestOut.model_validate(r) for r in pending],
        decided_requests=[RequestOut.model_validate(r) for r in decided],
    )


def team_members(db: Session, manager_id):
    with store_guard(db):
        return (
            db.query(User)
            .filter(User.manager_id == manager_id)
            .order_by(User.name)
            .all()
        )

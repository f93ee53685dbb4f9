# reimburse/services/request_service.py
"""
Reimbursement request lifecycle: Pending -> Approved | Rejected, once.

Create and edit are admitted against the owner's yearly budget for the year
of the expense date. The budget check and the write are separate statements
with no lock, so two concurrent submissions by one user can both pass.
Bulk decisions are a single conditional UPDATE and commit all-or-nothing.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from reimburse.core.exceptions import (
    AlreadyDecided,
    BlobStoreUnavailable,
    BudgetExceeded,
    BulkDecisionFailed,
    InvalidDecision,
    NoApproverAssigned,
    NotDeletable,
    NotEditable,
    NotFound,
)
from reimburse.db.session import store_guard
from reimburse.models.reimbursement_request import (
    DECISION_STATUSES,
    ReimbursementRequest,
    RequestStatus,
)
from reimburse.schemas.reimbursement_request import RequestCreate, RequestUpdate
from reimburse.services.blob_store import BlobStore
from reimburse.services.budget_service import (
    allocated_budget,
    consumed_budget,
    get_user_or_404,
)
from reimburse.services.receipt_service import (
    ReceiptFile,
    check_receipt_type,
    remove_all_receipts,
    upload_receipts,
)
from reimburse.utils.calculations import year_bounds

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "expense_date",
    "category",
    "description",
    "amount",
    "merchant",
    "notes",
)


@dataclass
class SubmissionResult:
    request: ReimbursementRequest
    receipt_urls: List[str] = field(default_factory=list)
    receipt_error: Optional[str] = None


# --------------------------------------------------
# READS
# --------------------------------------------------
def get_request(db: Session, request_id, user_id=None, approver_id=None) -> ReimbursementRequest:
    with store_guard(db):
        request = (
            db.query(ReimbursementRequest)
            .filter(ReimbursementRequest.id == request_id)
            .first()
        )

    if not request:
        raise NotFound("Request", request_id)
    # someone else's request looks exactly like a missing one
    if user_id is not None and request.user_id != user_id:
        raise NotFound("Request", request_id)
    if approver_id is not None and request.approver != approver_id:
        raise NotFound("Request", request_id)
    return request


def list_user_requests(db: Session, user_id, year: Optional[int] = None) -> List[ReimbursementRequest]:
    query = db.query(ReimbursementRequest).filter(ReimbursementRequest.user_id == user_id)
    if year is not None:
        start, end = year_bounds(year)
        query = query.filter(
            ReimbursementRequest.expense_date >= start,
            ReimbursementRequest.expense_date <= end,
        )
    with store_guard(db):
        return (
            query.order_by(
                ReimbursementRequest.expense_date.desc(),
                ReimbursementRequest.created_at.desc(),
            )
            .all()
        )


def list_approver_requests(
    db: Session,
    approver_id,
    statuses: Optional[Iterable[RequestStatus]] = None,
    year: Optional[int] = None,
) -> List[ReimbursementRequest]:
    query = db.query(ReimbursementRequest).filter(ReimbursementRequest.approver == approver_id)
    if statuses:
        query = query.filter(ReimbursementRequest.status.in_(list(statuses)))
    if year is not None:
        start, end = year_bounds(year)
        query = query.filter(
            ReimbursementRequest.expense_date >= start,
            ReimbursementRequest.expense_date <= end,
        )
    with store_guard(db):
        return (
            query.order_by(
                ReimbursementRequest.expense_date.desc(),
                ReimbursementRequest.created_at.desc(),
            )
            .all()
        )


# --------------------------------------------------
# ADMISSION
# --------------------------------------------------
def _check_budget(db: Session, user, amount, expense_date, exclude_request_id=None):
    year = expense_date.year
    available = allocated_budget(user) - consumed_budget(
        db, user.id, year, exclude_request_id=exclude_request_id
    )
    if amount > available:
        logger.warning(
            "budget exceeded user=%s year=%s requested=%s available=%s",
            user.id, year, amount, available,
        )
        raise BudgetExceeded(available=available, requested=amount, year=year)
    return available


# --------------------------------------------------
# CREATE
# --------------------------------------------------
def create_request(
    db: Session,
    user_id,
    payload: RequestCreate,
    files: Optional[List[ReceiptFile]] = None,
    blob_store: Optional[BlobStore] = None,
) -> SubmissionResult:
    user = get_user_or_404(db, user_id)

    # reject bad files before anything is written
    if files:
        if blob_store is None:
            raise ValueError("blob_store is required to upload receipts")
        for receipt in files:
            check_receipt_type(receipt.filename)

    _check_budget(db, user, payload.amount, payload.expense_date)

    if not user.manager_id:
        raise NoApproverAssigned(user.id)

    request = ReimbursementRequest(
        user_id=user.id,
        approver=user.manager_id,
        amount=payload.amount,
        category=payload.category,
        expense_date=payload.expense_date,
        description=payload.description,
        merchant=payload.merchant,
        notes=payload.notes,
        status=RequestStatus.pending,
        receipt_url=None,
    )

    with store_guard(db):
        db.add(request)
        db.commit()
        db.refresh(request)

    logger.info(
        "request created id=%s user=%s amount=%s approver=%s",
        request.id, user.id, request.amount, request.approver,
    )

    result = SubmissionResult(request=request)
    if not files:
        return result

    # the request stays even if the receipts do not make it
    try:
        result.receipt_urls = upload_receipts(db, blob_store, request, files)
    except BlobStoreUnavailable as e:
        logger.error("receipt upload failed for request=%s", request.id, exc_info=True)
        result.receipt_error = e.message
    return result


# --------------------------------------------------
# EDIT
# --------------------------------------------------
def edit_request(
    db: Session,
    request_id,
    payload: RequestUpdate,
    user_id=None,
) -> ReimbursementRequest:
    request = get_request(db, request_id, user_id=user_id)

    if not request.is_pending:
        raise NotEditable(request.id, request.status.value)

    owner = get_user_or_404(db, request.user_id)
    _check_budget(
        db,
        owner,
        payload.amount,
        payload.expense_date,
        exclude_request_id=request.id,
    )

    data = payload.model_dump()
    for name in EDITABLE_FIELDS:
        setattr(request, name, data[name])

    with store_guard(db):
        db.commit()
        db.refresh(request)

    logger.info("request edited id=%s amount=%s", request.id, request.amount)
    return request


# --------------------------------------------------
# DELETE
# --------------------------------------------------
def delete_request(
    db: Session,
    request_id,
    blob_store: BlobStore,
    user_id=None,
) -> None:
    request = get_request(db, request_id, user_id=user_id)

    if not request.is_pending:
        raise NotDeletable(request.id, request.status.value)

    # blobs first: if storage is down the request is still there to retry
    removed = remove_all_receipts(blob_store, request)

    with store_guard(db):
        db.delete(request)
        db.commit()

    logger.info("request deleted id=%s receipts_removed=%d", request_id, len(removed))


# --------------------------------------------------
# DECIDE
# --------------------------------------------------
def _decision_status(status) -> RequestStatus:
    try:
        status = RequestStatus(status)
    except ValueError:
        raise InvalidDecision(status)
    if status not in DECISION_STATUSES:
        raise InvalidDecision(status.value)
    return status


def decide_request(
    db: Session,
    request_id,
    status,
    comments: Optional[str] = None,
    approver_id=None,
) -> ReimbursementRequest:
    """Approve or reject a pending request. The budget is not re-checked."""
    new_status = _decision_status(status)
    request = get_request(db, request_id, approver_id=approver_id)

    if not request.is_pending:
        raise AlreadyDecided(request.id, request.status.value)

    request.status = new_status
    request.approval_comments = comments
    request.decision_at = datetime.utcnow()

    with store_guard(db):
        db.commit()
        db.refresh(request)

    logger.info("request decided id=%s status=%s", request.id, new_status.value)
    return request


def bulk_decide(
    db: Session,
    request_ids: List,
    status,
    comments: Optional[str] = None,
    approver_id=None,
) -> List[ReimbursementRequest]:
    """Decide every id or none of them."""
    new_status = _decision_status(status)

    # keep caller order, drop repeats
    ids = list(dict.fromkeys(request_ids))
    if not ids:
        return []

    with store_guard(db):
        found = {
            r.id: r
            for r in db.query(ReimbursementRequest)
            .filter(ReimbursementRequest.id.in_(ids))
            .all()
        }

    offending = [
        request_id
        for request_id in ids
        if request_id not in found
        or not found[request_id].is_pending
        or (approver_id is not None and found[request_id].approver != approver_id)
    ]
    if offending:
        logger.warning("bulk decision refused, offending=%s", offending)
        raise BulkDecisionFailed(offending)

    conditions = [
        ReimbursementRequest.id.in_(ids),
        ReimbursementRequest.status == RequestStatus.pending,
    ]
    if approver_id is not None:
        conditions.append(ReimbursementRequest.approver == approver_id)

    with store_guard(db):
        updated = (
            db.query(ReimbursementRequest)
            .filter(*conditions)
            .update(
                {
                    ReimbursementRequest.status: new_status,
                    ReimbursementRequest.approval_comments: comments,
                    ReimbursementRequest.decision_at: datetime.utcnow(),
                },
                synchronize_session=False,
            )
        )

        # someone decided one of them between the read and the write
        if updated != len(ids):
            db.rollback()
            still_pending = {
                r.id
                for r in db.query(ReimbursementRequest)
                .filter(*conditions)
                .all()
            }
            raise BulkDecisionFailed([i for i in ids if i not in still_pending])

        db.commit()

    decided = []
    for request_id in ids:
        request = found[request_id]
        db.refresh(request)
        decided.append(request)

    logger.info(
        "bulk decision status=%s count=%d", new_status.value, len(decided)
    )
    return decided

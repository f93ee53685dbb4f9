from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Query

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
    StoreUnavailable,
    UnsupportedReceiptType,
)
from reimburse.models.reimbursement_request import ReimbursementRequest, RequestStatus
from reimburse.models.user import UserRole
from reimburse.schemas.reimbursement_request import RequestCreate, RequestUpdate
from reimburse.services import request_service
from reimburse.services.budget_service import available_budget
from reimburse.services.receipt_service import ReceiptFile

YEAR = 2025


def payload(amount="100", expense_date=date(YEAR, 5, 2), **overrides):
    values = {
        "description": "Client lunch",
        "amount": Decimal(amount),
        "category": "Meals and Entertainment",
        "expense_date": expense_date,
        "merchant": "Bistro",
        "notes": "Quarterly review",
    }
    values.update(overrides)
    return values


class BrokenBlobStore:
    def upload(self, path, data, content_type=None, upsert=False):
        raise BlobStoreUnavailable("disk full")

    def list(self, prefix):
        raise BlobStoreUnavailable("disk full")

    def remove(self, paths):
        raise BlobStoreUnavailable("disk full")

    def public_url(self, path):
        return path


# --------------------------------------------------
# CREATE
# --------------------------------------------------
def test_create_within_budget_is_pending_with_manager_as_approver(db, employee, manager):
    result = request_service.create_request(db, employee.id, RequestCreate(**payload("250")))

    request = result.request
    assert request.status == RequestStatus.pending
    assert request.approver == manager.id
    assert request.user_id == employee.id
    assert request.amount == Decimal("250")
    assert result.receipt_error is None
    assert available_budget(db, employee.id, YEAR) == Decimal("750")


def test_create_over_budget_reports_available_amount(db, employee, make_request):
    make_request(employee, amount="400", status=RequestStatus.approved)

    with pytest.raises(BudgetExceeded) as exc:
        request_service.create_request(db, employee.id, RequestCreate(**payload("700")))

    assert exc.value.available == Decimal("600")
    assert exc.value.shortfall == Decimal("100")
    assert exc.value.to_dict()["available"] == 600.0
    assert db.query(ReimbursementRequest).count() == 1


def test_create_for_exactly_the_remaining_budget_succeeds(db, employee, make_request):
    make_request(employee, amount="400", status=RequestStatus.approved)

    result = request_service.create_request(db, employee.id, RequestCreate(**payload("600")))

    assert result.request.status == RequestStatus.pending
    assert available_budget(db, employee.id, YEAR) == Decimal("0")


def test_create_checks_the_year_of_the_expense_date(db, employee, make_request):
    make_request(employee, amount="1000", expense_date=date(YEAR, 6, 1))

    with pytest.raises(BudgetExceeded):
        request_service.create_request(db, employee.id, RequestCreate(**payload("10")))

    result = request_service.create_request(
        db, employee.id, RequestCreate(**payload("900", expense_date=date(YEAR + 1, 1, 15)))
    )
    assert result.request.expense_date == date(YEAR + 1, 1, 15)


def test_create_without_manager_fails(db, make_user):
    orphan = make_user(role=UserRole.employee, budget="500")

    with pytest.raises(NoApproverAssigned):
        request_service.create_request(db, orphan.id, RequestCreate(**payload("50")))

    assert db.query(ReimbursementRequest).count() == 0


def test_create_for_unknown_user_fails(db):
    with pytest.raises(NotFound):
        request_service.create_request(db, uuid4(), RequestCreate(**payload()))


def test_admin_cannot_spend(db, make_user, manager):
    admin = make_user(role=UserRole.admin, budget="5000", manager=manager)

    with pytest.raises(BudgetExceeded) as exc:
        request_service.create_request(db, admin.id, RequestCreate(**payload("1")))

    assert exc.value.available == Decimal("0")


def test_create_writes_nothing_when_the_database_drops(db, employee, monkeypatch):
    def refuse():
        raise OperationalError("COMMIT", {}, Exception("server closed the connection"))

    monkeypatch.setattr(db, "commit", refuse)

    with pytest.raises(StoreUnavailable):
        request_service.create_request(db, employee.id, RequestCreate(**payload("250")))

    monkeypatch.undo()
    assert db.query(ReimbursementRequest).count() == 0


def test_create_uploads_receipts_under_the_request_folder(db, employee, blob_store):
    files = [
        ReceiptFile("lunch.jpg", b"jpg-bytes", "image/jpeg"),
        ReceiptFile("invoice.pdf", b"pdf-bytes", "application/pdf"),
    ]

    result = request_service.create_request(
        db, employee.id, RequestCreate(**payload()), files=files, blob_store=blob_store
    )

    folder = f"{employee.id}/reimbursement_requests/{result.request.id}"
    names = blob_store.list(folder)
    assert len(names) == 2
    assert names[0].endswith("_0_lunch.jpg") or names[1].endswith("_0_lunch.jpg")
    assert result.request.receipt_urls == result.receipt_urls
    assert all(url.startswith(f"http://files.test/{folder}/") for url in result.receipt_urls)


def test_receipt_upload_failure_keeps_the_request(db, employee):
    files = [ReceiptFile("lunch.jpg", b"jpg-bytes", "image/jpeg")]

    result = request_service.create_request(
        db, employee.id, RequestCreate(**payload()), files=files, blob_store=BrokenBlobStore()
    )

    assert result.receipt_error is not None
    assert result.receipt_urls == []
    stored = db.query(ReimbursementRequest).filter_by(id=result.request.id).one()
    assert stored.status == RequestStatus.pending
    assert stored.receipt_url is None


def test_unsupported_receipt_is_rejected_before_writing(db, employee, blob_store):
    files = [ReceiptFile("macro.exe", b"nope")]

    with pytest.raises(UnsupportedReceiptType):
        request_service.create_request(
            db, employee.id, RequestCreate(**payload()), files=files, blob_store=blob_store
        )

    assert db.query(ReimbursementRequest).count() == 0


# --------------------------------------------------
# EDIT
# --------------------------------------------------
def test_edit_can_use_old_amount_plus_remaining(db, employee, make_request):
    request = make_request(employee, amount="100")
    make_request(employee, amount="700")

    edited = request_service.edit_request(db, request.id, RequestUpdate(**payload("300")))

    assert edited.amount == Decimal("300")
    assert edited.category == "Meals and Entertainment"
    assert edited.notes == "Quarterly review"


def test_edit_over_adjusted_ceiling_fails(db, employee, make_request):
    request = make_request(employee, amount="100")
    make_request(employee, amount="800", status=RequestStatus.approved)

    with pytest.raises(BudgetExceeded) as exc:
        request_service.edit_request(db, request.id, RequestUpdate(**payload("250")))

    assert exc.value.available == Decimal("200")
    db.refresh(request)
    assert request.amount == Decimal("100")


def test_edit_leaves_lifecycle_fields_alone(db, employee, manager, make_request):
    request = make_request(employee, amount="100")
    created_at = request.created_at

    edited = request_service.edit_request(db, request.id, RequestUpdate(**payload("120")))

    assert edited.status == RequestStatus.pending
    assert edited.approver == manager.id
    assert edited.created_at == created_at


@pytest.mark.parametrize("status", [RequestStatus.approved, RequestStatus.rejected])
def test_edit_decided_request_fails_and_changes_nothing(db, employee, make_request, status):
    request = make_request(employee, amount="100", status=status)
    before = {
        name: getattr(request, name)
        for name in ("amount", "category", "description", "merchant", "notes", "expense_date", "status")
    }

    with pytest.raises(NotEditable):
        request_service.edit_request(db, request.id, RequestUpdate(**payload("50")))

    db.refresh(request)
    after = {name: getattr(request, name) for name in before}
    assert after == before


def test_edit_someone_elses_request_is_not_found(db, employee, make_user, manager, make_request):
    request = make_request(employee)
    other = make_user(manager=manager)

    with pytest.raises(NotFound):
        request_service.edit_request(db, request.id, RequestUpdate(**payload()), user_id=other.id)


# --------------------------------------------------
# DELETE
# --------------------------------------------------
def test_delete_pending_request_removes_row_and_receipts(db, employee, blob_store):
    files = [ReceiptFile("taxi.png", b"png")]
    result = request_service.create_request(
        db, employee.id, RequestCreate(**payload()), files=files, blob_store=blob_store
    )
    request_id = result.request.id
    folder = f"{employee.id}/reimbursement_requests/{request_id}"

    request_service.delete_request(db, request_id, blob_store)

    assert db.query(ReimbursementRequest).filter_by(id=request_id).first() is None
    assert blob_store.list(folder) == []


def test_delete_decided_request_fails(db, employee, make_request, blob_store):
    request = make_request(employee, status=RequestStatus.approved)

    with pytest.raises(NotDeletable):
        request_service.delete_request(db, request.id, blob_store)

    assert db.query(ReimbursementRequest).filter_by(id=request.id).first() is not None


def test_delete_keeps_request_when_storage_is_down(db, employee, make_request):
    request = make_request(employee)

    with pytest.raises(BlobStoreUnavailable):
        request_service.delete_request(db, request.id, BrokenBlobStore())

    assert db.query(ReimbursementRequest).filter_by(id=request.id).first() is not None


# --------------------------------------------------
# DECIDE
# --------------------------------------------------
def test_decide_sets_status_comments_and_time(db, employee, manager, make_request):
    request = make_request(employee)

    decided = request_service.decide_request(
        db, request.id, RequestStatus.approved, comments="ok", approver_id=manager.id
    )

    assert decided.status == RequestStatus.approved
    assert decided.approval_comments == "ok"
    assert decided.decision_at is not None


def test_second_decision_fails_and_keeps_status(db, employee, make_request):
    request = make_request(employee)
    request_service.decide_request(db, request.id, RequestStatus.approved)

    for status in (RequestStatus.approved, RequestStatus.rejected):
        with pytest.raises(AlreadyDecided):
            request_service.decide_request(db, request.id, status)

    db.refresh(request)
    assert request.status == RequestStatus.approved


def test_approval_does_not_recheck_budget(db, employee, make_user, make_request):
    request = make_request(employee, amount="900")
    employee.reimbursement_budget = Decimal("100")
    db.commit()

    decided = request_service.decide_request(db, request.id, "Approved")

    assert decided.status == RequestStatus.approved


def test_pending_is_not_a_decision(db, employee, make_request):
    request = make_request(employee)

    with pytest.raises(InvalidDecision):
        request_service.decide_request(db, request.id, RequestStatus.pending)
    with pytest.raises(InvalidDecision):
        request_service.decide_request(db, request.id, "Maybe")


def test_decide_by_other_approver_is_not_found(db, employee, make_user, make_request):
    request = make_request(employee)
    other_manager = make_user(role=UserRole.manager)

    with pytest.raises(NotFound):
        request_service.decide_request(
            db, request.id, RequestStatus.approved, approver_id=other_manager.id
        )


# --------------------------------------------------
# BULK DECIDE
# --------------------------------------------------
def test_bulk_decide_updates_every_pending_request(db, employee, manager, make_request):
    first = make_request(employee, amount="10")
    second = make_request(employee, amount="20")

    decided = request_service.bulk_decide(
        db, [first.id, second.id], RequestStatus.rejected, comments="duplicate", approver_id=manager.id
    )

    assert [r.id for r in decided] == [first.id, second.id]
    for request in (first, second):
        db.refresh(request)
        assert request.status == RequestStatus.rejected
        assert request.approval_comments == "duplicate"


def test_bulk_decide_is_all_or_nothing(db, employee, make_request):
    first = make_request(employee)
    second = make_request(employee, status=RequestStatus.approved)

    with pytest.raises(BulkDecisionFailed) as exc:
        request_service.bulk_decide(db, [first.id, second.id], RequestStatus.approved)

    assert exc.value.request_ids == [second.id]
    db.refresh(first)
    assert first.status == RequestStatus.pending


def test_bulk_decide_reports_missing_ids(db, employee, make_request):
    first = make_request(employee)
    missing = uuid4()

    with pytest.raises(BulkDecisionFailed) as exc:
        request_service.bulk_decide(db, [first.id, missing], RequestStatus.approved)

    assert exc.value.request_ids == [missing]
    db.refresh(first)
    assert first.status == RequestStatus.pending


def test_bulk_decide_rolls_back_when_a_request_is_decided_concurrently(
    db, employee, manager, make_request, monkeypatch
):
    first = make_request(employee, amount="10")
    second = make_request(employee, amount="20")
    third = make_request(employee, amount="30")
    original_update = Query.update

    # another approver decides the second request between the read and the write
    def racing_update(self, values, *args, **kwargs):
        monkeypatch.setattr(Query, "update", original_update)
        db.query(ReimbursementRequest).filter(ReimbursementRequest.id == second.id).update(
            {ReimbursementRequest.status: RequestStatus.rejected}, synchronize_session=False
        )
        db.commit()
        return original_update(self, values, *args, **kwargs)

    monkeypatch.setattr(Query, "update", racing_update)

    with pytest.raises(BulkDecisionFailed) as exc:
        request_service.bulk_decide(
            db, [first.id, second.id, third.id], RequestStatus.approved, approver_id=manager.id
        )

    assert exc.value.request_ids == [second.id]
    for request in (first, third):
        db.refresh(request)
        assert request.status == RequestStatus.pending
        assert request.decision_at is None
    db.refresh(second)
    assert second.status == RequestStatus.rejected


def test_bulk_decide_empty_batch_is_a_no_op(db):
    assert request_service.bulk_decide(db, [], RequestStatus.approved) == []

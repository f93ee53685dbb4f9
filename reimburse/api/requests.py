# reimburse/api/requests.py

from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.orm import Session

from reimburse.api.auth import get_current_user
from reimburse.core.permissions import require_roles
from reimburse.db.session import get_db
from reimburse.models.user import User, UserRole
from reimburse.schemas.reimbursement_request import (
    BudgetOut,
    ReceiptListOut,
    RequestCreate,
    RequestOut,
    RequestUpdate,
    SubmissionOut,
)
from reimburse.services import receipt_service, request_service
from reimburse.services.blob_store import BlobStore, get_blob_store
from reimburse.services.budget_service import budget_summary
from reimburse.services.receipt_service import ReceiptFile

router = APIRouter(tags=["Reimbursement Requests"])

SUBMITTERS = [UserRole.employee, UserRole.manager]


def _receipt_files(files: List[UploadFile]) -> List[ReceiptFile]:
    return [
        ReceiptFile(
            filename=f.filename or "",
            content=f.file.read(),
            content_type=f.content_type,
        )
        for f in files
    ]


# --------------------------------------------------
# BUDGET
# --------------------------------------------------
@router.get("/budget", response_model=BudgetOut)
def get_my_budget(
    year: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    summary = budget_summary(db, current_user.id, year or date.today().year)
    return BudgetOut(
        user_id=summary.user_id,
        year=summary.year,
        allocated=summary.allocated,
        pending=summary.pending,
        approved=summary.approved,
        consumed=summary.consumed,
        available=summary.available,
    )


# --------------------------------------------------
# SUBMIT
# --------------------------------------------------
@router.post(
    "/requests",
    response_model=SubmissionOut,
    status_code=status.HTTP_201_CREATED,
)
def submit_request(
    payload: RequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(SUBMITTERS)),
):
    result = request_service.create_request(db, current_user.id, payload)
    return SubmissionOut(
        request=RequestOut.model_validate(result.request),
        receipt_urls=result.receipt_urls,
        receipt_error=result.receipt_error,
    )


@router.post(
    "/requests/with-receipts",
    response_model=SubmissionOut,
    status_code=status.HTTP_201_CREATED,
)
def submit_request_with_receipts(
    description: str = Form(...),
    amount: Decimal = Form(...),
    category: str = Form(...),
    expense_date: date = Form(...),
    merchant: str = Form(...),
    notes: Optional[str] = Form(default=None),
    files: List[UploadFile] = File(default=[]),
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    current_user: User = Depends(require_roles(SUBMITTERS)),
):
    try:
        payload = RequestCreate(
            description=description,
            amount=amount,
            category=category,
            expense_date=expense_date,
            merchant=merchant,
            notes=notes,
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False, include_context=False))

    # receipts go up after the row is written; a failed upload keeps the request
    result = request_service.create_request(
        db,
        current_user.id,
        payload,
        files=_receipt_files(files),
        blob_store=blob_store,
    )
    return SubmissionOut(
        request=RequestOut.model_validate(result.request),
        receipt_urls=result.receipt_urls,
        receipt_error=result.receipt_error,
    )


# --------------------------------------------------
# LIST / GET MINE
# --------------------------------------------------
@router.get("/requests", response_model=list[RequestOut])
def list_my_requests(
    year: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return request_service.list_user_requests(
        db, current_user.id, year=year or date.today().year
    )


@router.get("/requests/{request_id}", response_model=RequestOut)
def get_my_request(
    request_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return request_service.get_request(db, request_id, user_id=current_user.id)


# --------------------------------------------------
# EDIT / DELETE (PENDING ONLY)
# --------------------------------------------------
@router.put("/requests/{request_id}", response_model=RequestOut)
def edit_my_request(
    request_id: UUID,
    payload: RequestUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return request_service.edit_request(db, request_id, payload, user_id=current_user.id)


@router.delete("/requests/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_my_request(
    request_id: UUID,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    current_user: User = Depends(get_current_user),
):
    request_service.delete_request(db, request_id, blob_store, user_id=current_user.id)
    return None


# --------------------------------------------------
# RECEIPTS
# form-data key: files (repeatable)
# --------------------------------------------------
@router.post(
    "/requests/{request_id}/receipts",
    response_model=ReceiptListOut,
    status_code=status.HTTP_201_CREATED,
)
def upload_request_receipts(
    request_id: UUID,
    files: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    current_user: User = Depends(get_current_user),
):
    request = request_service.get_request(db, request_id, user_id=current_user.id)
    receipt_service.add_receipts(db, blob_store, request, _receipt_files(files))
    return ReceiptListOut(
        request_id=request.id,
        files=receipt_service.list_receipts(blob_store, request),
        receipt_urls=request.receipt_urls,
    )


@router.get("/requests/{request_id}/receipts", response_model=ReceiptListOut)
def list_request_receipts(
    request_id: UUID,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    current_user: User = Depends(get_current_user),
):
    request = request_service.get_request(db, request_id, user_id=current_user.id)
    return ReceiptListOut(
        request_id=request.id,
        files=receipt_service.list_receipts(blob_store, request),
        receipt_urls=request.receipt_urls,
    )


@router.delete("/requests/{request_id}/receipts/{filename}", response_model=ReceiptListOut)
def delete_request_receipt(
    request_id: UUID,
    filename: str,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    current_user: User = Depends(get_current_user),
):
    request = request_service.get_request(db, request_id, user_id=current_user.id)
    receipt_service.remove_receipt(db, blob_store, request, filename)
    return ReceiptListOut(
        request_id=request.id,
        files=receipt_service.list_receipts(blob_store, request),
        receipt_urls=request.receipt_urls,
    )

# reimburse/services/receipt_service.py

import logging
import time
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from reimburse.core.constants import RECEIPT_EXTENSIONS, RECEIPT_FOLDER
from reimburse.core.exceptions import NotEditable, UnsupportedReceiptType
from reimburse.db.session import store_guard
from reimburse.models.reimbursement_request import ReimbursementRequest
from reimburse.services.blob_store import BlobStore

logger = logging.getLogger(__name__)


@dataclass
class ReceiptFile:
    filename: str
    content: bytes
    content_type: Optional[str] = None


def receipt_folder(user_id, request_id) -> str:
    return f"{user_id}/{RECEIPT_FOLDER}/{request_id}"


def check_receipt_type(filename: str):
    ext = (filename.rsplit(".", 1)[-1] if filename and "." in filename else "").lower()
    if ext not in RECEIPT_EXTENSIONS:
        raise UnsupportedReceiptType(filename)


def _safe_name(filename: str) -> str:
    # keep the original name but never a directory part
    return filename.replace("\\", "/").rsplit("/", 1)[-1]


def upload_receipts(
    db: Session,
    blob_store: BlobStore,
    request: ReimbursementRequest,
    files: List[ReceiptFile],
) -> List[str]:
    """Upload files taken at submission and store their public URLs on the request."""
    for receipt in files:
        check_receipt_type(receipt.filename)

    folder = receipt_folder(request.user_id, request.id)
    stamp = int(time.time() * 1000)

    urls = [
        blob_store.upload(
            f"{folder}/{stamp}_{index}_{_safe_name(receipt.filename)}",
            receipt.content,
            content_type=receipt.content_type,
        )
        for index, receipt in enumerate(files)
    ]

    request.receipt_urls = request.receipt_urls + urls
    with store_guard(db):
        db.commit()
        db.refresh(request)

    logger.info("uploaded %d receipt(s) for request=%s", len(urls), request.id)
    return urls


def list_receipts(blob_store: BlobStore, request: ReimbursementRequest) -> List[str]:
    return blob_store.list(receipt_folder(request.user_id, request.id))


def _sync_receipt_urls(db: Session, blob_store: BlobStore, request: ReimbursementRequest):
    folder = receipt_folder(request.user_id, request.id)
    request.receipt_urls = [
        blob_store.public_url(f"{folder}/{name}")
        for name in blob_store.list(folder)
    ]
    with store_guard(db):
        db.commit()
        db.refresh(request)


def add_receipts(
    db: Session,
    blob_store: BlobStore,
    request: ReimbursementRequest,
    files: List[ReceiptFile],
) -> List[str]:
    """Add files to a pending request's folder, replacing same-named ones."""
    if not request.is_pending:
        raise NotEditable(request.id, request.status.value)
    for receipt in files:
        check_receipt_type(receipt.filename)

    folder = receipt_folder(request.user_id, request.id)
    for receipt in files:
        blob_store.upload(
            f"{folder}/{_safe_name(receipt.filename)}",
            receipt.content,
            content_type=receipt.content_type,
            upsert=True,
        )

    _sync_receipt_urls(db, blob_store, request)
    return request.receipt_urls


def remove_receipt(
    db: Session,
    blob_store: BlobStore,
    request: ReimbursementRequest,
    filename: str,
) -> List[str]:
    if not request.is_pending:
        raise NotEditable(request.id, request.status.value)

    folder = receipt_folder(request.user_id, request.id)
    blob_store.remove([f"{folder}/{_safe_name(filename)}"])

    _sync_receipt_urls(db, blob_store, request)
    return request.receipt_urls


def remove_all_receipts(blob_store: BlobStore, request: ReimbursementRequest):
    folder = receipt_folder(request.user_id, request.id)
    names = blob_store.list(folder)
    if names:
        blob_store.remove([f"{folder}/{name}" for name in names])
    return names

# reimburse/models/reimbursement_request.py

import enum
import uuid
from datetime import datetime
from typing import List

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship

from reimburse.db.base import Base


class RequestStatus(str, enum.Enum):
    pending = "Pending"
    approved = "Approved"
    rejected = "Rejected"


# statuses that reserve part of the yearly budget
CONSUMING_STATUSES = (RequestStatus.pending, RequestStatus.approved)

DECISION_STATUSES = (RequestStatus.approved, RequestStatus.rejected)


class ReimbursementRequest(Base):
    __tablename__ = "reimbursement_requests"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # copied from the owner's managerID at submission, never changed
    approver = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    amount = Column(Numeric(12, 2), nullable=False)
    category = Column(String, nullable=False)
    expense_date = Column(Date, nullable=False, index=True)

    status = Column(
        Enum(RequestStatus, values_callable=lambda statuses: [s.value for s in statuses]),
        default=RequestStatus.pending,
        nullable=False,
        index=True,
    )

    description = Column(Text, nullable=False)
    merchant = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    # comma-joined public URLs
    receipt_url = Column(Text, nullable=True)

    # decision fields, written once
    approval_comments = Column(Text, nullable=True)
    decision_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship(
        "User",
        back_populates="reimbursement_requests",
        foreign_keys=[user_id],
    )
    approver_user = relationship("User", foreign_keys=[approver])

    @property
    def receipt_urls(self) -> List[str]:
        if not self.receipt_url:
            return []
        return [url for url in self.receipt_url.split(",") if url]

    @receipt_urls.setter
    def receipt_urls(self, urls: List[str]):
        self.receipt_url = ",".join(urls) if urls else None

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.pending

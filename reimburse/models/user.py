import enum
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import relationship

from reimburse.db.base import Base


class UserRole(str, enum.Enum):
    employee = "Employee"
    manager = "Manager"
    admin = "Admin"
    finance = "Finance"

    @property
    def requires_manager(self) -> bool:
        if self in (UserRole.employee, UserRole.manager):
            return True
        if self in (UserRole.admin, UserRole.finance):
            return False
        raise ValueError(f"Unknown role: {self}")

    @property
    def holds_budget(self) -> bool:
        # every role that reports to a manager spends from a yearly budget
        return self.requires_manager


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    role = Column(
        Enum(UserRole, values_callable=lambda roles: [r.value for r in roles]),
        nullable=False,
        default=UserRole.employee,
    )

    # approver for every request this user submits
    manager_id = Column(
        "managerID",
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    reimbursement_budget = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)

    manager = relationship("User", remote_side=[id], back_populates="team")
    team = relationship("User", back_populates="manager")

    reimbursement_requests = relationship(
        "ReimbursementRequest",
        back_populates="user",
        foreign_keys="ReimbursementRequest.user_id",
        cascade="all, delete-orphan",
    )

# reimburse/services/user_service.py

import logging
from typing import List

from sqlalchemy.orm import Session

from reimburse.core.exceptions import EmailAlreadyRegistered, ManagerRequired, NotFound
from reimburse.db.session import store_guard
from reimburse.models.user import User, UserRole
from reimburse.schemas.user import UserCreate, UserUpdate
from reimburse.services.budget_service import get_user_or_404

logger = logging.getLogger(__name__)


def _check_manager(db: Session, role: UserRole, manager_id, user_id=None):
    if not role.requires_manager:
        return None
    if manager_id is None:
        raise ManagerRequired(role.value)
    if user_id is not None and manager_id == user_id:
        raise ManagerRequired(role.value)
    with store_guard(db):
        manager = db.query(User).filter(User.id == manager_id).first()
    if not manager:
        raise NotFound("Manager", manager_id)
    return manager.id


def _check_email_free(db: Session, email: str, user_id=None):
    with store_guard(db):
        existing = db.query(User).filter(User.email == email).first()
    if existing and existing.id != user_id:
        raise EmailAlreadyRegistered(email)


def list_users(db: Session) -> List[User]:
    with store_guard(db):
        return db.query(User).order_by(User.name).all()


def list_managers(db: Session) -> List[User]:
    with store_guard(db):
        return (
            db.query(User)
            .filter(User.role != UserRole.employee)
            .order_by(User.name)
            .all()
        )


def create_user(db: Session, payload: UserCreate) -> User:
    _check_email_free(db, payload.email)
    manager_id = _check_manager(db, payload.role, payload.manager_id)

    user = User(
        email=payload.email,
        name=payload.name,
        role=payload.role,
        manager_id=manager_id,
        reimbursement_budget=payload.reimbursement_budget if payload.role.holds_budget else 0,
    )

    with store_guard(db):
        db.add(user)
        db.commit()
        db.refresh(user)

    logger.info("user created id=%s role=%s", user.id, user.role.value)
    return user


def update_user(db: Session, user_id, payload: UserUpdate) -> User:
    user = get_user_or_404(db, user_id)
    data = payload.model_dump(exclude_unset=True)

    if data.get("email"):
        _check_email_free(db, data["email"], user_id=user.id)

    role = data.get("role") or user.role
    manager_id = data["manager_id"] if "manager_id" in data else user.manager_id
    data["manager_id"] = _check_manager(db, role, manager_id, user_id=user.id)

    if not role.holds_budget:
        data["reimbursement_budget"] = 0

    for k, v in data.items():
        if v is None and k in ("name", "email", "role", "reimbursement_budget"):
            continue
        setattr(user, k, v)

    with store_guard(db):
        db.commit()
        db.refresh(user)

    logger.info("user updated id=%s role=%s", user.id, user.role.value)
    return user

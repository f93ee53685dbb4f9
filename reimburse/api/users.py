from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from reimburse.core.permissions import require_roles
from reimburse.db.session import get_db
from reimburse.models.user import UserRole
from reimburse.schemas.user import UserCreate, UserOut, UserUpdate
from reimburse.services import user_service
from reimburse.services.budget_service import get_user_or_404

router = APIRouter(
    prefix="/users",
    tags=["Users"],
    dependencies=[Depends(require_roles([UserRole.admin]))],
)


@router.get("", response_model=List[UserOut])
def list_users(db: Session = Depends(get_db)):
    return user_service.list_users(db)


@router.get("/managers", response_model=List[UserOut])
def list_managers(db: Session = Depends(get_db)):
    return user_service.list_managers(db)


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: UUID, db: Session = Depends(get_db)):
    return get_user_or_404(db, user_id)


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    return user_service.create_user(db, payload)


@router.put("/{user_id}", response_model=UserOut)
def update_user(user_id: UUID, payload: UserUpdate, db: Session = Depends(get_db)):
    return user_service.update_user(db, user_id, payload)

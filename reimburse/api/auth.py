from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from reimburse.core.security import decode_access_token
from reimburse.db.session import get_db, store_guard
from reimburse.models.user import User
from reimburse.schemas.user import UserOut

# tokens are issued by the external auth provider
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")

router = APIRouter(tags=["Auth"])


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    # only the subject is trusted; role is always read from the users table
    try:
        payload = decode_access_token(token)
        user_id = payload.get("sub")
        if not user_id:
            raise HTTPException(status_code=401, detail="Invalid token")
        user_id = UUID(str(user_id))
    except (JWTError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")

    with store_guard(db):
        user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    return user


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return current_user

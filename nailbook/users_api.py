from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from .auth_api import admin_identity, current_identity
from .authn import AuthIdentity
from .db import get_db
from .schemas import (
    MessageOut,
    PasswordChangeIn,
    UserBookingOut,
    UserDetailOut,
    UserListItemOut,
    UserOut,
    UserStatsOut,
    UserUpdate,
)
from .services import (
    change_user_password,
    delete_user,
    get_user,
    list_user_bookings,
    list_users,
    update_user,
    user_stats,
)

router = APIRouter(prefix="/api/users", tags=["users"])


def _ensure_self_or_admin(identity: AuthIdentity, user_id: str) -> None:
    if not identity.is_admin and identity.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")


@router.get("", response_model=List[UserListItemOut])
def get_users(
    role: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    _: AuthIdentity = Depends(admin_identity),
):
    rows = list_users(db, role=role, search=search)
    return [
        UserListItemOut(**UserOut.model_validate(user).model_dump(), bookings_count=count)
        for user, count in rows
    ]


@router.get("/stats/overview", response_model=UserStatsOut)
def get_user_stats(db: Session = Depends(get_db), _: AuthIdentity = Depends(admin_identity)):
    return UserStatsOut(**user_stats(db))


@router.get("/{user_id}", response_model=UserDetailOut)
def get_user_detail(
    user_id: str,
    db: Session = Depends(get_db),
    identity: AuthIdentity = Depends(current_identity),
):
    _ensure_self_or_admin(identity, user_id)
    user = get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    bookings = [
        UserBookingOut(
            id=b.id,
            date=b.date,
            time=b.time,
            status=b.status,
            service_name=b.service.name if b.service else "",
            service_price=float(b.service.price) if b.service else 0.0,
        )
        for b in list_user_bookings(db, user_id)
    ]
    return UserDetailOut(**UserOut.model_validate(user).model_dump(), bookings=bookings)


@router.put("/{user_id}", response_model=UserOut)
def put_user(
    user_id: str,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    identity: AuthIdentity = Depends(current_identity),
):
    _ensure_self_or_admin(identity, user_id)
    try:
        user = update_user(db, user_id, name=payload.name, email=payload.email, phone=payload.phone)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.patch("/{user_id}/password", response_model=MessageOut)
def patch_password(
    user_id: str,
    payload: PasswordChangeIn,
    db: Session = Depends(get_db),
    identity: AuthIdentity = Depends(current_identity),
):
    _ensure_self_or_admin(identity, user_id)
    try:
        user = change_user_password(db, user_id, payload.current_password, payload.new_password)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return MessageOut(message="Password changed successfully")


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_user(
    user_id: str,
    db: Session = Depends(get_db),
    _: AuthIdentity = Depends(admin_identity),
):
    try:
        deleted = delete_user(db, user_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

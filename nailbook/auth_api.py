from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from .authn import AuthIdentity, create_access_token, extract_identity
from .config import settings
from .db import get_db
from .models import User
from .schemas import AuthOut, LoginIn, MeOut, RegisterIn, UserOut
from .services import authenticate_user, create_user, get_user

router = APIRouter(prefix="/api/auth", tags=["auth"])


def current_identity(
    authorization: Optional[str] = Header(default=None),
    token: Optional[str] = Cookie(default=None, alias=settings.AUTH_TOKEN_COOKIE),
) -> AuthIdentity:
    identity = extract_identity(authorization, token)
    if not identity:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or missing bearer token")
    return identity


def admin_identity(identity: AuthIdentity = Depends(current_identity)) -> AuthIdentity:
    if not identity.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Only administrators can access this resource.",
        )
    return identity


def _issue_token(user: User) -> str:
    return create_access_token(identity=AuthIdentity(user_id=user.id, email=user.email, role=user.role))


@router.post("/login", response_model=AuthOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = authenticate_user(db, payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect email or password")
    return AuthOut(user=UserOut.model_validate(user), token=_issue_token(user))


@router.post("/register", response_model=AuthOut, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    try:
        user = create_user(
            db=db,
            name=payload.name,
            email=payload.email,
            phone=payload.phone,
            password=payload.password,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return AuthOut(user=UserOut.model_validate(user), token=_issue_token(user))


@router.get("/me", response_model=MeOut)
def me(identity: AuthIdentity = Depends(current_identity), db: Session = Depends(get_db)):
    user = get_user(db, identity.user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return MeOut(user=UserOut.model_validate(user))

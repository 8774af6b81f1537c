import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal.api.deps import get_current_user, get_db
from portal.core.config import get_settings
from portal.core.exceptions import ConflictError, ValidationFailedError
from portal.core.security import create_access_token, get_password_hash, verify_password
from portal.models.user import User
from portal.schemas.user import PasswordChange, Token, UserCreate, UserLogin, UserOut
from portal.services.audit import log_activity
from portal.services.rate_limit import enforce_rate_limit

settings = get_settings()
router = APIRouter()
logger = logging.getLogger(__name__)


def _throttle(request: Request, scope: str, limit: int, email: str) -> None:
    enforce_rate_limit(
        request=request,
        scope=scope,
        limit=limit,
        window_seconds=settings.auth_rate_limit_window_seconds,
        identity=email,
    )


def _find_account(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(func.lower(User.email) == email)).scalar_one_or_none()


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(payload: UserCreate, request: Request, db: Session = Depends(get_db)) -> UserOut:
    _throttle(request, "auth.register", settings.auth_rate_limit_register_max_requests, payload.email)
    if _find_account(db, payload.email) is not None:
        raise ConflictError("Email already registered", details={"email": payload.email})

    account = User(
        **payload.model_dump(exclude={"password"}),
        hashed_password=get_password_hash(payload.password),
        is_active=True,
    )
    db.add(account)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Email already registered", details={"email": payload.email}) from exc

    db.refresh(account)
    logger.info("Registered %s account %s", account.role.value, account.email)
    return account


def authenticate(payload: UserLogin, db: Session) -> User:
    """Check credentials, account state and, when given, the role the client signed in as."""
    account = _find_account(db, payload.email)
    if account is None or not verify_password(payload.password, account.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    if not account.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    if payload.role is not None and payload.role != account.role:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"This account cannot sign in as {payload.role.value}",
        )
    return account


@router.post("/login", response_model=Token)
def login(payload: UserLogin, request: Request, db: Session = Depends(get_db)) -> Token:
    _throttle(request, "auth.login", settings.auth_rate_limit_login_max_requests, payload.email)
    account = authenticate(payload, db)
    return Token(access_token=create_access_token(account.id), token_type="bearer", user=account)


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)) -> UserOut:
    return current_user


@router.post("/change-password")
def change_password(
    payload: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    if not verify_password(payload.current_password, current_user.hashed_password):
        raise ValidationFailedError("Current password is incorrect")
    if payload.new_password == payload.current_password:
        raise ValidationFailedError("New password must differ from the current password")

    current_user.hashed_password = get_password_hash(payload.new_password)
    log_activity(db, user=current_user, action="auth.password.change", entity_type="user", entity_id=current_user.id)
    db.commit()
    return {"success": True, "message": "Password updated"}

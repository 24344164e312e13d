from datetime import timedelta
import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.core.config import get_settings
from app.core.security import create_access_token, get_password_hash, verify_password
from app.models.user import User, UserRole
from app.schemas.user import StudentCreate, Token, UserCreate, UserLogin, UserOut
from app.services.audit import log_activity
from app.services.rate_limit import auth_policies, enforce_rate_limit

settings = get_settings()
router = APIRouter()
logger = logging.getLogger(__name__)
policies = auth_policies(settings)


def _query_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(User.email == email)).scalar_one_or_none()


def _query_user_by_roll_no(db: Session, roll_no: str) -> User | None:
    return db.execute(select(User).where(User.roll_no == roll_no)).scalar_one_or_none()


def _create_user(db: Session, payload: UserCreate | StudentCreate, *, actor: User | None = None) -> User:
    if _query_user_by_email(db, payload.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
    if payload.roll_no and _query_user_by_roll_no(db, payload.roll_no):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Roll number already registered")

    user = User(
        name=payload.name,
        email=payload.email,
        hashed_password=get_password_hash(payload.password),
        role=payload.role,
        department=payload.department,
        roll_no=payload.roll_no,
    )
    db.add(user)
    db.flush()
    log_activity(db, user=actor or user, action="auth.register", entity_type="user", entity_id=user.id)

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Email or roll number already registered"
        ) from exc

    db.refresh(user)
    logger.info("Registered %s user %s", user.role.value, user.id)
    return user


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(payload: UserCreate, request: Request, db: Session = Depends(get_db)) -> UserOut:
    enforce_rate_limit(request, policies["auth.register"], identity=payload.email)
    if payload.role == UserRole.student:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Students are registered by an admin")
    if not secrets.compare_digest(payload.admin_secret_key or "", settings.admin_secret_key):
        logger.warning("Admin registration rejected for %s: invalid secret key", payload.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin secret key")
    return _create_user(db, payload)


@router.post("/student/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register_student(
    payload: StudentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.admin)),
) -> UserOut:
    return _create_user(db, payload, actor=current_user)


def validate_login_user(payload: UserLogin, db: Session) -> User:
    user = _query_user_by_email(db, payload.email)
    if user is None or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    if payload.role and payload.role != user.role:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Role does not match user account")
    return user


@router.post("/login", response_model=Token)
def login(payload: UserLogin, request: Request, db: Session = Depends(get_db)) -> Token:
    enforce_rate_limit(request, policies["auth.login"], identity=payload.email)
    user = validate_login_user(payload, db)
    access_token = create_access_token(user.id, expires_delta=timedelta(minutes=settings.access_token_expire_minutes))
    return Token(access_token=access_token, token_type="bearer", user=user)


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)) -> UserOut:
    return current_user

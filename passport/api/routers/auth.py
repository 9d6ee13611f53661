import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from passport.api.deps import get_audit_service, get_current_actor, get_db
from passport.api.schemas.auth import ActorResponse, Token
from passport.core.config import get_settings
from passport.core.identity import Actor
from passport.core.security import create_access_token, verify_password
from passport.db.models import AuditAction, AuditSeverity, User
from passport.services import AuditService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])
settings = get_settings()


@router.post("/login", response_model=Token)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
    auditor: AuditService = Depends(get_audit_service),
):
    """Login with username and password and get an access token."""
    user = db.query(User).filter(User.username == form_data.username).first()

    if not user or not verify_password(form_data.password, user.password_hash):
        logger.warning(f"Failed login attempt for {form_data.username}")
        auditor.record(
            user.id if user else None,
            user.role if user else "anonymous",
            AuditAction.LOGIN.value,
            "user",
            user.id if user else None,
            details={"username": form_data.username},
            success=False,
            error_message="Invalid credentials",
            severity=AuditSeverity.CRITICAL,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated"
        )

    # Update last login
    user.last_login = datetime.utcnow()
    db.commit()

    auditor.record(user.id, user.role, AuditAction.LOGIN.value, "user", user.id)

    access_token = create_access_token(user.id, user.role, user.username)
    return Token(
        access_token=access_token,
        role=user.role,
        expires_in=settings.access_token_expire_minutes * 60,
    )


@router.get("/me", response_model=ActorResponse)
def get_me(actor: Actor = Depends(get_current_actor)):
    """Get the caller's identity as carried by the token."""
    return ActorResponse(
        user_id=actor.user_id,
        username=actor.username,
        role=actor.role,
        role_level=actor.level,
    )

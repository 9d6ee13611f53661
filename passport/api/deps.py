from typing import Generator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from passport.core.approval import ApprovalService
from passport.core.identity import Actor
from passport.core.security import decode_token
from passport.db.session import SessionLocal
from passport.api.middleware.audit import get_client_ip
from passport.services import AuditService, NotificationService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_db() -> Generator:
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_actor(token: str = Depends(oauth2_scheme)) -> Actor:
    """Resolve the caller's (user id, role) pair from the bearer token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        raise credentials_exception

    actor = decode_token(token)
    if actor is None:
        raise credentials_exception
    return actor


def get_audit_service(request: Request, db: Session = Depends(get_db)) -> AuditService:
    return AuditService(
        db,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


def get_approval_service(
    db: Session = Depends(get_db),
    auditor: AuditService = Depends(get_audit_service),
) -> ApprovalService:
    """Approval service wired to the request's session and sinks."""
    return ApprovalService(db, notifier=NotificationService(db), auditor=auditor)

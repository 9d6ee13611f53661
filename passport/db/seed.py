"""Database seeding for the Aluminium Passport service.

Creates the tables and the bootstrap super admin and admin accounts that
every other identity is onboarded through.
"""

from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from passport.core.config import Settings, get_settings
from passport.core.rbac.roles import Role
from passport.core.security import generate_temporary_password, get_password_hash
from passport.db.base import Base
from passport.db.models import User


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    # Import models so they register on the metadata
    import passport.db.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def seed_user(
    db: Session,
    *,
    username: str,
    wallet_address: str,
    email: Optional[str],
    role: str,
    password: Optional[str] = None,
) -> tuple[User, Optional[str]]:
    """
    Create a user unless one with the same username already exists.

    Args:
        db: Database session
        username: Login name
        wallet_address: 0x-prefixed wallet address
        email: Contact email
        role: Role to assign
        password: Password; a random one is generated when omitted

    Returns:
        Tuple of (user, generated_password). generated_password is None when
        the user already existed or a password was supplied.
    """
    existing = db.query(User).filter(User.username == username).first()
    if existing:
        return existing, None

    generated = None
    if password is None:
        generated = password = generate_temporary_password()

    user = User(
        username=username,
        wallet_address=wallet_address,
        email=email,
        password_hash=get_password_hash(password),
        role=role,
        is_active=True,
    )
    db.add(user)
    db.flush()
    return user, generated


def seed_bootstrap_users(db: Session, settings: Optional[Settings] = None) -> dict[str, tuple[User, Optional[str]]]:
    """Create the bootstrap super admin and admin. Idempotent."""
    settings = settings or get_settings()
    return {
        Role.SUPER_ADMIN.value: seed_user(
            db,
            username=settings.bootstrap_super_admin_username,
            wallet_address=settings.bootstrap_super_admin_wallet,
            email=settings.bootstrap_super_admin_email,
            role=Role.SUPER_ADMIN.value,
            password=settings.bootstrap_super_admin_password,
        ),
        Role.ADMIN.value: seed_user(
            db,
            username=settings.bootstrap_admin_username,
            wallet_address=settings.bootstrap_admin_wallet,
            email=settings.bootstrap_admin_email,
            role=Role.ADMIN.value,
            password=settings.bootstrap_admin_password,
        ),
    }


# CLI script for seeding
if __name__ == "__main__":
    import sys
    from passport.db.session import SessionLocal, engine

    init_db(engine)

    db = SessionLocal()
    try:
        seeded = seed_bootstrap_users(db)
        db.commit()
        for role, (user, generated) in seeded.items():
            print(f"{role}: {user.username} (ID: {user.id})")
            if generated:
                print(f"  generated password: {generated}")
        print("\nSeeding complete!")

    except Exception as e:
        db.rollback()
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        db.close()

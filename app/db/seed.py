import random
import sys
from faker import Faker
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.logger import logger
from app.core.security import hash_password
from app.core.validation import normalize_email
from app.db.session import SessionLocal
from app.modules.auth.model import User, ROLE_ADMIN, ROLE_BUYER, ROLE_SELLER

fake = Faker()


def seed_admin(db: Session) -> User | None:
    """
    Create the bootstrap Admin. Signup only ever creates Sellers and Buyers,
    so without this there is nobody who can call /promote.
    """
    if not settings.ADMIN_PASSWORD:
        logger.error("[Seed] ADMIN_PASSWORD is not set; skipping admin bootstrap.")
        return None

    existing = db.query(User).filter(User.username == settings.ADMIN_USERNAME).first()
    if existing:
        logger.info(f"[Seed] Admin '{existing.username}' already exists (role={existing.role}).")
        return existing

    admin = User(
        username=settings.ADMIN_USERNAME,
        email=normalize_email(settings.ADMIN_EMAIL),
        hashed_password=hash_password(settings.ADMIN_PASSWORD),
        role=ROLE_ADMIN,
        is_active=True,
        is_verified=True,
        token_version=0,
        otp_attempts=0,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info(f"[Seed] Admin '{admin.username}' created with id {admin.id}.")
    return admin


def seed_fake_users(db: Session, count: int = 10, password: str = "password123") -> list[User]:
    hashed = hash_password(password)
    users = []
    for _ in range(count):
        user = User(
            username=fake.unique.user_name()[:100],
            email=normalize_email(fake.unique.email()),
            hashed_password=hashed,
            role=random.choice([ROLE_SELLER, ROLE_BUYER]),
            is_active=True,
            is_verified=True,
            token_version=0,
            otp_attempts=0,
        )
        db.add(user)
        users.append(user)
    db.commit()
    logger.info(f"[Seed] Created {len(users)} fake users (password '{password}').")
    return users


def run_seed(fake_users: int = 0):
    db = SessionLocal()
    try:
        print("🚀 Starting Database Seed...")
        seed_admin(db)
        if fake_users:
            seed_fake_users(db, fake_users)
        print("✨ Seed complete.")
    except Exception as e:
        db.rollback()
        print(f"❌ Seed failed: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    run_seed(int(sys.argv[1]) if len(sys.argv) > 1 else 0)

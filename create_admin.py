"""
Create (or promote) an admin account

Usage: python create_admin.py admin@example.com "Full Name" <password>
"""

import logging
import sys

from scoopdash import models  # noqa: F401
from scoopdash.database import Base, SessionLocal, engine
from scoopdash.models import User
from scoopdash.security_utils import hash_password
from scoopdash.shared.validators import validate_email

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def create_admin(email: str, full_name: str, password: str) -> None:
    email = validate_email(email)
    Base.metadata.create_all(bind=engine, checkfirst=True)

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        if user:
            user.role = "admin"
            user.hashed_password = hash_password(password)
            logger.info(f"🔄 Promoted existing user {email} to admin")
        else:
            db.add(
                User(
                    email=email,
                    full_name=full_name,
                    hashed_password=hash_password(password),
                    role="admin",
                )
            )
            logger.info(f"✅ Created admin {email}")
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to create admin: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) != 4:
        print(__doc__)
        sys.exit(1)
    create_admin(sys.argv[1], sys.argv[2], sys.argv[3])

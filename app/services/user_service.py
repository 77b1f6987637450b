# ============================================================================
# FILE: app/services/user_service.py
# ============================================================================
from typing import Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from app.db.models.user import User
from app.schemas.user import UserCreate
from app.core.security import get_password_hash, verify_password
import logging

logger = logging.getLogger(__name__)

class UserService:
    """Service layer for user accounts"""

    def create_user(self, db: Session, user_data: UserCreate) -> User:
        """Create a new user account"""
        try:
            user = User(
                username=user_data.username,
                email=user_data.email.lower(),
                hashed_password=get_password_hash(user_data.password)
            )
            db.add(user)
            db.commit()
            db.refresh(user)
            logger.info(f"User created: {user.username}")
            return user
        except Exception as e:
            db.rollback()
            logger.error(f"Error creating user: {e}")
            raise

    def get_user(self, db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    def get_user_by_username(self, db: Session, username: str) -> Optional[User]:
        return db.query(User).filter(User.username == username).first()

    def get_user_by_email(self, db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email.lower()).first()

    def authenticate_user(self, db: Session, login: str, password: str) -> Optional[User]:
        """Authenticate with username or email and password"""
        user = db.query(User).filter(
            or_(User.username == login, User.email == login.lower())
        ).first()
        if not user or not verify_password(password, user.hashed_password):
            logger.info(f"Failed login attempt for: {login}")
            return None
        return user

# Create singleton instance
user_service = UserService()

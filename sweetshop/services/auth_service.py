from typing import Optional, Tuple
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sweetshop.errors import Conflict, Unauthorized
from sweetshop.models.user import User
from sweetshop.schemas.auth import LoginRequest, RegisterRequest
from sweetshop.security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)


class AuthService:
    """
    Account registration and login.

    Registration always creates regular accounts; administrators only come
    from ``ensure_admin`` (driven by configuration at startup).
    """

    def __init__(self, db: Session):
        self.db = db

    def register(self, data: RegisterRequest) -> Tuple[User, str]:
        """
        Create a regular account and issue its first token.

        Raises:
            Conflict: the email is already registered
        """
        email = data.email.lower()
        if self.get_by_email(email):
            raise Conflict("Email already exists")

        user = self.create_user(email, data.password, data.name, is_admin=False)
        logger.info(f"User {user.id} registered")
        return user, self.issue_token(user)

    def login(self, data: LoginRequest) -> Tuple[User, str]:
        """
        Verify credentials and issue a token.

        Raises:
            Unauthorized: unknown email or wrong password (indistinguishable)
        """
        user = self.get_by_email(data.email.lower())
        if not user or not verify_password(data.password, user.password_hash):
            raise Unauthorized("Invalid credentials")
        return user, self.issue_token(user)

    def create_user(self, email: str, password: str, name: str, is_admin: bool = False) -> User:
        user = User(
            email=email.lower(),
            password_hash=hash_password(password),
            name=name,
            is_admin=is_admin,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict("Email already exists")
        self.db.refresh(user)
        return user

    def ensure_admin(self, email: str, password: str, name: str) -> Optional[User]:
        """Create the configured administrator unless the email is already taken."""
        if self.get_by_email(email.lower()):
            return None
        user = self.create_user(email, password, name, is_admin=True)
        logger.info(f"Bootstrap administrator {user.id} created")
        return user

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    @staticmethod
    def issue_token(user: User) -> str:
        return create_access_token(str(user.id), user.email, user.name, user.is_admin)

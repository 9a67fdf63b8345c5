import uuid

from sqlalchemy import Boolean, Column, DateTime, String, Uuid
from sqlalchemy.sql import func

from sweetshop.database import Base


class User(Base):
    """
    Account that can browse and purchase sweets.

    Attributes:
        id: Unique identifier for the user
        email: Login email, unique across all users
        password_hash: Salted adaptive hash of the password (never the plaintext)
        name: Display name
        is_admin: Administrative flag, fixed at creation
        created_at: Timestamp when the account was created
        updated_at: Timestamp when the account was last updated
    """
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', is_admin={self.is_admin})>"

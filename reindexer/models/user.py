"""Caller identities allowed to reach the maintenance API."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.dialects.postgresql import UUID

from ..database import Base


class User(Base):
    """
    A caller resolved from a bearer token.

    Attributes:
        id: Token subject (UUID)
        email: Unique login, used by the command-line runner
        display_name: Shown in logs
        is_admin: Repository administrator; only they may reindex
    """

    __tablename__ = "Users"
    __allow_unmapped__ = True

    id = Column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    email = Column(String(255), unique=True, nullable=False, index=True)
    display_name = Column(String(100), nullable=True)
    is_admin = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    @property
    def is_administrator(self) -> bool:
        return bool(self.is_admin)

    def __repr__(self) -> str:
        return f"<User(email={self.email}, admin={self.is_admin})>"

"""
User model.

WHY: Users are supplied by the external identity provider. The helpdesk
keeps a local row per user so tickets, comments and attachments can
reference their owner and so notifications know where to send email.
"""

import enum
from datetime import datetime
from typing import List, TYPE_CHECKING

from sqlalchemy import Integer, String, DateTime, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from helpdesk.models.base import Base, utcnow

if TYPE_CHECKING:
    from helpdesk.models.ticket import Ticket


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    WHY: A closed enum means every authorization decision compares against
    a known member instead of a free-form string.
    """

    USER = "user"  # Requester: files tickets and sees only their own
    ADMIN = "admin"  # Staff: triages every ticket


class User(Base):
    """
    A person who files or triages tickets.

    Fields:
    - username: Display name used in emails
    - email: Notification address (unique)
    - role: USER or ADMIN
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, name="userrole"),
        default=UserRole.USER,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    tickets: Mapped[List["Ticket"]] = relationship("Ticket", back_populates="requester")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"

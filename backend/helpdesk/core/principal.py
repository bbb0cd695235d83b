"""
Authenticated principal.

WHAT: The caller identity every service method receives.

WHY: Services must not depend on the ORM User row or on HTTP details.
A Principal carries exactly what authorization needs: id and role, plus
the contact fields used in notifications.
"""

from dataclasses import dataclass

from helpdesk.models.user import User, UserRole


@dataclass(frozen=True)
class Principal:
    """
    An authenticated caller.

    Attributes:
        id: User id
        role: UserRole.USER or UserRole.ADMIN
        email: Contact address
        username: Display name
    """

    id: int
    role: UserRole
    email: str
    username: str

    @property
    def is_admin(self) -> bool:
        """True for staff. Every role check goes through here."""
        if self.role is UserRole.ADMIN:
            return True
        if self.role is UserRole.USER:
            return False
        raise ValueError(f"Unknown role: {self.role!r}")

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        """Build a principal from a loaded User row."""
        return cls(
            id=user.id,
            role=UserRole(user.role),
            email=user.email,
            username=user.username,
        )

"""
Auth context - who is making this request.

Built fresh for every request from the resolved session, so role and
verification changes show up on the next request.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from lexaccess.auth.sessions import SessionDescriptor
from lexaccess.core.roles import UserRole


@dataclass
class AuthContext:
    """
    Authorization context for a request.

    Usage in routes:
        async def my_route(ctx: AuthContext = Depends(require_session)):
            profile = await load(ctx.user_id)
    """

    # Who
    user_id: str | None = None
    user_email: str | None = None
    role: UserRole | None = None
    vkyc_completed: bool = False

    session: SessionDescriptor | None = field(default=None, repr=False)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_verified(self) -> bool:
        return self.is_authenticated and self.vkyc_completed

    @classmethod
    def anonymous(cls) -> AuthContext:
        return cls()

    @classmethod
    def from_session(cls, session: SessionDescriptor | None) -> AuthContext:
        if session is None:
            return cls.anonymous()
        return cls(
            user_id=session.id,
            user_email=session.email,
            role=session.role,
            vkyc_completed=session.vkyc_completed,
            session=session,
        )

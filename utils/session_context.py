"""
Explicit caller context passed to every service call.
Built from the identity the auth gateway verified; nothing here is global.
"""

from dataclasses import dataclass
from typing import Optional

from utils.exception_handler import AuthenticationError


@dataclass(frozen=True)
class SessionContext:
    """Authenticated caller identity"""
    user_id: Optional[str]
    email: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    def require_user(self) -> str:
        """Return the caller's user id or raise AuthenticationError"""
        if not self.user_id:
            raise AuthenticationError("User not authenticated")
        return self.user_id


ANONYMOUS = SessionContext(user_id=None)

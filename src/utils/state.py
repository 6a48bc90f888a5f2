from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional

import db.auth as auth
from db.errors import AccessDenied, NotAuthenticated


@dataclass
class AuthSession:
    """
    Authenticated identity shared by screens and passed into every db call
    that checks ownership or roles.

    Fields:
      - user_id: users.id of the signed-in user, None when signed out
      - email: login email
      - roles: role names held at sign-in ("admin", "user")
    """

    user_id: Optional[str] = None
    email: Optional[str] = None
    roles: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_admin(self) -> bool:
        return self.is_authenticated and "admin" in self.roles

    async def sign_in(self, email: str, pwd: str) -> bool:
        """Start a session for the given credentials.
        Returns True on success; the session is left signed out otherwise.
        """
        user = await auth.authenticate(email, pwd)
        if user is None:
            self.sign_out()
            return False
        self.user_id = user.id
        self.email = user.email
        self.roles = await auth.get_roles(user.id)
        return True

    def sign_out(self) -> None:
        self.user_id = None
        self.email = None
        self.roles = frozenset()

    def require_user(self) -> str:
        if self.user_id is None:
            raise NotAuthenticated("Please sign in first.")
        return self.user_id

    def require_admin(self) -> str:
        uid = self.require_user()
        if "admin" not in self.roles:
            raise AccessDenied("Administrator access required.")
        return uid

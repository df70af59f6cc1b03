"""
Authentication service: login, logout and the current user.
"""

import logging
from typing import Any, Dict, Optional

from dam_client.errors import ApiError, AuthError, ValidationError
from dam_client.permissions import PermissionSet, permissions_for
from dam_client.schemas import RegisterRequest, TokenPair, User
from dam_client.services.base import BaseService, require_text

logger = logging.getLogger(__name__)

USER_CACHE_KEY = ("user",)


class AuthService(BaseService):
    """Service for the session of the current user"""

    def __init__(self, api, cache):
        super().__init__(api, cache)
        self._current_user: Optional[User] = None
        self._permissions: PermissionSet = permissions_for(None)

    @property
    def current_user(self) -> Optional[User]:
        return self._current_user

    @current_user.setter
    def current_user(self, user: Optional[User]) -> None:
        self._current_user = user
        self._permissions = permissions_for(user)

    @property
    def permissions(self) -> PermissionSet:
        return self._permissions

    @property
    def is_authenticated(self) -> bool:
        return self._current_user is not None

    def login(self, username: str, password: str) -> User:
        """Exchange credentials for tokens and load the current user."""
        username = require_text(username, "username")
        if not password:
            raise ValidationError("password is required")

        data = self.api.post(
            "/auth/jwt/create/",
            json={"username": username, "password": password},
            auth=False,
        )
        tokens = TokenPair.model_validate(data)
        self.api.token_store.set_tokens(tokens.access, tokens.refresh)
        self.cache.clear()
        logger.info(f"Logged in as {username}")
        return self.get_current_user()

    def register(self, request: RegisterRequest) -> User:
        """Create a new account."""
        require_text(request.username, "username")
        require_text(request.password, "password")
        data = self.api.post(
            "/auth/users/",
            json=request.model_dump(mode="json", exclude_none=True),
            auth=False,
        )
        return User.model_validate(data)

    def get_current_user(self) -> User:
        """Get the user the stored tokens belong to."""
        user = self.cache.get_or_fetch(
            USER_CACHE_KEY,
            lambda: User.model_validate(self.api.get("/auth/users/me/")),
        )
        self.current_user = user
        return user

    def verify_token(self, token: str) -> Dict[str, Any]:
        """Ask the API whether ``token`` is still valid."""
        token = require_text(token, "token")
        return self.api.post("/auth/jwt/verify/", json={"token": token}, auth=False) or {}

    def restore_session(self) -> Optional[User]:
        """Load the user for previously stored tokens.

        Returns None and forgets the stored credentials when they are no
        longer accepted.
        """
        if not self.api.token_store.get_access():
            return None
        try:
            return self.get_current_user()
        except AuthError:
            logger.info("Stored session expired")
            self.logout()
            return None
        except ApiError as e:
            if e.status_code in (401, 403):
                logger.info(f"Stored session rejected: {e}")
                self.logout()
                return None
            raise

    def logout(self) -> None:
        """Forget tokens, cached data and the current user."""
        self.api.token_store.clear()
        self.cache.clear()
        self.current_user = None
        logger.info("Logged out")

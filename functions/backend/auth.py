"""
Identity abstraction over Firebase Auth and an in-memory test implementation.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol


class InvalidTokenError(Exception):
    """Raised when an ID token cannot be verified."""


class AuthClient(Protocol):
    """Operations the API needs from the identity provider."""

    def verify_id_token(self, id_token: str) -> dict:
        ...

    def set_custom_user_claims(self, uid: str, claims: dict) -> None:
        ...

    def create_user(self, email: str, display_name: str) -> str:
        ...

    def delete_user(self, uid: str) -> None:
        ...

    def get_uid_by_email(self, email: str) -> Optional[str]:
        ...

    def generate_password_reset_link(self, email: str) -> str:
        ...


@dataclass
class InMemoryUser:
    uid: str
    email: str
    display_name: str = ""
    custom_claims: dict = field(default_factory=dict)


class InMemoryAuthClient:
    """Test double for Firebase Auth."""

    def __init__(self):
        self.users: dict[str, InMemoryUser] = {}
        self.tokens: dict[str, str] = {}

    def add_user(self, uid: str, email: str, display_name: str = "") -> InMemoryUser:
        user = InMemoryUser(uid=uid, email=email, display_name=display_name)
        self.users[uid] = user
        return user

    def issue_token(self, uid: str) -> str:
        """Returns an opaque ID token that `verify_id_token` accepts."""
        token = f"test-token-{uuid.uuid4().hex}"
        self.tokens[token] = uid
        return token

    def verify_id_token(self, id_token: str) -> dict:
        uid = self.tokens.get(id_token)
        if uid is None or uid not in self.users:
            raise InvalidTokenError("Unknown ID token")
        user = self.users[uid]
        return {"uid": uid, "email": user.email, **user.custom_claims}

    def set_custom_user_claims(self, uid: str, claims: dict) -> None:
        if uid not in self.users:
            raise KeyError(uid)
        self.users[uid].custom_claims = dict(claims)

    def create_user(self, email: str, display_name: str) -> str:
        if self.get_uid_by_email(email):
            raise ValueError(f"User with email {email} already exists")
        uid = uuid.uuid4().hex
        self.add_user(uid, email, display_name)
        return uid

    def delete_user(self, uid: str) -> None:
        self.users.pop(uid, None)

    def get_uid_by_email(self, email: str) -> Optional[str]:
        for user in self.users.values():
            if user.email.lower() == email.lower():
                return user.uid
        return None

    def generate_password_reset_link(self, email: str) -> str:
        return f"https://example.test/reset-password?email={email}"

    def reset(self) -> None:
        self.users.clear()
        self.tokens.clear()


class FirebaseAuthClient:
    """Firebase Auth implementation using the Admin SDK."""

    def __init__(self, app=None):
        from firebase_admin import auth

        self._auth = auth
        self._app = app

    def verify_id_token(self, id_token: str) -> dict:
        try:
            return self._auth.verify_id_token(id_token, app=self._app)
        except (ValueError, self._auth.InvalidIdTokenError) as e:
            raise InvalidTokenError(str(e)) from e

    def set_custom_user_claims(self, uid: str, claims: dict) -> None:
        self._auth.set_custom_user_claims(uid, claims, app=self._app)

    def create_user(self, email: str, display_name: str) -> str:
        user_record = self._auth.create_user(
            email=email,
            email_verified=False,
            display_name=display_name,
            app=self._app,
        )
        return user_record.uid

    def delete_user(self, uid: str) -> None:
        self._auth.delete_user(uid, app=self._app)

    def get_uid_by_email(self, email: str) -> Optional[str]:
        try:
            return self._auth.get_user_by_email(email, app=self._app).uid
        except self._auth.UserNotFoundError:
            return None

    def generate_password_reset_link(self, email: str) -> str:
        return self._auth.generate_password_reset_link(email, app=self._app)

"""Credentials that derive an Authorization header value."""

import base64

from src.features.core.constants import DEFAULT_ACCESS_TOKEN_TYPE, AuthType
from src.features.events.emitter import EventEmitter


class Credential(EventEmitter):
    """Username/password or access-token credential.

    The password and access token are write-only from outside. Setting an
    access token clears the username and password. Every change emits
    ``update.<field>`` followed by ``update.header`` with the new header
    value, so an owning request can re-apply its Authorization header.
    """

    def __init__(
        self,
        username: str | None = None,
        password: str | None = None,
        access_token: str | None = None,
        access_token_type: str = DEFAULT_ACCESS_TOKEN_TYPE,
    ) -> None:
        """Initialize the credential.

        Args:
            username: Basic-auth username.
            password: Basic-auth password.
            access_token: Token; takes precedence and clears username/password.
            access_token_type: Token scheme, such as Bearer.
        """
        super().__init__()
        self._username = username or None
        self._password = password or None
        self._access_token: str | None = None
        self._access_token_type = (access_token_type or DEFAULT_ACCESS_TOKEN_TYPE).strip()
        if access_token:
            self._access_token = access_token
            self._username = None
            self._password = None

    def _changed(self, field: str, old: object, new: object) -> None:
        self.emit(f"update.{field}", {"old": old, "new": new})
        self.emit("update.header", {"new": self.header})

    @property
    def username(self) -> str | None:
        """Basic-auth username."""
        return self._username

    @username.setter
    def username(self, value: str | None) -> None:
        value = (value or "").strip() or None
        if value == self._username:
            return
        old = self._username
        self._username = value
        self._changed("username", old, value)

    @property
    def password(self) -> None:
        """Write-only. Always reads as None."""
        return None

    @password.setter
    def password(self, value: str | None) -> None:
        value = value or None
        if value == self._password:
            return
        self._password = value
        self._changed("password", None, None)

    @property
    def access_token(self) -> None:
        """Write-only. Always reads as None."""
        return None

    @access_token.setter
    def access_token(self, value: str | None) -> None:
        value = (value or "").strip() or None
        if value == self._access_token:
            return
        self._access_token = value
        if value is not None:
            if self._username is not None:
                old_username = self._username
                self._username = None
                self.emit("update.username", {"old": old_username, "new": None})
            self._password = None
        self._changed("access_token", None, None)

    @property
    def access_token_type(self) -> str:
        """Scheme prefixed to the access token."""
        return self._access_token_type

    @access_token_type.setter
    def access_token_type(self, value: str | None) -> None:
        value = (value or "").strip() or DEFAULT_ACCESS_TOKEN_TYPE
        if value == self._access_token_type:
            return
        old = self._access_token_type
        self._access_token_type = value
        self._changed("access_token_type", old, value)

    @property
    def has_password(self) -> bool:
        """Whether a password is configured."""
        return self._password is not None

    @property
    def has_access_token(self) -> bool:
        """Whether an access token is configured."""
        return self._access_token is not None

    @property
    def auth_type(self) -> AuthType:
        """Kind of credential currently configured."""
        if self._access_token is not None:
            return AuthType.TOKEN
        if self._username is not None and self._password is not None:
            return AuthType.BASIC
        return AuthType.NONE

    @property
    def header(self) -> str | None:
        """Authorization header value, or None when nothing is configured."""
        if self._access_token is not None:
            return f"{self._access_token_type} {self._access_token}"
        if self._username is not None and self._password is not None:
            token = base64.b64encode(
                f"{self._username}:{self._password}".encode("utf-8")
            ).decode("ascii")
            return f"Basic {token}"
        return None

    def clear(self) -> None:
        """Remove every credential."""
        if self._state()[:3] == (None, None, None):
            return
        self._username = None
        self._password = None
        self._access_token = None
        self._changed("credential", None, None)

    def clone(self) -> "Credential":
        """Independent copy with the same effective credentials."""
        copy = Credential(access_token_type=self._access_token_type)
        copy._username = self._username
        copy._password = self._password
        copy._access_token = self._access_token
        return copy

    def merge(self, other: "Credential", override: bool = True) -> None:
        """Merge another credential into this one as a single unit.

        Username, password and token always travel together, so a merge
        never mixes one credential's username with another's password.

        Args:
            other: Credential to merge.
            override: When True, a configured ``other`` replaces this
                credential. When False, ``other`` is only used if this
                credential has nothing configured.
        """
        if other._state()[:3] == (None, None, None):
            return
        if not override and self._state()[:3] != (None, None, None):
            return
        before = self._state()
        self._username = other._username
        self._password = other._password
        self._access_token = other._access_token
        self._access_token_type = other._access_token_type
        if self._state() != before:
            self._changed("credential", None, None)

    def _state(self) -> tuple[str | None, ...]:
        return (
            self._username,
            self._password,
            self._access_token,
            self._access_token_type,
        )

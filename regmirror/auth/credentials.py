"""Registry credentials with optional in-place refresh.

A ``Credentials`` object is shared by reference between everything that
talks to one registry, so a refresh done on behalf of one caller is seen
by all of them.
"""

import base64
import binascii
import json
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

from ..common.logger import get_logger

logger = get_logger("credentials")


class Refresher(ABC):
    """Source of rotating username/password pairs."""

    @abstractmethod
    def expired(self) -> bool:
        """Return True if the pair handed out last must be replaced."""
        pass

    @abstractmethod
    def refresh(self) -> Tuple[str, str]:
        """Fetch a fresh (username, password) pair."""
        pass


class CallbackRefresher(Refresher):
    """Refresher calling a function and trusting its result for a fixed time."""

    def __init__(
        self,
        fetch: Callable[[], Tuple[str, str]],
        lifetime: timedelta = timedelta(hours=1),
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._fetch = fetch
        self._lifetime = lifetime
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._expiry: Optional[datetime] = None

    def expired(self) -> bool:
        return self._expiry is None or self._clock() >= self._expiry

    def refresh(self) -> Tuple[str, str]:
        username, password = self._fetch()
        self._expiry = self._clock() + self._lifetime
        return username, password


class Credentials:
    """Username and password (or token) for one registry."""

    def __init__(
        self,
        username: str = "",
        password: str = "",
        refresher: Optional[Refresher] = None,
    ):
        self._username = username or ""
        self._password = password or ""
        self._refresher = refresher
        self._lock = threading.Lock()

    @classmethod
    def from_basic(cls, username: str, password: str) -> "Credentials":
        """Create an independent credentials object from a plain pair."""
        return cls(username=username, password=password)

    @classmethod
    def from_token(cls, token: str) -> "Credentials":
        """Create credentials carrying a bearer token in the password field."""
        return cls(password=token)

    @classmethod
    def from_auth(cls, auth: str) -> "Credentials":
        """Create credentials from a base64 encoded auth string.

        Accepts both ``{"username": ..., "password": ...}`` JSON and the
        ``user:pass`` form found in Docker config files.

        Raises:
            ValueError: If the string cannot be decoded
        """
        if not isinstance(auth, str):
            raise ValueError(f"auth must be a string, got {type(auth).__name__}")
        try:
            decoded = base64.b64decode(auth, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise ValueError(f"auth string is not valid base64: {e}") from e

        if decoded.lstrip().startswith("{"):
            try:
                data = json.loads(decoded)
            except json.JSONDecodeError as e:
                raise ValueError(f"auth string holds invalid JSON: {e}") from e
            if not isinstance(data, dict):
                raise ValueError("auth JSON must be an object")
            return cls(
                username=str(data.get("username", "")),
                password=str(data.get("password", "")),
            )

        username, sep, password = decoded.partition(":")
        if not sep:
            raise ValueError("auth string must decode to JSON or user:pass")
        return cls(username=username, password=password)

    @property
    def username(self) -> str:
        return self._username

    @property
    def password(self) -> str:
        return self._password

    def set(self, username: str, password: str) -> None:
        """Replace the pair in place."""
        with self._lock:
            self._username = username
            self._password = password

    def refresh(self) -> None:
        """Rotate the pair if the attached refresher says it has expired.

        Concurrent callers are serialized; exceptions from the refresher
        propagate unchanged.
        """
        if self._refresher is None:
            return
        with self._lock:
            if not self._refresher.expired():
                return
            logger.debug("refreshing expired credentials")
            self._username, self._password = self._refresher.refresh()

    def __repr__(self) -> str:
        return f"Credentials(username={self._username!r})"

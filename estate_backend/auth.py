"""
Token issuance and OTP handling for the single-operator login flow.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from typing import Callable, Optional

from jose import JWTError, jwt

ALGORITHM = "HS256"
OTP_MIN = 100000
OTP_MAX = 999999


class InvalidTokenError(Exception):
    """Raised for any token that cannot be trusted."""


class TokenService:
    """Signs and verifies time-limited bearer tokens."""

    def __init__(
        self,
        secret: str,
        expire_hours: int = 2,
        clock: Callable[[], float] = time.time,
    ):
        self.secret = secret
        self.ttl_seconds = expire_hours * 3600
        self.clock = clock

    def issue(self, email: str) -> str:
        now = int(self.clock())
        claims = {"email": email, "iat": now, "exp": now + self.ttl_seconds}
        return jwt.encode(claims, self.secret, algorithm=ALGORITHM)

    def verify(self, token: Optional[str]) -> dict:
        if not token or not isinstance(token, str):
            raise InvalidTokenError("missing token")
        try:
            # Expiry is checked against our own clock below.
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[ALGORITHM],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError as exc:
            raise InvalidTokenError("bad signature or format") from exc
        exp = payload.get("exp")
        if not isinstance(exp, (int, float)) or self.clock() >= exp:
            raise InvalidTokenError("expired")
        return payload


@dataclass
class OtpEntry:
    code: str
    issued_at: float


class OtpStore:
    """
    Process-local table of the latest one-time code per identity.

    A new code always replaces the previous one. Codes never expire unless
    a ttl is given.
    """

    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: dict[str, OtpEntry] = {}

    def issue(self, identity: str) -> str:
        code = str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))
        self._entries[identity] = OtpEntry(code=code, issued_at=self.clock())
        return code

    def verify(self, identity: str, submitted) -> bool:
        entry = self._entries.get(identity)
        if entry is None or submitted is None:
            return False
        if (
            self.ttl_seconds is not None
            and self.clock() - entry.issued_at >= self.ttl_seconds
        ):
            return False
        return secrets.compare_digest(
            entry.code.encode("utf-8"), str(submitted).encode("utf-8")
        )


def parse_authorization(header: Optional[str]) -> str:
    """
    Extract the token from an ``Authorization: <scheme> <token>`` header.

    The scheme is not checked. Any other shape is rejected.
    """
    if not header:
        raise InvalidTokenError("missing authorization header")
    parts = header.split()
    if len(parts) != 2:
        raise InvalidTokenError("malformed authorization header")
    return parts[1]


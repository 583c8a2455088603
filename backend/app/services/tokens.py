"""
Session Tokens

Signed, expiring session tokens (JWT, HS256). Callers treat them as opaque.
Every token carries a random jti so two logins never share a token.
"""
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from jose import JWTError, jwt

from app.models.records import utc_now

ALGORITHM = "HS256"


class TokenIssuer:
    def __init__(
        self,
        secret_key: str,
        expire_hours: int = 24,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.secret_key = secret_key
        self.expire_hours = expire_hours
        self.clock = clock

    def create_access_token(self, user_id: str, email: str, role: str) -> str:
        """Create a JWT access token with role claim."""
        now = self.clock()
        to_encode = {
            "sub": user_id,
            "email": email,
            "role": role,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(hours=self.expire_hours)).timestamp()),
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(to_encode, self.secret_key, algorithm=ALGORITHM)

    def decode_token(self, token: str) -> Optional[dict]:
        """
        Decode and validate a token against the issuer's clock.
        Returns None for a bad signature, missing claims or an expired token.
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError:
            return None

        exp = payload.get("exp")
        if exp is None or exp <= self.clock().timestamp():
            return None
        if not payload.get("sub") or not payload.get("email") or not payload.get("jti"):
            return None
        return payload

    def expires_at(self, payload: dict) -> datetime:
        return datetime.fromtimestamp(payload["exp"], tz=timezone.utc)

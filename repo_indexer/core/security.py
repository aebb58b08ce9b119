# repo_indexer/core/security.py
import secrets
import time
from collections import OrderedDict
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from repo_indexer.core.config import Settings


def hash_password(password: str) -> str:
    """Hash password using bcrypt"""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the store
        return False


def create_access_token(user_id: int, settings: Settings) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "userId": user_id,
        "iat": now,
        "exp": now + timedelta(days=settings.JWT_EXPIRES_DAYS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> int:
    """Return the user id claim. Raises jwt.InvalidTokenError on any problem."""
    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    user_id = payload.get("userId")
    if user_id is None:
        raise jwt.InvalidTokenError("Token has no userId claim")
    return int(user_id)


class OAuthStateStore:
    """Pending OAuth ``state`` values for one process.

    A state is valid once and only until it expires. When more than
    ``max_pending`` flows are open the oldest ones are dropped.
    """

    def __init__(self, ttl_seconds: float = 600, max_pending: int = 10000, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_pending = max(1, max_pending)
        self._clock = clock
        self._pending: OrderedDict[str, float] = OrderedDict()

    def __len__(self):
        return len(self._pending)

    def _prune(self, now: float):
        while self._pending:
            state, expires_at = next(iter(self._pending.items()))
            if expires_at > now:
                break
            del self._pending[state]

    def issue(self) -> str:
        now = self._clock()
        self._prune(now)
        state = secrets.token_urlsafe(16)
        self._pending[state] = now + self.ttl_seconds
        while len(self._pending) > self.max_pending:
            self._pending.popitem(last=False)
        return state

    def consume(self, state: str | None) -> bool:
        """True when ``state`` was issued, has not expired and was not used before."""
        if not state:
            return False
        expires_at = self._pending.pop(state, None)
        return expires_at is not None and expires_at > self._clock()

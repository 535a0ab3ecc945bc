from __future__ import annotations

import enum
import hashlib
from typing import Optional

import bcrypt


class AccessDecision(str, enum.Enum):
    GRANTED = "GRANTED"
    DENIED = "DENIED"
    NO_GATE_REQUIRED = "NO_GATE_REQUIRED"

    @property
    def allowed(self) -> bool:
        return self is not AccessDecision.DENIED


def _prehash(password: str) -> bytes:
    # 64-character hex string -> encode to bytes for bcrypt
    return hashlib.sha256(password.encode("utf-8")).hexdigest().encode("utf-8")


def hash_password(raw_password: str) -> str:
    hashed = bcrypt.hashpw(_prehash(raw_password), bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """
    Check ``plain`` against a bcrypt digest.

    ``bcrypt.checkpw`` compares the recomputed digest in constant time. A
    digest that bcrypt cannot parse never matches.
    """
    try:
        return bcrypt.checkpw(
            _prehash(plain),
            hashed.encode("utf-8")
        )
    except ValueError:
        return False


def verify_access(provided: Optional[str], stored_hash: Optional[str]) -> AccessDecision:
    """
    Decide whether a caller may read a gated record.

    No stored digest means no gate. A configured gate denies a missing or
    empty secret and otherwise grants only a matching one.
    """

    if not stored_hash:
        return AccessDecision.NO_GATE_REQUIRED
    if not provided:
        return AccessDecision.DENIED
    if verify_password(provided, stored_hash):
        return AccessDecision.GRANTED
    return AccessDecision.DENIED

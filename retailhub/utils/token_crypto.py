"""
Token generation, parsing, and hashing utilities.

Responsibilities:
- Generate session tokens of the form: rh_sess_<token_id>_<secret>
- Hash secrets and passwords with Argon2id and verify them
- Produce opaque hex tokens for activation links, invitations and tracking ids
"""
from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass
from typing import Optional, Tuple

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from argon2.low_level import Type

_argon2 = PasswordHasher(time_cost=2, memory_cost=102400, parallelism=8, hash_len=32, type=Type.ID)


TOKEN_PREFIX = "rh_sess_"


@dataclass(frozen=True)
class ParsedToken:
    token_id: str
    secret: str


def generate_token_id() -> str:
    """Return a short, url-safe token id (hex) suitable for DB lookup and logs."""
    # Hex only so the '_' separator stays unambiguous
    return uuid.uuid4().hex[:16]


def generate_secret(length: int = 32) -> str:
    """Return a high-entropy url-safe secret string (approx length)."""
    return secrets.token_urlsafe(length)


def generate_hex_token(num_bytes: int = 32) -> str:
    """Opaque hex token for links (activation, invitations, tracking pixels)."""
    return secrets.token_hex(num_bytes)


def build_token_string(token_id: str, secret: str) -> str:
    return f"{TOKEN_PREFIX}{token_id}_{secret}"


def parse_token(token: str) -> Optional[ParsedToken]:
    """Parse a token string into token_id and secret.

    Returns None if format is invalid.
    """
    if not token or not token.startswith(TOKEN_PREFIX):
        return None
    body = token[len(TOKEN_PREFIX) :]
    # token_id contains no underscores (hex), secret may contain '_' so split once
    idx = body.find("_")
    if idx <= 0:
        return None
    token_id = body[:idx]
    secret = body[idx + 1 :]
    if not token_id or not secret:
        return None
    return ParsedToken(token_id=token_id, secret=secret)


def hash_secret(secret: str) -> str:
    """Hash a secret or password using Argon2id."""
    return _argon2.hash(secret)


def verify_secret(secret: str, encoded_hash: str) -> bool:
    if not secret or not encoded_hash:
        return False
    try:
        return _argon2.verify(encoded_hash, secret)
    except (VerificationError, InvalidHashError):
        return False


def generate_token() -> Tuple[str, str, str]:
    """Generate a new session token and return (token_id, secret, full_token)."""
    tid = generate_token_id()
    sec = generate_secret()
    token = build_token_string(tid, sec)
    return tid, sec, token

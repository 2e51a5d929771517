import time
from typing import NamedTuple, Optional

import jwt
from passlib.context import CryptContext

from .errors import Forbidden, Unauthorized

# Use pbkdf2_sha256 as default to avoid bcrypt 72-byte limitation in some envs.
# bcrypt stays listed so hashes written by the legacy server still verify.
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

ALGORITHM = "HS256"
EXP_SECONDS = 60 * 60 * 24 * 7  # 7 days


class Claims(NamedTuple):
    sub: str
    role: str


def create_access_token(user_id: str, role: str, secret: str, expires_in: Optional[int] = None) -> str:
    now = int(time.time())
    exp = now + (EXP_SECONDS if expires_in is None else expires_in)
    payload = {"sub": str(user_id), "role": role, "iat": now, "exp": exp}
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_access_token(token: str, secret: str) -> dict:
    return jwt.decode(token, secret, algorithms=[ALGORITHM], options={"require": ["exp", "sub"]})


def verify_token(authorization: Optional[str], secret: str) -> Claims:
    """Resolve an ``Authorization: Bearer <token>`` header into claims.

    Raises Unauthorized when the header is missing, malformed, or the token
    fails signature/expiry checks.
    """
    if not authorization:
        raise Unauthorized("missing token")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise Unauthorized("malformed authorization header")
    try:
        payload = decode_access_token(parts[1], secret)
    except jwt.PyJWTError:
        raise Unauthorized("invalid token")
    role = payload.get("role")
    if not isinstance(role, str):
        raise Unauthorized("invalid token")
    return Claims(sub=str(payload["sub"]), role=role)


def require_role(claims: Claims, role: str) -> Claims:
    if claims.role != role:
        raise Forbidden("forbidden")
    return claims


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def dummy_verify() -> None:
    # burn the same hashing time when there is no user to check against
    pwd_context.dummy_verify()

from __future__ import annotations

import re

from werkzeug.security import check_password_hash, generate_password_hash

from utils import ApiError


_HAS_LETTER = re.compile(r"[A-Za-z]")
_HAS_DIGIT = re.compile(r"\d")

MAX_PASSWORD_LENGTH = 256


def validate_password_policy(password: str, *, min_length: int = 8) -> str:
    pwd = str(password or "")
    if not pwd:
        raise ApiError("BAD_REQUEST", "Missing password")
    if len(pwd) < min_length:
        raise ApiError("BAD_REQUEST", f"Password must be at least {min_length} characters")
    if len(pwd) > MAX_PASSWORD_LENGTH:
        raise ApiError("BAD_REQUEST", "Password is too long")
    if not _HAS_LETTER.search(pwd) or not _HAS_DIGIT.search(pwd):
        raise ApiError("BAD_REQUEST", "Password must include at least one letter and one number")
    return pwd


def hash_password(password: str, *, min_length: int = 8) -> str:
    pwd = validate_password_policy(password, min_length=min_length)
    return generate_password_hash(pwd, method="scrypt", salt_length=16)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return check_password_hash(str(password_hash), str(password))
    except ValueError:
        return False

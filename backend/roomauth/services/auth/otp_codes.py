"""
OTP code primitives: generation, salting, hashing and comparison.

Codes are never stored; only base64(sha256(code + salt)) is persisted.
"""
import base64
import hashlib
import hmac
import secrets
import uuid

SALT_BYTES = 16


def generate_code(length: int = 6) -> str:
    """Generate a random numeric code of the given length"""
    return str(secrets.randbelow(10 ** length)).zfill(length)


def generate_salt() -> str:
    return base64.b64encode(secrets.token_bytes(SALT_BYTES)).decode("ascii")


def generate_request_id() -> str:
    return uuid.uuid4().hex


def hash_code(code: str, salt: str) -> str:
    digest = hashlib.sha256((code + salt).encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def codes_match(code: str, salt: str, expected_hash: str) -> bool:
    """Constant-time comparison of a submitted code against the stored hash"""
    return hmac.compare_digest(hash_code(code, salt), expected_hash)

"""
Academy Admin - Token and Password Utility Tests

Run with: pytest tests/test_tokens_and_passwords.py -v
"""

import hashlib
from datetime import timedelta
from uuid import uuid4

import bcrypt
import pytest

from academy.auth.password import (
    BCRYPT_MAX_BYTES,
    hash_password,
    needs_rehash,
    password_too_long,
    verify_password,
)
from academy.auth.tokens import (
    InvalidTokenError,
    create_access_token,
    get_token_expiry_seconds,
    hash_token,
    issue_token,
    verify_access_token,
)


# =============================================================================
# SINGLE-USE TOKENS
# =============================================================================

class TestTokenIssuer:

    def test_issue_token_is_64_hex_chars(self):
        token = issue_token()

        assert len(token) == 64
        int(token, 16)

    def test_issued_tokens_differ(self):
        tokens = {issue_token() for _ in range(200)}
        assert len(tokens) == 200

    def test_hash_token_is_sha256_hex(self):
        token = issue_token()

        assert hash_token(token) == hashlib.sha256(token.encode()).hexdigest()
        assert hash_token(token) != token
        assert hash_token(token) == hash_token(token)


# =============================================================================
# PASSWORD HASHING
# =============================================================================

class TestPasswordHashing:
    """Unit tests for bcrypt password utilities."""

    def test_hash_password_creates_bcrypt_hash(self):
        hashed = hash_password("SecurePassword123")

        assert hashed.startswith("$2b$")
        assert len(hashed) == 60

    def test_verify_password(self):
        hashed = hash_password("SecurePassword123")

        assert verify_password("SecurePassword123", hashed) is True
        assert verify_password("WrongPassword", hashed) is False
        assert verify_password("", hashed) is False

    def test_verify_password_garbage_hash(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False

    def test_same_password_different_hashes(self):
        assert hash_password("password") != hash_password("password")

    def test_needs_rehash_old_work_factor(self):
        old_hash = bcrypt.hashpw(b"password", bcrypt.gensalt(rounds=4)).decode()

        assert needs_rehash(old_hash, target_work_factor=12) is True
        assert needs_rehash(old_hash, target_work_factor=4) is False

    def test_needs_rehash_current_factor(self):
        assert needs_rehash(hash_password("password")) is False

    def test_password_too_long_counts_bytes(self):
        assert not password_too_long("a" * BCRYPT_MAX_BYTES)
        assert password_too_long("a" * (BCRYPT_MAX_BYTES + 1))
        # 3 bytes per character in UTF-8
        assert password_too_long("€" * 25)


# =============================================================================
# JWT ACCESS TOKENS
# =============================================================================

class TestJWTTokens:

    def test_round_trip_claims(self):
        user_id = uuid4()
        session_id = uuid4()

        token, jti = create_access_token(user_id, "teacher", session_id)
        payload = verify_access_token(token)

        assert payload.sub == str(user_id)
        assert payload.role == "teacher"
        assert payload.sid == str(session_id)
        assert payload.jti == jti
        assert len(jti) == 32

    def test_invalid_token_rejected(self):
        with pytest.raises(InvalidTokenError):
            verify_access_token("invalid.token.here")

    def test_tampered_token_rejected(self):
        token, _ = create_access_token(uuid4(), "student", uuid4())
        header, payload, signature = token.split(".")
        tampered = f"{header}.{payload}.{signature[::-1]}"

        with pytest.raises(InvalidTokenError):
            verify_access_token(tampered)

    def test_expired_token_rejected(self):
        token, _ = create_access_token(
            uuid4(), "student", uuid4(), expires_delta=timedelta(seconds=-1)
        )

        with pytest.raises(InvalidTokenError):
            verify_access_token(token)

    def test_expiry_seconds(self):
        assert get_token_expiry_seconds() == 15 * 60

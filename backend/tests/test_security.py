"""
Tests for core/security.py - audit tokens, session cookies and cron auth.
"""
import time
from uuid import uuid4

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from boost.core.config import get_settings
from boost.core.security import (
    get_session_user_id,
    issue_session_token,
    require_user_id,
    sign_audit_token,
    sign_session,
    verify_audit_token,
    verify_cron_secret,
    verify_session,
)


class TestAuditTokens:
    """Tests for sign_audit_token / verify_audit_token."""

    def test_token_is_deterministic(self):
        audit_id = uuid4()
        assert sign_audit_token(audit_id) == sign_audit_token(str(audit_id))

    def test_token_has_no_padding(self):
        token = sign_audit_token(uuid4())
        assert "=" not in token
        assert token.count(".") == 1

    def test_valid_token_verifies(self):
        audit_id = uuid4()
        assert verify_audit_token(audit_id, sign_audit_token(audit_id)) is True

    def test_token_bound_to_its_audit(self):
        """A token for one audit does not open another."""
        token = sign_audit_token(uuid4())
        assert verify_audit_token(uuid4(), token) is False

    def test_tampered_signature_rejected(self):
        audit_id = uuid4()
        data, sig = sign_audit_token(audit_id).split(".")
        flipped = ("A" if sig[0] != "A" else "B") + sig[1:]
        assert verify_audit_token(audit_id, f"{data}.{flipped}") is False

    @pytest.mark.parametrize("token", [None, "", "nodot", ".", "a.b.c", "!!!.sig"])
    def test_malformed_tokens_rejected(self, token):
        assert verify_audit_token(uuid4(), token) is False

    def test_missing_audit_id_rejected(self):
        assert verify_audit_token(None, sign_audit_token(uuid4())) is False

    def test_short_secret_refuses_to_sign(self, monkeypatch):
        """Signing without a strong secret is a configuration error."""
        monkeypatch.setattr(get_settings(), "SESSION_SECRET", "too-short")
        with pytest.raises(RuntimeError):
            sign_audit_token(uuid4())


class TestSessions:
    """Tests for the signed session cookie."""

    def test_round_trip(self):
        user_id = uuid4()
        payload = verify_session(issue_session_token(user_id, "jane@example.com"))
        assert payload["userId"] == str(user_id)
        assert payload["email"] == "jane@example.com"

    def test_expired_session_rejected(self):
        token = sign_session({"userId": str(uuid4()), "email": "x@example.com", "exp": int(time.time() * 1000) - 1})
        assert verify_session(token) is None

    def test_session_without_exp_rejected(self):
        assert verify_session(sign_session({"userId": str(uuid4())})) is None

    def test_tampered_payload_rejected(self):
        token = issue_session_token(uuid4(), "jane@example.com")
        other = issue_session_token(uuid4(), "eve@example.com")
        forged = f"{other.split('.')[0]}.{token.split('.')[1]}"
        assert verify_session(forged) is None

    def test_session_user_id_dependency(self):
        user_id = uuid4()
        assert get_session_user_id(issue_session_token(user_id, "jane@example.com")) == user_id
        assert get_session_user_id(None) is None
        assert get_session_user_id("garbage") is None

    def test_non_uuid_user_id_is_anonymous(self):
        token = sign_session({"userId": "not-a-uuid", "exp": int(time.time() * 1000) + 60_000})
        assert get_session_user_id(token) is None

    def test_require_user_id_raises_401(self):
        with pytest.raises(HTTPException) as exc:
            require_user_id(None)
        assert exc.value.status_code == 401


class TestCronSecret:
    """Tests for verify_cron_secret."""

    def test_correct_bearer_passes(self):
        creds = HTTPAuthorizationCredentials(scheme="Bearer", credentials="test-cron-secret")
        assert verify_cron_secret(creds) is None

    def test_wrong_bearer_rejected(self):
        creds = HTTPAuthorizationCredentials(scheme="Bearer", credentials="nope")
        with pytest.raises(HTTPException) as exc:
            verify_cron_secret(creds)
        assert exc.value.status_code == 401

    def test_missing_header_rejected(self):
        with pytest.raises(HTTPException):
            verify_cron_secret(None)

    def test_unconfigured_secret_rejects_everything(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "CRON_SECRET", None)
        creds = HTTPAuthorizationCredentials(scheme="Bearer", credentials="test-cron-secret")
        with pytest.raises(HTTPException):
            verify_cron_secret(creds)

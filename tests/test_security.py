from datetime import datetime, timedelta, timezone

import jwt
import pytest

from api import create_app
from utils.exceptions import ConfigurationError, ExpiredToken, InvalidToken
from utils.security import (
    decode_access_token,
    decode_refresh_token,
    fingerprint,
    hash_password,
    issue_tokens,
    validate_signing_config,
    verify_password,
)


def _expired_access_token(app, subject="user-1"):
    past = datetime.now(timezone.utc) - timedelta(minutes=1)
    payload = {"sub": subject, "exp": past, "type": "access", "jti": "x"}
    return jwt.encode(payload, app.config["ACCESS_TOKEN_SECRET"], algorithm="HS256")


class TestPasswords:
    def test_hash_and_verify(self):
        pw_hash = hash_password("s3cret-pass")
        assert pw_hash != "s3cret-pass"
        assert verify_password("s3cret-pass", pw_hash)
        assert not verify_password("wrong", pw_hash)

    def test_account_without_hash_never_matches(self):
        assert not verify_password("anything", None)
        assert not verify_password("anything", "")

    def test_garbage_hash_does_not_raise(self):
        assert not verify_password("anything", "not-an-argon2-hash")


class TestIssueTokens:
    def test_pair_decodes_to_subject(self, app_ctx):
        pair = issue_tokens("user-1")
        assert decode_access_token(pair.access_token)["sub"] == "user-1"
        assert decode_refresh_token(pair.refresh_token)["sub"] == "user-1"

    def test_same_instant_tokens_differ(self, app_ctx):
        first, second = issue_tokens("user-1"), issue_tokens("user-1")
        assert first.access_token != second.access_token
        assert first.refresh_token != second.refresh_token

    def test_access_ttl_follows_config(self, app):
        app.config["ACCESS_TOKEN_EXPIRES"] = timedelta(minutes=3)
        with app.app_context():
            decoded = decode_access_token(issue_tokens("user-1").access_token)
        assert decoded["exp"] - decoded["iat"] == pytest.approx(180, abs=1)

    def test_refresh_token_is_not_an_access_token(self, app_ctx):
        pair = issue_tokens("user-1")
        # signed with a different secret, so the signature check fails first
        with pytest.raises(InvalidToken):
            decode_access_token(pair.refresh_token)
        with pytest.raises(InvalidToken):
            decode_refresh_token(pair.access_token)

    def test_wrong_type_with_right_secret(self, app):
        token = jwt.encode(
            {"sub": "user-1", "exp": datetime.now(timezone.utc) + timedelta(minutes=1), "type": "refresh"},
            app.config["ACCESS_TOKEN_SECRET"],
            algorithm="HS256",
        )
        with app.app_context():
            with pytest.raises(InvalidToken, match="Wrong token type"):
                decode_access_token(token)


class TestDecode:
    def test_expired_token_is_distinguished(self, app):
        token = _expired_access_token(app)
        with app.app_context():
            with pytest.raises(ExpiredToken) as exc:
                decode_access_token(token)
        assert exc.value.status == 403
        assert exc.value.error == "TOKEN_EXPIRED"

    def test_tampered_token(self, app_ctx):
        token = issue_tokens("user-1").access_token
        with pytest.raises(InvalidToken) as exc:
            decode_access_token(token[:-2] + ("aa" if not token.endswith("aa") else "bb"))
        assert not isinstance(exc.value, ExpiredToken)

    def test_malformed_token(self, app_ctx):
        with pytest.raises(InvalidToken):
            decode_access_token("not.a.jwt")

    def test_missing_claims(self, app):
        token = jwt.encode({"type": "access"}, app.config["ACCESS_TOKEN_SECRET"], algorithm="HS256")
        with app.app_context():
            with pytest.raises(InvalidToken):
                decode_access_token(token)


class TestSigningConfig:
    def test_identical_secrets_rejected(self):
        with pytest.raises(ConfigurationError):
            validate_signing_config(
                {"ACCESS_TOKEN_SECRET": "same", "REFRESH_TOKEN_SECRET": "same", "JWT_ALGORITHM": "HS256"}
            )

    def test_missing_secret_rejected(self):
        with pytest.raises(ConfigurationError):
            validate_signing_config({"ACCESS_TOKEN_SECRET": "a", "REFRESH_TOKEN_SECRET": None, "JWT_ALGORITHM": "HS256"})

    def test_app_factory_refuses_to_start(self, tmp_path):
        with pytest.raises(ConfigurationError):
            create_app(
                "testing",
                test_config={
                    "DATABASE_URL": f"sqlite:///{tmp_path / 'x.db'}",
                    "REFRESH_TOKEN_SECRET": "test-access-secret",
                },
            )


def test_fingerprint_is_stable_and_opaque():
    assert fingerprint("abc") == fingerprint("abc")
    assert fingerprint("abc") != fingerprint("abd")
    assert len(fingerprint("abc")) == 64

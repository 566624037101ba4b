import threading
from datetime import timedelta

import pytest

from models import storage
from tests.conftest import ALICE_EMAIL, ALICE_PASSWORD
from utils import sessions
from utils.exceptions import (
    AuthenticationFailed,
    ExpiredToken,
    InvalidToken,
    MissingCredential,
    ProviderUnavailable,
    TokenReuseOrExpired,
    UnknownUser,
)
from utils.identity_provider import ProviderIdentity
from utils.security import decode_access_token


def _login(email=ALICE_EMAIL, password=ALICE_PASSWORD):
    return sessions.login(sessions.EmailLogin(email=email, password=password))


class TestLogin:
    def test_access_token_validates_to_same_user(self, alice):
        creds = _login()
        assert creds.user_id == alice.id
        assert decode_access_token(creds.access_token)["sub"] == alice.id

    def test_refresh_token_is_tracked(self, store, alice):
        creds = _login()
        assert store.has_refresh_token(alice.id, creds.refresh_token)

    def test_each_login_adds_a_session(self, store, alice):
        _login()
        _login()
        assert store.refresh_token_count(alice.id) == 2

    def test_wrong_password_issues_nothing(self, store, alice):
        with pytest.raises(AuthenticationFailed):
            _login(password="not-it")
        assert store.refresh_token_count(alice.id) == 0

    def test_unknown_email(self, alice):
        with pytest.raises(AuthenticationFailed):
            _login(email="nobody@example.com")

    def test_missing_fields(self, alice):
        with pytest.raises(MissingCredential):
            _login(password="")

    def test_unsupported_request_type(self, alice):
        with pytest.raises(TypeError):
            sessions.login({"email": ALICE_EMAIL})


class TestProviderLogin:
    def test_first_login_provisions_account(self, store, identity_provider, app_ctx):
        identity_provider.identities["good"] = ProviderIdentity(
            email="carol@example.com", name="Carol", picture="https://example.com/carol.jpg"
        )
        creds = sessions.login(sessions.ProviderLogin(credential="good"))

        user = store.find_by_id(creds.user_id)
        assert user.email == "carol@example.com"
        assert user.username == "Carol"
        assert user.password_hash is None
        assert user.avatar.endswith(".jpg")
        assert identity_provider.downloads == ["https://example.com/carol.jpg"]

    def test_existing_account_is_reused(self, alice, identity_provider):
        identity_provider.identities["good"] = ProviderIdentity(email=ALICE_EMAIL, name="Alice", picture=None)
        creds = sessions.login(sessions.ProviderLogin(credential="good"))
        assert creds.user_id == alice.id
        assert identity_provider.downloads == []

    def test_provider_account_cannot_use_password_login(self, identity_provider, app_ctx):
        identity_provider.identities["good"] = ProviderIdentity(
            email="carol@example.com", name="Carol", picture="https://example.com/carol.jpg"
        )
        sessions.login(sessions.ProviderLogin(credential="good"))
        with pytest.raises(AuthenticationFailed):
            _login(email="carol@example.com", password="google-signin")

    def test_rejected_credential(self, app_ctx):
        with pytest.raises(AuthenticationFailed):
            sessions.login(sessions.ProviderLogin(credential="forged"))

    def test_profile_without_picture_cannot_be_provisioned(self, identity_provider, app_ctx):
        identity_provider.identities["good"] = ProviderIdentity(email="dan@example.com", name="Dan", picture=None)
        with pytest.raises(ProviderUnavailable):
            sessions.login(sessions.ProviderLogin(credential="good"))


class TestRotate:
    def test_rotation_returns_fresh_pair(self, alice):
        first = _login()
        second = sessions.rotate(first.refresh_token)

        assert second.user_id == alice.id
        assert second.access_token != first.access_token
        assert second.refresh_token != first.refresh_token

    def test_token_rotates_exactly_once(self, alice):
        first = _login()
        sessions.rotate(first.refresh_token)
        with pytest.raises(TokenReuseOrExpired) as exc:
            sessions.rotate(first.refresh_token)
        assert exc.value.status == 403

    def test_new_token_rotates_again(self, alice):
        creds = _login()
        for _ in range(3):
            creds = sessions.rotate(creds.refresh_token)
        assert decode_access_token(creds.access_token)["sub"] == alice.id

    def test_rotation_keeps_set_size(self, store, alice):
        creds = _login()
        sessions.rotate(creds.refresh_token)
        assert store.refresh_token_count(alice.id) == 1

    def test_reuse_rejects_only_the_request_by_default(self, store, alice):
        first = _login()
        second = sessions.rotate(first.refresh_token)
        with pytest.raises(TokenReuseOrExpired):
            sessions.rotate(first.refresh_token)
        assert store.has_refresh_token(alice.id, second.refresh_token)

    def test_reuse_can_revoke_every_session(self, app, store, alice):
        app.config["REFRESH_REUSE_REVOKES_ALL"] = True
        first = _login()
        other_device = _login()
        second = sessions.rotate(first.refresh_token)

        with pytest.raises(TokenReuseOrExpired):
            sessions.rotate(first.refresh_token)

        assert store.refresh_token_count(alice.id) == 0
        with pytest.raises(TokenReuseOrExpired):
            sessions.rotate(second.refresh_token)
        with pytest.raises(TokenReuseOrExpired):
            sessions.rotate(other_device.refresh_token)

    def test_access_token_is_not_a_refresh_token(self, alice):
        creds = _login()
        with pytest.raises(InvalidToken):
            sessions.rotate(creds.access_token)

    def test_expired_refresh_token(self, app, alice):
        app.config["REFRESH_TOKEN_EXPIRES"] = timedelta(seconds=-1)
        creds = _login()
        with pytest.raises(ExpiredToken):
            sessions.rotate(creds.refresh_token)

    def test_deleted_user(self, store, alice):
        creds = _login()
        storage.get_session().delete(store.find_by_id(alice.id))
        storage.save()
        with pytest.raises(UnknownUser):
            sessions.rotate(creds.refresh_token)

    def test_missing_token(self, app_ctx):
        with pytest.raises(MissingCredential):
            sessions.rotate("")


class TestLogout:
    def test_logout_then_rotate_fails(self, alice):
        creds = _login()
        sessions.logout(creds.refresh_token)
        with pytest.raises(TokenReuseOrExpired):
            sessions.rotate(creds.refresh_token)

    def test_second_logout_fails(self, alice):
        creds = _login()
        sessions.logout(creds.refresh_token)
        with pytest.raises(TokenReuseOrExpired):
            sessions.logout(creds.refresh_token)

    def test_logout_leaves_other_sessions(self, store, alice):
        laptop, phone = _login(), _login()
        sessions.logout(laptop.refresh_token)
        assert store.has_refresh_token(alice.id, phone.refresh_token)

    def test_access_token_survives_logout(self, alice):
        creds = _login()
        sessions.logout(creds.refresh_token)
        assert decode_access_token(creds.access_token)["sub"] == alice.id

    def test_garbage_token(self, app_ctx):
        with pytest.raises(InvalidToken):
            sessions.logout("garbage")


def test_concurrent_rotation_has_one_winner(app, alice):
    creds = _login()
    # release this thread's connection so the workers can take the write lock
    storage.close()

    barrier = threading.Barrier(2)
    outcomes = []

    def worker():
        with app.app_context():
            barrier.wait()
            try:
                outcomes.append(sessions.rotate(creds.refresh_token))
            except TokenReuseOrExpired as exc:
                outcomes.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    winners = [o for o in outcomes if isinstance(o, sessions.SessionCredentials)]
    losers = [o for o in outcomes if isinstance(o, TokenReuseOrExpired)]
    assert len(winners) == 1
    assert len(losers) == 1

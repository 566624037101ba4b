"""
Shared fixtures: an app on a throwaway SQLite file, its test client, the
credential store inside an app context, and a fake Google identity provider.
"""
import io

import pytest

from api import create_app
from models import storage
from models.credential_store import CredentialStore
from utils.avatars import new_avatar_path
from utils.exceptions import AuthenticationFailed
from utils.identity_provider import ProviderIdentity
from utils.security import hash_password

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32

ALICE_EMAIL = "alice@example.com"
ALICE_PASSWORD = "wonderland"


class FakeIdentityProvider:
    """Accepts the credentials registered in `identities`, rejects everything else."""

    def __init__(self):
        self.identities = {}
        self.downloads = []

    def verify(self, credential):
        identity = self.identities.get(credential)
        if identity is None:
            raise AuthenticationFailed()
        return identity

    def download_avatar(self, url, directory):
        path = new_avatar_path(directory, ".jpg")
        with open(path, "wb") as fh:
            fh.write(b"jpeg")
        self.downloads.append(url)
        return path


@pytest.fixture
def app(tmp_path):
    app = create_app(
        "testing",
        test_config={
            "DATABASE_URL": f"sqlite:///{tmp_path / 'test.db'}",
            "AVATAR_DIR": str(tmp_path / "avatars"),
        },
    )
    app.extensions["identity_provider"] = FakeIdentityProvider()
    yield app
    storage.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def bare_client(app):
    """Test client without a cookie jar; cookies are sent explicitly."""
    return app.test_client(use_cookies=False)


@pytest.fixture
def identity_provider(app):
    return app.extensions["identity_provider"]


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield


@pytest.fixture
def store(app_ctx):
    return CredentialStore()


@pytest.fixture
def alice(store):
    return store.create(
        username="alice",
        email=ALICE_EMAIL,
        password_hash=hash_password(ALICE_PASSWORD),
        avatar=None,
    )


@pytest.fixture
def png_upload():
    def make(name="me.png"):
        return (io.BytesIO(PNG_BYTES), name, "image/png")
    return make

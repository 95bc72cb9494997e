"""
Shared fixtures: settings, in-memory storage, a recording email sender,
the wired services and an HTTP client.
"""

import pytest
from fastapi.testclient import TestClient

from puretome.api.app import build_state, create_app
from puretome.config import Settings
from puretome.integrations.email import EmailService
from puretome.storage import create_local_storage


class RecordingEmailService(EmailService):
    """Captures outgoing mail instead of calling SES."""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.sent: list[dict] = []
        self.fail = False

    async def send(self, to, template, data=None, subject_override=None):
        if self.fail:
            raise RuntimeError("SMTP relay unreachable")
        self.sent.append({"to": to, "template": template, "data": data or {}})
        return True

    async def send_invitation(self, email, memoir_title, author_name, memoir_id, token, role):
        if self.fail:
            raise RuntimeError("SMTP relay unreachable")
        self.sent.append({
            "to": email,
            "template": "collaborator_invitation",
            "data": {
                "memoir_title": memoir_title,
                "author_name": author_name,
                "memoir_id": memoir_id,
                "token": token,
                "role": role,
                "accept_url": f"{self.settings.frontend_url}/invite/{memoir_id}?token={token}",
            },
        })
        return True

    def last(self, template: str) -> dict:
        matches = [m for m in self.sent if m["template"] == template]
        assert matches, f"no {template} email sent"
        return matches[-1]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        environment="test",
        jwt_secret_key="test-secret",
        frontend_url="http://app.test",
        upload_dir=str(tmp_path / "uploads"),
        upload_base_url="http://testserver/uploads",
        sentry_dsn="",
    )


@pytest.fixture
def storage(settings):
    return create_local_storage(settings.upload_dir, settings.upload_base_url)


@pytest.fixture
def email_service(settings):
    return RecordingEmailService(settings)


@pytest.fixture
def state(settings, storage, email_service):
    """Services wired exactly as the app wires them."""
    return build_state(settings, storage, email_service)


@pytest.fixture
def client(settings, storage, email_service):
    app = create_app(settings=settings, storage=storage, email_service=email_service)
    with TestClient(app) as test_client:
        yield test_client


# =============================================================================
# Helpers
# =============================================================================


async def make_user(state, email, name="Test User", role="author", password="secret1"):
    return await state.users.register(name, email, password, role)


async def make_memoir(state, author, title="My Life"):
    return await state.memoirs.create(author.id, {"title": title})

"""Shared fixtures: a temporary SQLite database, the app client and a captured outbox."""

import asyncio
import os
import tempfile
from pathlib import Path

import pytest

_TMP_DIR = tempfile.mkdtemp(prefix="formbuilder-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_TMP_DIR) / 'test.db'}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENV"] = "test"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["SMTP_HOST"] = ""
os.environ["SMTP_PASSWORD"] = ""

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import text  # noqa: E402

from db.database import engine  # noqa: E402
from models.form import FormDocument, create_default_field  # noqa: E402


async def _truncate_tables():
    async with engine.begin() as conn:
        for table in ("form_responses", "forms", "users"):
            await conn.execute(text(f"DELETE FROM {table}"))


@pytest.fixture
def outbox(monkeypatch):
    """Capture outgoing emails instead of talking to SMTP."""
    sent = []

    def fake_send(to_email, subject, html_body, from_addr=None):
        sent.append({"to": to_email, "subject": subject, "html": html_body})

    monkeypatch.setattr("services.auth_service.send_email_html", fake_send)
    monkeypatch.setattr("services.responses_service.send_email_html", fake_send)
    return sent


@pytest.fixture
def client(outbox):
    """App client with a fresh database; tables are emptied after each test."""
    from main import app

    with TestClient(app) as test_client:
        yield test_client
    asyncio.run(_truncate_tables())


@pytest.fixture
def two_step_form():
    """Step 1: required text 'Name'; step 2: required email 'Email'."""
    name = create_default_field("text").model_copy(update={"label": "Name", "required": True})
    email = create_default_field("email").model_copy(update={"label": "Email", "required": True})
    return FormDocument(title="Signup", steps=((name,), (email,)))


@pytest.fixture
def register_user(client):
    """Register an account through the API; the session cookie stays on the client."""

    def _register(name="Ada", email="ada@example.com", password="s3cret-pass"):
        return client.post("/api/auth/register", json={"name": name, "email": email, "password": password})

    return _register

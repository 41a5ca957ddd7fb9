import pytest

from doodl import create_app
from doodl.config import TestConfig
from doodl.extensions import db
from doodl.services.metadata import PageMetadata


BRIDGE_HEADERS = {"X-Auth-Bridge-Secret": TestConfig.AUTH_BRIDGE_SECRET}


def fake_metadata(url, **_options):
    return PageMetadata(
        title=f"Fetched {url}",
        description="fetched description",
        favicon="https://cdn.example.com/favicon.ico",
    )


@pytest.fixture(autouse=True)
def offline_enrichment(monkeypatch):
    monkeypatch.setattr("doodl.jobs.enrichment.extract_metadata", fake_metadata)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def sign_in(client, subject="auth|alice", email="alice@example.com", name="Alice"):
    response = client.post(
        "/auth/session",
        headers=BRIDGE_HEADERS,
        json={"subject": subject, "email": email, "name": name},
    )
    assert response.status_code == 200
    return response.get_json()


@pytest.fixture
def login():
    return sign_in

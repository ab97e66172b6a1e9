"""
Pytest fixtures for Marketbook backend tests.

Provides test database setup, users with bearer/admin headers, and fake
renderer/gateway/storage collaborators swapped in through app.extensions.
"""

import pytest

from marketbook import create_app
from marketbook.errors import DeliveryFailure, RenderFailure, UploadFailure
from marketbook.extensions import db
from marketbook.models import Item
from marketbook.services import admin_service, auth_service, session_service


DEFAULT_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'MAIL_DEFAULT_SENDER': 'invoices@marketbook.test',
        'INVOICE_RENDER_BACKEND': 'local',
        'LOG_LEVEL': 'DEBUG',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Cheap bcrypt cost so fixtures that create users stay fast."""
    monkeypatch.setattr(auth_service, "BCRYPT_ROUNDS", 4)


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================


FAKE_PDF = b"%PDF-1.4\n% fake invoice\n%%EOF\n"


class FakeRenderer:
    def __init__(self, fail=False, error=None):
        self.fail = fail
        self.error = error
        self.views = []

    def render(self, view):
        self.views.append(view)
        if self.error is not None:
            raise self.error
        if self.fail:
            raise RenderFailure()
        return FAKE_PDF


class FakeGateway:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send(self, to, subject, html, attachments=()):
        if self.fail:
            raise DeliveryFailure()
        self.sent.append({"to": to, "subject": subject, "html": html, "attachments": list(attachments)})


class FakeStorage:
    def __init__(self, fail=False):
        self.fail = fail
        self.uploads = []

    def upload(self, data, folder):
        if self.fail:
            raise UploadFailure()
        self.uploads.append((folder, data))
        return f"https://res.cloudinary.test/{folder}/{len(self.uploads)}.png"


def _swap_extension(app, key, value):
    previous = app.extensions[key]
    app.extensions[key] = value
    return previous


@pytest.fixture(scope='function')
def fake_renderer(app):
    renderer = FakeRenderer()
    previous = _swap_extension(app, "invoice_renderer", renderer)
    yield renderer
    app.extensions["invoice_renderer"] = previous


@pytest.fixture(scope='function')
def fake_gateway(app):
    gateway = FakeGateway()
    previous = _swap_extension(app, "delivery_gateway", gateway)
    yield gateway
    app.extensions["delivery_gateway"] = previous


@pytest.fixture(scope='function')
def fake_storage(app):
    storage = FakeStorage()
    previous = _swap_extension(app, "object_storage", storage)
    yield storage
    app.extensions["object_storage"] = previous


# =============================================================================
# USERS AND HEADERS
# =============================================================================


@pytest.fixture(scope='function')
def user_a(db_session):
    """Ada, owner of most test data."""
    user = auth_service.register_user("Ada Obi", "ada@marketbook.test", DEFAULT_PASSWORD)
    user.billing_street = "12 Marina Road"
    user.billing_city = "Lagos"
    user.billing_state = "Lagos"
    user.billing_zip_code = "101241"
    user.billing_country = "Nigeria"
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def user_b(db_session):
    """Ben, a second account used for isolation checks."""
    return auth_service.register_user("Ben Eze", "ben@marketbook.test", DEFAULT_PASSWORD)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def bearer_for(user) -> dict:
    _, token = session_service.create_session(user_id=user.id)
    return auth_headers(token)


def admin_headers_for(user) -> dict:
    """Bearer session plus an elevated grant for the same user."""
    headers = bearer_for(user)
    if not user.is_admin_registered:
        admin_pass = admin_service.register_admin(user)
    else:
        pytest.fail("admin_headers_for() needs an unregistered user")
    _, admin_token = admin_service.admin_login(user, admin_pass)
    headers["X-Admin-Token"] = admin_token
    return headers


@pytest.fixture(scope='function')
def headers_a(user_a):
    return bearer_for(user_a)


@pytest.fixture(scope='function')
def headers_b(user_b):
    return bearer_for(user_b)


@pytest.fixture(scope='function')
def admin_headers_a(user_a):
    return admin_headers_for(user_a)


# =============================================================================
# ITEMS
# =============================================================================


@pytest.fixture(scope='function')
def make_item(db_session):
    """Factory inserting an item directly, bypassing the pipeline."""
    def _make(owner, **overrides):
        fields = {
            "title": "Chair",
            "amount_cents": 9999,
            "status": "pending",
            "customer_name": "Chidi Okafor",
            "customer_email": "chidi@example.com",
            "customer_address": "5 Allen Avenue, Ikeja",
        }
        fields.update(overrides)
        item = Item(user_id=owner.id, **fields)
        db_session.add(item)
        db_session.commit()
        return item
    return _make

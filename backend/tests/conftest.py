"""
Pytest fixtures for DealDesk backend tests.

Provides an in-memory database app, per-test table wipe, users for each
workflow role, a priced Draft offer and auth helpers.
"""

import pytest

from dealdesk import create_app
from dealdesk.extensions import db, storage
from dealdesk.models import Offer
from dealdesk.services import auth_service, offer_service, opportunity_service
from dealdesk.storage import LocalBucketStore


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'STORAGE_BACKEND': 'local',
        'STORAGE_ROOT': str(tmp_path_factory.mktemp('storage')),
        'BCRYPT_ROUNDS': 4,
        'SESSION_RETRY_ATTEMPTS': 3,
        'SESSION_RETRY_DELAY': 0,
        'IMPORT_DEFAULT_PASSWORD': PASSWORD,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


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


@pytest.fixture(scope='function')
def storage_root(app, tmp_path):
    """Point object storage at a fresh directory for this test."""
    previous = storage.backend
    storage.backend = LocalBucketStore(tmp_path)
    yield tmp_path
    storage.backend = previous


def make_user(name: str, email: str, role: str):
    return auth_service.create_user(name=name, email=email, role=role, password=PASSWORD)


@pytest.fixture(scope='function')
def admin_user(db_session):
    return make_user("Ada Admin", "admin@dealdesk.test", "admin")


@pytest.fixture(scope='function')
def sales_user(db_session):
    return make_user("Sam Sales", "sales@dealdesk.test", "Sales Rep")


@pytest.fixture(scope='function')
def tech_reviewer(db_session):
    return make_user("Tara Tech", "tech@dealdesk.test", "Solution Architect")


@pytest.fixture(scope='function')
def commercial_reviewer(db_session):
    return make_user("Carl Commercial", "commercial@dealdesk.test", "CFO")


@pytest.fixture(scope='function')
def opportunity(db_session, sales_user):
    return opportunity_service.create_opportunity({"name": "Core banking rollout"}, actor_id=sales_user.id)


@pytest.fixture(scope='function')
def draft_offer(db_session, opportunity, sales_user) -> Offer:
    """
    Draft offer worth MRR 2000 (one environment, 2 x 1000) and services 300
    (3 mandays at 100, no margin).
    """
    return offer_service.create_offer(
        {
            "opportunity_id": opportunity.id,
            "offer_summary": "<p>Hosted platform</p>",
            "environments": [{
                "name": "Production",
                "components": [{"name": "Node", "monthly_price": 1000, "quantity": 2}],
            }],
            "service_sets": [{
                "name": "Onboarding",
                "services": [{"name": "Setup", "manday_rate": 100, "number_of_mandays": 3}],
            }],
        },
        actor_id=sales_user.id,
    )


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email))


@pytest.fixture(scope='function')
def sales_headers(client, sales_user):
    return auth_headers(get_auth_token(client, sales_user.email))

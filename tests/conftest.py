import pytest
import uuid

from app import create_app
from app.database import create_all, drop_all, get_session
from app.models import Tenant
from app.services import catalog_service


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing (SQLite in memory, cache disabled)."""
    app = create_app('config.TestConfig')
    return app


@pytest.fixture(scope='function')
def session(app):
    """Fresh schema and database session for each test."""
    with app.app_context():
        create_all()
        session = get_session()
        yield session
        session.rollback()
        session.remove()
        drop_all()


@pytest.fixture(scope='function')
def client(app, session):
    """Create test client."""
    return app.test_client()


def _tenant(session, label):
    suffix = str(uuid.uuid4())[:8]
    tenant = Tenant(
        slug=f'test-{label}-{suffix}',
        name=f'Test {label} {suffix}',
        default_locale='en-US',
        default_currency='EUR',
        active=True
    )
    session.add(tenant)
    session.commit()
    return tenant


@pytest.fixture(scope='function')
def tenant1(session):
    """Create first test tenant."""
    return _tenant(session, 'tenant-1')


@pytest.fixture(scope='function')
def tenant2(session):
    """Create second test tenant for isolation tests."""
    return _tenant(session, 'tenant-2')


@pytest.fixture(scope='function')
def location(session, tenant1):
    return catalog_service.create_location(session, tenant1.id, 'Downtown', 'downtown', city='Lisbon')


@pytest.fixture(scope='function')
def make_section(session, tenant1):
    """Factory: make_section('Starters', is_active=True, tenant_id=None)."""
    def _make(title, is_active=True, tenant_id=None):
        return catalog_service.create_section(
            session, tenant_id or tenant1.id, [{'locale': 'en-US', 'title': title}], is_active=is_active
        )
    return _make


@pytest.fixture(scope='function')
def make_item(session, tenant1):
    """Factory: make_item('Soup', price='5.00', is_visible=True, tenant_id=None)."""
    def _make(name, price='5.00', is_visible=True, tenant_id=None):
        return catalog_service.create_item(
            session, tenant_id or tenant1.id, [{'locale': 'en-US', 'name': name}],
            price=price, is_visible=is_visible
        )
    return _make


@pytest.fixture(scope='function')
def make_menu(session, tenant1):
    """Factory: make_menu('LUNCH', tenant_id=None) -> draft menu."""
    def _make(code, tenant_id=None):
        return catalog_service.create_menu(
            session, tenant_id or tenant1.id, code, [{'locale': 'en-US', 'name': f'{code} menu'}]
        )
    return _make


@pytest.fixture(scope='function')
def draft_menu(make_menu):
    return make_menu('MAIN')


@pytest.fixture(scope='function')
def login(client):
    """Put an authenticated principal in the session: login(tenant_id, role='OWNER', user_id=1)."""
    def _login(tenant_id, role='OWNER', user_id=1):
        with client.session_transaction() as sess:
            sess['user_id'] = user_id
            sess['tenant_id'] = tenant_id
            sess['role'] = role
    return _login


@pytest.fixture(scope='function')
def redis_client(mocker):
    """MagicMock standing in for redis.Redis: healthy, empty, one scan page."""
    client = mocker.MagicMock()
    client.ping.return_value = True
    client.get.return_value = None
    client.scan.return_value = (0, [])
    return client


@pytest.fixture(scope='function')
def cache(monkeypatch, redis_client):
    """Install a working cache on the mocked client for the duration of a test."""
    from app.services import cache_service
    service = cache_service.CacheService(client=redis_client)
    monkeypatch.setattr(cache_service, '_cache_service', service)
    return service


@pytest.fixture(scope='function')
def row_locks(monkeypatch):
    """
    Record which lookups of a service module ran with lock=True, in order:
    locked = row_locks(visibility_service, item='get_item', line='_find_line').
    """
    locked = []

    def _watch(module, **targets):
        for label, attr in targets.items():
            original = getattr(module, attr)

            def wrapper(*args, _label=label, _original=original, **kwargs):
                if kwargs.get('lock'):
                    locked.append(_label)
                return _original(*args, **kwargs)

            monkeypatch.setattr(module, attr, wrapper)
        return locked
    return _watch

import pytest

from api import create_app
from models import storage

API = "/api/v1"
PASSWORD = "correct-pw-123"


class FakeClock:
    """Stand-in for time.time that only moves when told to."""

    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeTimer:
    def __init__(self, delay, fn):
        self.delay = delay
        self.fn = fn
        self.daemon = False
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fired = True
        self.fn()


class TimerRecorder:
    """timer_factory that keeps every timer it hands out."""

    def __init__(self):
        self.timers = []

    def __call__(self, delay, fn):
        timer = FakeTimer(delay, fn)
        self.timers.append(timer)
        return timer

    @property
    def live(self):
        return [t for t in self.timers if t.started and not (t.cancelled or t.fired)]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app(clock):
    app = create_app("testing", clock=clock)
    yield app
    storage.close()


@pytest.fixture
def client(app):
    # Tokens travel explicitly in bodies/headers; cookie behaviour has its own tests
    return app.test_client(use_cookies=False)


@pytest.fixture
def cookie_client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    with app.app_context():
        yield app.extensions["auth"]


@pytest.fixture
def make_account(app):
    def _make(email, password=PASSWORD, role="user", name="Test Account", is_active=True):
        with app.app_context():
            account = app.extensions["auth"].store.create_account(
                email=email, password=password, name=name, role=role, is_active=is_active
            )
            return account.id

    return _make


def login(client, email, password=PASSWORD):
    return client.post(f"{API}/auth/login", json={"email": email, "password": password})


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def timers():
    return TimerRecorder()


@pytest.fixture
def superadmin(app, client):
    """Create the configured superadmin and return its login payload."""
    assert client.post(f"{API}/superadmin/init").status_code == 201
    cfg = app.config
    return login(client, cfg["SUPERADMIN_EMAIL"], cfg["SUPERADMIN_PASSWORD"]).get_json()

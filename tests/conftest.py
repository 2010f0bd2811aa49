"""Shared fixtures: an in-memory application, a frozen clock and logged-in clients."""

from datetime import datetime

import pytest
import pytz
from flask import g

from app import create_app, db
from app.models import Role, User
from app.utils import timezone_utils
from app.utils.session_window import get_current_window

PASSWORD = "secret123"


class FrozenClock:
    """Replaces the application clock; times are UTC (the testing TIMEZONE)"""

    def __init__(self):
        self.now = None

    def set(self, *args):
        self.now = pytz.UTC.localize(datetime(*args))
        return self.now

    def window(self):
        return get_current_window()


@pytest.fixture
def app():
    app = create_app("testing")

    # Requests reuse the app context pushed below, and with it flask.g;
    # drop the user Flask-Login cached there so each client is loaded afresh
    @app.before_request
    def forget_cached_user():
        g.pop("_login_user", None)

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def clock(monkeypatch):
    frozen = FrozenClock()
    # Monday 2024-01-15, 19:00: betting is open
    frozen.set(2024, 1, 15, 19, 0)
    monkeypatch.setattr(timezone_utils, "get_current_time", lambda: frozen.now)
    return frozen


def make_user(username, role=Role.USER, password=PASSWORD):
    user = User(username=username, role=role)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


def login(client, username, password=PASSWORD):
    response = client.post(
        "/auth/login", json={"username": username, "password": password}
    )
    assert response.status_code == 200, response.get_json()
    return client


@pytest.fixture
def admin_client(app, clock):
    make_user("admin", role=Role.ADMIN)
    return login(app.test_client(), "admin")


@pytest.fixture
def alice_client(app, clock):
    make_user("alice")
    return login(app.test_client(), "alice")


@pytest.fixture
def bob_client(app, clock):
    make_user("bob")
    return login(app.test_client(), "bob")

import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

from app import models  # noqa: F401
from app.core import database
from app.core.database import Base, SessionLocal
from app.core.security import create_access_token
from app.main import app
from app.models.project import Project
from app.models.search_term import SearchTerm
from app.models.user import User
from app.services.places_service import PlaceResult, get_search_provider


class FakeProvider:
    """Stands in for the places client. ``results`` maps a query to the
    places to return or to an exception to raise."""

    def __init__(self):
        self.results = {}
        self.delays = {}
        self.calls = []

    async def search(self, query):
        self.calls.append(query)
        if self.delays.get(query):
            await asyncio.sleep(self.delays[query])
        outcome = self.results.get(query, [])
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_places(*names, address="1 Main St"):
    return [
        PlaceResult(
            business_name=name,
            address=address,
            phone="555-0100",
            website=f"https://{name.lower().replace(' ', '')}.example.org",
            rating=4.5,
            review_count=12,
        )
        for name in names
    ]


@pytest.fixture
def engine(tmp_path):
    test_engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=test_engine)
    SessionLocal.configure(bind=test_engine)
    yield test_engine
    SessionLocal.configure(bind=database.engine)
    test_engine.dispose()


@pytest.fixture
def db(engine):
    session = SessionLocal()
    yield session
    session.close()


def _create_user(db, email):
    user = User(email=email, hashed_password="not-a-real-hash", full_name="Test User")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def user(db):
    return _create_user(db, "owner@test.com")


@pytest.fixture
def other_user(db):
    return _create_user(db, "someone-else@test.com")


@pytest.fixture
def auth_headers(user):
    token = create_access_token(data={"sub": user.id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def provider():
    fake = FakeProvider()
    app.dependency_overrides[get_search_provider] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_search_provider, None)


@pytest.fixture
def client(engine):
    # No context manager: startup would create tables on the default engine
    return TestClient(app)


@pytest.fixture
def make_project(db, user):
    def _make(*terms, name="Coffee shops", owner=None, status="draft"):
        project = Project(name=name, user_id=(owner or user).id, status=status)
        project.search_terms = [
            SearchTerm(term=term, status="pending", position=i) for i, term in enumerate(terms)
        ]
        db.add(project)
        db.commit()
        return project

    return _make


class MockHttp:
    """Answers outgoing ``httpx.AsyncClient`` requests by host and optional path."""

    def __init__(self):
        self._routes = []
        self.requests = []

    def add(self, host, path=None, status_code=200, text="", json=None, error=None, handler=None):
        self._routes.append(
            (host, path, {"status_code": status_code, "text": text, "json": json, "error": error, "handler": handler})
        )

    def calls(self, host, path=None):
        return [
            r for r in self.requests
            if r.url.host == host and (path is None or r.url.path == path)
        ]

    def __call__(self, request):
        self.requests.append(request)
        for host, path, route in self._routes:
            if request.url.host != host or (path is not None and request.url.path != path):
                continue
            if route["error"] is not None:
                raise route["error"]
            if route["handler"] is not None:
                return route["handler"](request)
            if route["json"] is not None:
                return httpx.Response(route["status_code"], json=route["json"])
            return httpx.Response(route["status_code"], text=route["text"])
        raise AssertionError(f"Unexpected request to {request.url}")


@pytest.fixture
def http(monkeypatch):
    mock = MockHttp()
    real_client = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(mock)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", client_factory)
    return mock

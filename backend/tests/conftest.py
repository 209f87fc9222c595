from __future__ import annotations

import uuid
from collections import namedtuple
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from models.db import create_user, init_db, insert_hackathon, set_db_path
from models.schemas import Hackathon, utcnow


Account = namedtuple("Account", ["id", "token", "headers", "role"])


@pytest.fixture
def temp_db(tmp_path):
    set_db_path(tmp_path / "test.db")
    init_db()
    yield tmp_path / "test.db"


@pytest.fixture
def client(temp_db) -> TestClient:
    import main

    return TestClient(main.app)


@pytest.fixture
def make_account(temp_db):
    counter = {"n": 0}

    def _make(role: str = "student", name: str | None = None) -> Account:
        counter["n"] += 1
        email = f"{role}{counter['n']}@example.com"
        row, token = create_user(email, name or f"{role.title()} {counter['n']}", role=role)
        return Account(row["id"], token, {"Authorization": f"Bearer {token}"}, role)

    return _make


@pytest.fixture
def admin(make_account) -> Account:
    return make_account("admin")


@pytest.fixture
def organizer(make_account) -> Account:
    return make_account("organizer")


@pytest.fixture
def student(make_account) -> Account:
    return make_account("student")


def hackathon_data(organizer_id: str = "org-1", now=None, **overrides) -> dict:
    now = now or utcnow()
    start = now + timedelta(days=10)
    data = {
        "id": uuid.uuid4().hex,
        "title": "Hack the Campus",
        "description": "A weekend of building things.",
        "organizer": organizer_id,
        "startDate": start,
        "endDate": start + timedelta(days=2),
        "registrationDeadline": now + timedelta(days=5),
        "location": "Pune",
        "maxParticipants": 100,
        "teamSize": {"min": 1, "max": 4},
        "isApproved": True,
        "contactEmail": "hello@hackcampus.dev",
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_hackathon(temp_db):
    def _make(organizer_id: str = "org-1", now=None, **overrides) -> Hackathon:
        hackathon = Hackathon.model_validate(hackathon_data(organizer_id, now=now, **overrides))
        return insert_hackathon(hackathon, now)

    return _make


def member(i: int, **overrides) -> dict:
    data = {
        "name": f"Member {i}",
        "email": f"member{i}@example.com",
        "phone": f"98765{i:05d}",
        "college": "College of Engineering",
        "year": "3",
        "skills": ["python"],
    }
    data.update(overrides)
    return data


def team_members(start: int, count: int) -> list[dict]:
    return [member(i) for i in range(start, start + count)]

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rosterboard.auth import CurrentUser, get_current_user
from rosterboard.database import Base, get_db
from rosterboard.engine.errors import PersistenceError
from rosterboard.main import app
from rosterboard.models import Client, Employee, ScheduleType, Status

TEST_USER = CurrentUser(id="user-1", email="planner@example.com")


class FakeGateway:
    """
    Stands in for SyncGateway: records every operation and fails the ones
    matched by a rule added with ``fail``.
    """

    def __init__(self, catalogs=None, schedule=None, states=None):
        self.operations = []
        self.responses = {}
        self._rules = []
        self.catalogs = catalogs or {}
        self.schedule = schedule or {}
        self.states = states or []

    def fail(self, name, when=None, error=None, times=1):
        self._rules.append(
            {"name": name, "when": when, "error": error or PersistenceError("Server error", 500), "times": times}
        )

    @property
    def names(self):
        return [op.name for op in self.operations]

    async def persist(self, operation):
        self.operations.append(operation)
        for rule in self._rules:
            if rule["times"] and rule["name"] == operation.name and (rule["when"] is None or rule["when"](operation)):
                rule["times"] -= 1
                raise rule["error"]
        return self.responses.get(operation.name, {"success": True})

    async def load_employees(self):
        return self.catalogs.get("employees", [])

    async def load_statuses(self):
        return self.catalogs.get("statuses", [])

    async def load_clients(self):
        return self.catalogs.get("clients", [])

    async def load_schedule_types(self):
        return self.catalogs.get("schedule_types", [])

    async def load_schedule(self, start=None, end=None):
        return self.schedule

    async def load_states(self, employee_ids, start, end):
        return self.states


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = Session()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture()
def seeded_db(db_session):
    db_session.add_all(
        [
            Employee(id=1, name="Alice", email="alice@example.com"),
            Employee(id=2, name="Bob", email="bob@example.com"),
            Employee(id=7, name="Grace", email="grace@example.com"),
            Status(id=1, label="Office", color="#3b82f6"),
            Status(id=2, label="Sick Leave", color="#ef4444"),
            Status(id=3, label="With ...", color="#a855f7"),
            Client(id=5, name="Acme", color="#22c55e"),
            Client(id=6, name="Globex", color="#eab308"),
            ScheduleType(id=2, type_name="Installation"),
            ScheduleType(id=3, type_name="Service"),
        ]
    )
    db_session.commit()
    return db_session


@pytest.fixture()
def api_client(seeded_db):
    def override_get_db():
        yield seeded_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: TEST_USER
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()

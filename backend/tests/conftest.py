
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from tourney.database import get_session
from tourney.main import app
from tourney.services import lifecycle, roster
from tourney.store import Store

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. All models MUST be imported before create_all() (see tests/__init__.py)
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables created and dropped per test
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    SQLModel.metadata.create_all(test_engine)
    with Session(test_engine) as session:
        yield session
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="store")
def store_fixture(session: Session):
    return Store(session)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Test client whose requests run against test_engine"""
    app.dependency_overrides[get_session] = override_get_session
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture(name="make_team")
def make_team_fixture(store: Store):
    counter = {"n": 0}

    def _make(name=None, level="Gold", gender="Male", is_active=True, grade="8th"):
        counter["n"] += 1
        data = {
            "name": name or f"Team {counter['n']:02d}",
            "grade": grade,
            "gender": gender,
            "level_of_competition": level,
            "is_active": is_active,
        }
        return roster.create_team(store, data)

    return _make


@pytest.fixture(name="make_tournament")
def make_tournament_fixture(store: Store, make_team):
    """Tournament with team_count freshly created teams registered in creation order"""
    counter = {"n": 0}

    def _make(team_count=4, **fields):
        counter["n"] += 1
        data = {"name": f"Spring Classic {counter['n']}", "year": 2026, "min_teams": 2, "max_teams": 16}
        data.update(fields)
        tournament = lifecycle.create_tournament(store, data)
        teams = [make_team() for _ in range(team_count)]
        if teams:
            roster.add_teams_batch(store, tournament.id, [t.id for t in teams])
        return store.get_tournament(tournament.id)

    return _make

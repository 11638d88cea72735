import os
import sys
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

# Keep the default database and logs away from the user's home during tests
os.environ.setdefault("WORKSPACE_HUB_HOME", tempfile.mkdtemp(prefix="workspace_hub_tests_"))

# Add backend directory to Python path FIRST
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Now import after path is set
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from models import Base, Event, TeamMember

ORGANIZER = "organizer-1"


@pytest.fixture
def db_session():
    """Create in-memory database for testing"""
    engine = create_engine('sqlite:///:memory:')
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def make_event(db_session):
    """Factory for events; defaults to a published event ending in a week"""
    def _make(organizer_id=ORGANIZER, status="PUBLISHED", end_in_days=7, name="Tech Summit", session=None):
        db = session or db_session
        now = datetime.utcnow()
        event = Event(
            name=name,
            organizer_id=organizer_id,
            start_date=now + timedelta(days=end_in_days - 1),
            end_date=now + timedelta(days=end_in_days),
            status=status,
        )
        db.add(event)
        db.commit()
        return event
    return _make


@pytest.fixture
def workspace(db_session, make_event):
    """An ACTIVE workspace provisioned for a fresh event, owned by ORGANIZER"""
    from services.audit_logger import AuditLogger
    from services.workspace_service import WorkspaceService

    event = make_event()
    return WorkspaceService(db_session, AuditLogger(db_session)).provision(event.id, ORGANIZER)


@pytest.fixture
def add_member(db_session):
    """Add an active member with the given role straight to the database"""
    def _add(workspace_id, user_id, role="GENERAL_VOLUNTEER", permissions=None):
        member = TeamMember(workspace_id=workspace_id, user_id=user_id, role=role,
                            permissions=permissions, status="ACTIVE")
        db_session.add(member)
        db_session.commit()
        return member
    return _add


# API fixtures

@pytest.fixture
def api_engine():
    """Shared in-memory engine so every request session sees the same data"""
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def api_db(api_engine):
    """Session on the API engine for seeding and inspecting data"""
    session = sessionmaker(bind=api_engine)()
    yield session
    session.close()


@pytest.fixture
def client(api_engine):
    from fastapi.testclient import TestClient
    from database import get_db
    from main import app

    TestingSession = sessionmaker(bind=api_engine)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    # No context manager: the lifespan (database init, scheduler) is not needed here
    yield TestClient(app)
    app.dependency_overrides.clear()

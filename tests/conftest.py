"""Pytest configuration and fixtures."""

import os
from collections.abc import Callable, Generator
from uuid import uuid4

# Set test environment before importing app
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["DEBUG"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from lablineage.db.models import (
    AnalysisType,
    Base,
    Organization,
    OrganizationType,
    Project,
    Sample,
    User,
    UserRole,
    Workspace,
)
from lablineage.tenancy import CallerContext

# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def file_sessions(tmp_path) -> Generator[sessionmaker, None, None]:
    """Session factory over a temporary SQLite file.

    Each session gets its own connection, so a test can commit from a second
    session while the first is between its checks and its writes.
    """
    file_engine = create_engine(f"sqlite:///{tmp_path / 'interleave.db'}")
    Base.metadata.create_all(bind=file_engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
    Base.metadata.drop_all(bind=file_engine)
    file_engine.dispose()


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    # Import here to ensure env vars are set
    from lablineage.dependencies import get_db
    from lablineage.main import app

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _make_workspace(db: Session, name: str, slug: str) -> Workspace:
    workspace = Workspace(id=str(uuid4()), name=name, slug=slug)
    db.add(workspace)
    db.commit()
    db.refresh(workspace)
    return workspace


def _make_user(db: Session, workspace: Workspace, email: str, role: UserRole) -> User:
    user = User(
        id=str(uuid4()),
        workspace_id=workspace.id,
        email=email,
        full_name=email.split("@")[0].replace(".", " ").title(),
        role=role,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _make_org(
    db: Session,
    workspace: Workspace,
    name: str,
    org_type: OrganizationType,
    is_partner: bool = False,
) -> Organization:
    org = Organization(
        id=str(uuid4()),
        workspace_id=workspace.id,
        name=name,
        type=org_type,
        is_partner=is_partner,
    )
    db.add(org)
    db.commit()
    db.refresh(org)
    return org


@pytest.fixture
def workspace_a(db: Session) -> Workspace:
    """Create the primary test workspace."""
    return _make_workspace(db, "Agro Lab", "agro-lab")


@pytest.fixture
def workspace_b(db: Session) -> Workspace:
    """Create a second workspace for cross-tenant tests."""
    return _make_workspace(db, "Pharma Analytics", "pharma-analytics")


@pytest.fixture
def admin_a(db: Session, workspace_a: Workspace) -> User:
    """Create an admin in workspace A."""
    return _make_user(db, workspace_a, "admin@agro.example.com", UserRole.ADMIN)


@pytest.fixture
def member_a(db: Session, workspace_a: Workspace) -> User:
    """Create a member in workspace A."""
    return _make_user(db, workspace_a, "member@agro.example.com", UserRole.MEMBER)


@pytest.fixture
def viewer_a(db: Session, workspace_a: Workspace) -> User:
    """Create a viewer in workspace A."""
    return _make_user(db, workspace_a, "viewer@agro.example.com", UserRole.VIEWER)


@pytest.fixture
def member_b(db: Session, workspace_b: Workspace) -> User:
    """Create a member in workspace B."""
    return _make_user(db, workspace_b, "member@pharma.example.com", UserRole.MEMBER)


@pytest.fixture
def admin_b(db: Session, workspace_b: Workspace) -> User:
    """Create an admin in workspace B."""
    return _make_user(db, workspace_b, "admin@pharma.example.com", UserRole.ADMIN)


@pytest.fixture
def admin_caller(admin_a: User) -> CallerContext:
    """Caller context for the workspace A admin."""
    return CallerContext.from_user(admin_a)


@pytest.fixture
def member_caller(member_a: User) -> CallerContext:
    """Caller context for the workspace A member."""
    return CallerContext.from_user(member_a)


@pytest.fixture
def viewer_caller(viewer_a: User) -> CallerContext:
    """Caller context for the workspace A viewer."""
    return CallerContext.from_user(viewer_a)


@pytest.fixture
def member_b_caller(member_b: User) -> CallerContext:
    """Caller context for the workspace B member."""
    return CallerContext.from_user(member_b)


@pytest.fixture
def client_org(db: Session, workspace_a: Workspace) -> Organization:
    """Create a client organization in workspace A."""
    return _make_org(db, workspace_a, "Green Farms", OrganizationType.CLIENT)


@pytest.fixture
def lab_org(db: Session, workspace_a: Workspace) -> Organization:
    """Create the executing laboratory in workspace A."""
    return _make_org(db, workspace_a, "Agro Lab Bench", OrganizationType.LABORATORY, True)


@pytest.fixture
def partner_org(db: Session, workspace_b: Workspace) -> Organization:
    """Create a partner analyzer organization in workspace B."""
    return _make_org(db, workspace_b, "Pharma Analyzer", OrganizationType.ANALYZER, True)


@pytest.fixture
def project(
    db: Session,
    workspace_a: Workspace,
    member_a: User,
    client_org: Organization,
    lab_org: Organization,
) -> Project:
    """Create a project in workspace A."""
    project = Project(
        id=str(uuid4()),
        workspace_id=workspace_a.id,
        name="Soil Survey 2026",
        client_org_id=client_org.id,
        executing_org_id=lab_org.id,
        created_by_id=member_a.id,
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


@pytest.fixture
def other_project(db: Session, workspace_b: Workspace, partner_org: Organization) -> Project:
    """Create a project in workspace B."""
    project = Project(
        id=str(uuid4()),
        workspace_id=workspace_b.id,
        name="Compound Screening",
        external_client_name="Acme Pharma",
        executing_org_id=partner_org.id,
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


def _make_sample(db: Session, project: Project, name: str) -> Sample:
    sample = Sample(
        id=str(uuid4()),
        workspace_id=project.workspace_id,
        project_id=project.id,
        name=name,
        sample_type="soil",
    )
    db.add(sample)
    db.commit()
    db.refresh(sample)
    return sample


@pytest.fixture
def sample(db: Session, project: Project) -> Sample:
    """Create a sample in the workspace A project."""
    return _make_sample(db, project, "S-001")


@pytest.fixture
def second_sample(db: Session, project: Project) -> Sample:
    """Create another sample in the workspace A project."""
    return _make_sample(db, project, "S-002")


@pytest.fixture
def other_sample(db: Session, other_project: Project) -> Sample:
    """Create a sample in the workspace B project."""
    return _make_sample(db, other_project, "B-001")


@pytest.fixture
def analysis_type(db: Session) -> AnalysisType:
    """Create an active analysis type."""
    analysis_type = AnalysisType(
        id=str(uuid4()), name="Heavy metals", category="chemistry", is_active=True
    )
    db.add(analysis_type)
    db.commit()
    db.refresh(analysis_type)
    return analysis_type


@pytest.fixture
def login_as(client: TestClient) -> Generator[Callable[[User], TestClient], None, None]:
    """Return a function that authenticates the test client as a given user."""
    from lablineage.dependencies import get_current_user
    from lablineage.main import app

    def _login(user: User) -> TestClient:
        app.dependency_overrides[get_current_user] = lambda: user
        return client

    yield _login
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture
def authenticated_client(login_as, member_a: User) -> TestClient:
    """Create a client authenticated as the workspace A member."""
    return login_as(member_a)


@pytest.fixture
def admin_client(login_as, admin_a: User) -> TestClient:
    """Create a client authenticated as the workspace A admin."""
    return login_as(admin_a)

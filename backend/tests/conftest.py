import os
import tempfile

# Settings are read at import time, so the test environment must be in place first
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "whsec_razorpay_test"
os.environ["CASHFREE_WEBHOOK_SECRET"] = "whsec_cashfree_test"
os.environ["CERTIFICATES_DIR"] = tempfile.mkdtemp(prefix="certificates-")
for name in ("GOOGLE_APPLICATION_CREDENTIALS", "RATE_LIMIT_REDIS_URL", "EMAIL_HOST", "RAZORPAY_KEY_SECRET"):
    os.environ.pop(name, None)

from typing import Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import backend.models  # noqa: F401 - registers every table on Base.metadata
from backend.core.config import settings
from backend.core.database import Base, get_db
from backend.core.rate_limit import InMemoryCounterStore, set_counter_store
from backend.core.security import create_access_token
from backend.crud import course_crud
from backend.main import app
from backend.models.enums import UserRole
from backend.models.user_model import User
from backend.schemas.course_schema import CourseCreate


@pytest.fixture(scope="function")
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """One session shared by the test body and every request it makes."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def mock_send_email(mocker):
    return mocker.patch("backend.services.email_service.send_email", return_value=True)


@pytest.fixture(autouse=True)
def certificates_dir(tmp_path, monkeypatch):
    path = tmp_path / "certificates"
    monkeypatch.setattr(settings, "CERTIFICATES_DIR", str(path))
    return path


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    set_counter_store(InMemoryCounterStore())
    # Startup hooks are not run: tables come from db_engine and Firebase stays unconfigured
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()
    set_counter_store(None)


# --- Users ---
@pytest.fixture
def make_user(db_session: Session):
    counter = {"n": 0}

    def _make_user(role: UserRole = UserRole.STUDENT, name: str = None, tenant_id: str = None, is_active: bool = True) -> User:
        counter["n"] += 1
        user = User(
            email=f"{role.value}{counter['n']}@example.com",
            name=name or f"{role.value.title()} {counter['n']}",
            role=role,
            tenant_id=tenant_id,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def student(make_user) -> User:
    return make_user(UserRole.STUDENT, name="Asha Student")


@pytest.fixture
def instructor(make_user) -> User:
    return make_user(UserRole.INSTRUCTOR, name="Ravi Instructor")


@pytest.fixture
def admin(make_user) -> User:
    return make_user(UserRole.ADMIN, name="Platform Admin")


@pytest.fixture
def get_auth_headers_for():
    def _get_auth_headers_for(user: User) -> dict:
        token = create_access_token(subject=user.id, email=user.email, role=user.role)
        return {"Authorization": f"Bearer {token}"}

    return _get_auth_headers_for


# --- Courses ---
@pytest.fixture
def make_course(db_session: Session):
    def _make_course(instructor: User, title: str = "Python for Data Analysis", price: str = "0",
                     published: bool = True, discount_price: str = None):
        course = course_crud.create_course(
            db_session,
            CourseCreate(
                title=title,
                price=Decimal(price),
                discount_price=Decimal(discount_price) if discount_price is not None else None,
                level="beginner",
            ),
            instructor_id=instructor.id,
        )
        if published:
            course = course_crud.set_course_published(db_session, course, True)
        return course

    return _make_course


@pytest.fixture
def completed_enrollment(db_session: Session, student, instructor, make_course):
    """A published course by `instructor` that `student` has finished."""
    course = make_course(instructor, title="Machine Learning Foundations")
    enrollment = course_crud.create_enrollment(db_session, student.id, course.id)
    course_crud.update_enrollment_progress(db_session, enrollment, 100)
    return enrollment

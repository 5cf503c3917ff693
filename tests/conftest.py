import os
import tempfile
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Keep the application's default database out of the working tree
os.environ.setdefault("DB_DIR", tempfile.mkdtemp(prefix="lms-api-"))

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

import lms_api.models.db  # noqa: E402,F401
from lms_api.app import app  # noqa: E402
from lms_api.database import Base, get_db  # noqa: E402
from lms_api.models.db.attempt import Attempt, AttemptStatus  # noqa: E402
from lms_api.models.db.question import Question, QuestionOption, QuestionType  # noqa: E402
from lms_api.models.db.test import Test, TestQuestion  # noqa: E402
from lms_api.models.db.user import User, UserRole  # noqa: E402
from lms_api.services.auth_service import create_access_token  # noqa: E402
from lms_api.utils.time_utils import get_clock  # noqa: E402

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = START) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def session_factory(tmp_path: Path) -> Iterator[sessionmaker]:
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def make_user(db: Session):
    counter = {"value": 0}

    def _make(role: UserRole = UserRole.USER, is_active: bool = True) -> User:
        counter["value"] += 1
        name = f"{role.value}{counter['value']}"
        user = User(username=name, email=f"{name}@example.com", role=role.value, is_active=is_active)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def learner(make_user) -> User:
    return make_user()


@pytest.fixture
def other_learner(make_user) -> User:
    return make_user()


@pytest.fixture
def instructor(make_user) -> User:
    return make_user()


@pytest.fixture
def admin(make_user) -> User:
    return make_user(UserRole.ADMIN)


@pytest.fixture
def make_question(db: Session, instructor: User):
    def _make(
        question_type: QuestionType = QuestionType.SINGLE_CHOICE,
        points: int = 10,
        option_count: int = 3,
        correct_index: int = 0,
    ) -> Question:
        question = Question(
            title=f"{question_type.value.title()} question",
            question_text="What is the answer?",
            question_type=question_type.value,
            points=points,
            created_by=instructor.id,
        )
        if question_type == QuestionType.SINGLE_CHOICE:
            for index in range(option_count):
                question.options.append(
                    QuestionOption(
                        option_text=f"Option {index + 1}",
                        is_correct=index == correct_index,
                        sort_order=index + 1,
                    )
                )
        db.add(question)
        db.commit()
        db.refresh(question)
        return question

    return _make


@pytest.fixture
def make_test(db: Session, instructor: User):
    def _make(questions: list[Question] = (), creator: User | None = None, **settings) -> Test:
        values = {"title": "Unit quiz", "course_id": 1, "is_published": True}
        values.update(settings)
        test = Test(created_by=(creator or instructor).id, **values)
        for index, question in enumerate(questions, start=1):
            test.test_questions.append(TestQuestion(question_id=question.id, sort_order=index))
        db.add(test)
        db.commit()
        db.refresh(test)
        return test

    return _make


@pytest.fixture
def make_attempt(db: Session):
    """Insert an attempt row directly, bypassing the lifecycle rules."""

    def _make(user: User, test: Test, status: AttemptStatus, **values) -> Attempt:
        attempt = Attempt(
            user_id=user.id,
            test_id=test.id,
            status=status.value,
            started_at=values.pop("started_at", START),
            shuffle_seed="fixed-seed",
            **values,
        )
        db.add(attempt)
        db.commit()
        db.refresh(attempt)
        return attempt

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user: User, locale: str | None = None) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {create_access_token(user.id)}"}
        if locale:
            headers["X-Locale"] = locale
        return headers

    return _headers


@pytest.fixture
def client(session_factory: sessionmaker, clock: FrozenClock) -> Iterator[TestClient]:
    def _get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_clock] = lambda: clock
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

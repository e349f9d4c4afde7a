from uuid import uuid4

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import examhub.models.domain  # noqa: F401
from examhub.core.constants import Role
from examhub.core.policies import Caller
from examhub.db.base import Base
from examhub.models.domain import Profile, User
from examhub.services.exam_service import ExamService

MC_QUESTION = {
    "question_text": "What is 2 + 2?",
    "question_type": "multiple_choice",
    "points": 2,
    "options": ["3", "4", "5"],
    "correct_answer": 1,
}
OPEN_QUESTION = {
    "question_text": "Explain your reasoning.",
    "question_type": "open_answer",
    "points": 3,
    "correct_answer": "Because",
}
TF_QUESTION = {
    "question_text": "The sky is blue.",
    "question_type": "true_false",
    "points": 1,
    "correct_answer": True,
}


def _enable_foreign_keys(dbapi_connection, _record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(engine):
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def make_caller(db):
    async def _make(role: Role = Role.STUDENT, full_name: str = "Test User") -> Caller:
        user = User(email=f"{uuid4().hex}@example.com", password_hash="not-a-real-hash")
        db.add(user)
        await db.flush()
        db.add(Profile(user_id=user.id, full_name=full_name, role=role))
        await db.commit()
        return Caller(identity_id=user.id, role=role, display_name=full_name)

    return _make


@pytest.fixture
async def teacher(make_caller):
    return await make_caller(Role.TEACHER, "Teacher")


@pytest.fixture
async def student(make_caller):
    return await make_caller(Role.STUDENT, "Student")


@pytest.fixture
def make_exam(db):
    async def _make(owner: Caller, questions=None, **fields) -> dict:
        payload = {
            "title": "Arithmetic",
            "description": "Warm-up",
            "time_limit": None,
            "max_attempts": 1,
            "show_results_immediately": False,
            "status": "active",
            "questions": questions if questions is not None else [MC_QUESTION, OPEN_QUESTION],
        }
        payload.update(fields)
        return await ExamService(db).create_exam(owner, payload)

    return _make

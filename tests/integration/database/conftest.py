# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest fixtures for database integration tests.

Tests run the services against a real database: a throwaway SQLite file by
default, or the database named by TEST_DATABASE_URL (e.g. a PostgreSQL test
database) when it is set. Tables are created and dropped per test.
"""

import os
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import date
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from src.core.config import Settings
from src.infrastructure.database.models import (
    Base,
    Course,
    Enrollment,
    Student,
    Teacher,
    Term,
)
from src.infrastructure.database.models.base import new_id


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    """Get the database URL for tests."""
    return os.environ.get("TEST_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'academic.db'}")


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINT works on SQLite."""

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest_asyncio.fixture
async def db_engine(db_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine with a fresh schema."""
    engine = create_async_engine(db_url, echo=False)
    if db_url.startswith("sqlite"):
        _enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create async session configured like the application's sessionmaker."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)  # type: ignore[call-arg]


@dataclass
class Campus:
    """Seeded rows shared by the integration tests."""

    term: Term
    teacher: Teacher
    other_teacher: Teacher
    ana: Student
    luis: Student
    algebra: Course
    calculus: Course


@pytest_asyncio.fixture
async def campus(db_session: AsyncSession) -> Campus:
    """Seed an active term, two teachers, two students and two courses."""
    term = Term(
        id=new_id(),
        name="2025-I",
        year=2025,
        half="I",
        start_date=date(2025, 3, 10),
        end_date=date(2025, 7, 18),
        is_active=True,
    )
    teacher = Teacher(id=new_id(), first_name="Rosa", last_name="Quispe")
    other_teacher = Teacher(id=new_id(), first_name="Jorge", last_name="Mamani")
    ana = Student(id=new_id(), code="2025001", first_name="Ana", last_name="Torres")
    luis = Student(id=new_id(), code="2025002", first_name="Luis", last_name="Vargas")
    algebra = Course(
        id=new_id(), code="MAT101", name="Algebra", credits=4, teacher_id=teacher.id
    )
    calculus = Course(
        id=new_id(), code="MAT102", name="Calculus", credits=5, teacher_id=teacher.id
    )

    db_session.add_all([term, teacher, other_teacher, ana, luis])
    await db_session.flush()
    db_session.add_all([algebra, calculus])
    await db_session.commit()

    return Campus(
        term=term,
        teacher=teacher,
        other_teacher=other_teacher,
        ana=ana,
        luis=luis,
        algebra=algebra,
        calculus=calculus,
    )


@pytest.fixture
def enroll_directly(db_session: AsyncSession):
    """Insert enrollment rows without going through the enrollment rules."""

    async def insert(
        student: Student,
        course: Course,
        term: Term,
        status: str = "enrolled",
    ) -> Enrollment:
        enrollment = Enrollment(
            id=new_id(),
            student_id=student.id,
            course_id=course.id,
            term_id=term.id,
            status=status,
        )
        db_session.add(enrollment)
        await db_session.commit()
        return enrollment

    return insert

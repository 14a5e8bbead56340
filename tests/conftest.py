"""Shared fixtures: schema registry and an aiosqlite database of sample rows."""

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from blog_models import ALL_MODELS, Article, Author, Base, Comment, Enrollment, Tag
from panel_adapter.schema.registry import build_registry


@pytest.fixture
def registry():
    """Schema registry of every sample model, without customization."""
    return build_registry(ALL_MODELS)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'panel.db'}"


@pytest.fixture
async def session_factory(database_url):
    """Session factory over a fresh aiosqlite file database with sample rows.

    Rows:
        Authors: 1 Ann (ann@example.com), 2 Bob
        Articles: 1 "Hello world" (Ann, published, tags python)
                  2 "Hello again" (Bob, draft, tags python+sql)
                  3 "Async queries" (Ann, published)
        Enrollments: (1, MATH, grade 12), (2, MATH, no grade)
    """
    engine = create_async_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        ann = Author(id=1, name="Ann", email="ann@example.com")
        bob = Author(id=2, name="Bob")
        python = Tag(id=1, label="python")
        sql = Tag(id=2, label="sql")
        session.add_all(
            [
                ann,
                bob,
                Article(
                    id=1,
                    title="Hello world",
                    status="published",
                    published=True,
                    rating=4.5,
                    author=ann,
                    tags=[python],
                ),
                Article(id=2, title="Hello again", author=bob, tags=[python, sql]),
                Article(
                    id=3,
                    title="Async queries",
                    status="published",
                    published=True,
                    rating=3.0,
                    author=ann,
                ),
                Comment(id=1, body="Nice", article_id=1),
                Enrollment(student_id=1, course_code="MATH", grade=12),
                Enrollment(student_id=2, course_code="MATH"),
            ]
        )
        await session.commit()

    yield factory

    await engine.dispose()

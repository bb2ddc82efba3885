"""
SchoolHub - Test Configuration and Fixtures
"""
import os
import itertools
import tempfile
from datetime import timedelta
from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool
from faker import Faker

# Set testing environment
os.environ['TESTING'] = 'true'
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test.db'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['LOG_FILE'] = ''
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['SCHEDULER_ENABLED'] = 'false'
os.environ['UPLOAD_PATH'] = tempfile.mkdtemp(prefix='schoolhub-uploads-')

from app.main import app
from app.core.database import Base, get_db
from app.core.security import get_password_hash, create_user_token
from app.models.base import utcnow
from app.models.school import School
from app.models.user import User, UserRole, PermissionName
from app.models.permission import PermissionGrant
from app.models.section import Section
from app.models.course import Course

fake = Faker()

TEST_PASSWORD = 'testpassword123'

# Test database setup
TEST_DATABASE_URL = 'sqlite+aiosqlite:///./test.db'
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False
)

_user_numbers = itertools.count(1000)


def auth_headers_for(user: User) -> dict:
    """Bearer header for any user"""
    return {'Authorization': f'Bearer {create_user_token(user)}'}


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Test client; every request gets its own session, like in production"""
    async def override_get_db():
        async with TestSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def school(db_session: AsyncSession) -> School:
    school = School(name=f"{fake.last_name()} High {fake.random_int(1, 9999)}", address=fake.address())
    db_session.add(school)
    await db_session.commit()
    return school


@pytest.fixture
def make_user(db_session: AsyncSession, school: School):
    """Factory: await make_user(UserRole.TEACHER, permissions=[...])"""
    async def _make(role: UserRole, school_id: str = None, permissions=(), **fields) -> User:
        school_id = school_id or school.id
        user = User(
            user_number=fields.pop('user_number', next(_user_numbers)),
            name=fields.pop('name', fake.name()),
            email=fields.pop('email', f"user{fake.unique.random_int(1, 10**9)}@schoolhub.io"),
            hashed_password=get_password_hash(fields.pop('password', TEST_PASSWORD)),
            role=role,
            school_id=school_id,
            is_active=fields.pop('is_active', True),
            permission_grants=[
                PermissionGrant(school_id=school_id, permission=p, is_active=True) for p in permissions
            ],
            **fields,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
async def admin_user(make_user) -> User:
    return await make_user(UserRole.ADMIN)


@pytest.fixture
async def teacher_user(make_user) -> User:
    return await make_user(UserRole.TEACHER)


@pytest.fixture
async def faculty_user(make_user) -> User:
    """Faculty member holding student_affairs"""
    return await make_user(UserRole.FACULTY, permissions=[PermissionName.STUDENT_AFFAIRS])


@pytest.fixture
async def student_user(make_user) -> User:
    return await make_user(UserRole.STUDENT, fee_amount=500.0)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return auth_headers_for(admin_user)


@pytest.fixture
def teacher_headers(teacher_user: User) -> dict:
    return auth_headers_for(teacher_user)


@pytest.fixture
def faculty_headers(faculty_user: User) -> dict:
    return auth_headers_for(faculty_user)


@pytest.fixture
def student_headers(student_user: User) -> dict:
    return auth_headers_for(student_user)


@pytest.fixture
async def section(db_session: AsyncSession, school: School, teacher_user: User, student_user: User) -> Section:
    """Running section led by teacher_user with student_user on the roster"""
    now = utcnow()
    section = Section(
        name='Grade 10 A',
        section_code=f"G10A-{fake.random_int(1, 99999)}",
        school_id=school.id,
        teacher=teacher_user,
        capacity=30,
        session_start_date=now - timedelta(days=1),
        session_end_date=now + timedelta(days=90),
        is_active=True,
        students=[student_user],
    )
    db_session.add(section)
    await db_session.commit()
    return section


@pytest.fixture
async def course(db_session: AsyncSession, school: School, section: Section, teacher_user: User) -> Course:
    """Course of the section, taught by teacher_user"""
    course = Course(
        name='Mathematics',
        code=f"MATH-{fake.random_int(1, 99999)}",
        section=section,
        school_id=school.id,
        teachers=[teacher_user],
        students=[],
        is_active=True,
    )
    db_session.add(course)
    await db_session.commit()
    return course


@pytest.fixture
def headers_for():
    """Bearer headers for users built with make_user"""
    return auth_headers_for

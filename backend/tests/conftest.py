"""
LetterDesk - Test Configuration and Fixtures
"""
import os
import tempfile
from datetime import datetime
from typing import AsyncGenerator
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from faker import Faker

# Set testing environment
TEST_DB_PATH = os.path.join(tempfile.gettempdir(), f"letterdesk_test_{os.getpid()}.db")
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = f'sqlite+aiosqlite:///{TEST_DB_PATH}'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['LETTER_NUMBER_TIMEZONE'] = ''
os.environ['LOG_LEVEL'] = 'WARNING'

from letterdesk.main import app
from letterdesk.core.database import Base, get_db
from letterdesk.core.security import get_password_hash, create_access_token, token_claims
from letterdesk.config.letter_types import get_letter_type_registry
from letterdesk.models.user import User, UserRole
from letterdesk.models.letter import Letter, LetterStatus
from letterdesk.services.letter_numbering import LetterNumberingService
from letterdesk.services.letter_service import LetterService, get_letter_service

fake = Faker()

# Every numbering test runs "on" this date unless it says otherwise
FIXED_NOW = datetime(2025, 10, 15, 9, 30)

# Test database setup (NullPool: no connection outlives the test's event loop)
TEST_DATABASE_URL = f'sqlite+aiosqlite:///{TEST_DB_PATH}'
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


def fixed_clock() -> datetime:
    return FIXED_NOW


def make_auth_headers(user: User) -> dict:
    """Bearer headers for a user"""
    token = create_access_token(token_claims(user))
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def session_factory(db_session: AsyncSession) -> async_sessionmaker:
    """Factory for extra sessions against the same test database"""
    return TestSessionLocal


@pytest.fixture
def registry():
    return get_letter_type_registry()


@pytest.fixture
def numbering() -> LetterNumberingService:
    """Numbering service pinned to FIXED_NOW"""
    return LetterNumberingService(clock=fixed_clock, max_retries=5)


@pytest.fixture
def letter_service(registry, numbering) -> LetterService:
    return LetterService(registry, numbering)


@pytest.fixture
async def client(db_session: AsyncSession, letter_service: LetterService) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database and service overrides"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_letter_service] = lambda: letter_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(db_session: AsyncSession, role: UserRole, password: str) -> User:
    user = User(
        email=fake.unique.email(),
        hashed_password=get_password_hash(password),
        full_name=fake.name(),
        role=role,
        nim=fake.unique.numerify('##########') if role == UserRole.STUDENT else None,
        nip=None if role == UserRole.STUDENT else fake.unique.numerify('##################'),
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def student_user(db_session: AsyncSession) -> User:
    """Create a student test user"""
    return await _create_user(db_session, UserRole.STUDENT, 'studentpassword123')


@pytest.fixture
async def other_student(db_session: AsyncSession) -> User:
    """A second student, for ownership checks"""
    return await _create_user(db_session, UserRole.STUDENT, 'studentpassword123')


@pytest.fixture
async def lecturer_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, UserRole.LECTURER, 'lecturerpassword123')


@pytest.fixture
async def supervisor_user(db_session: AsyncSession) -> User:
    """Create a supervisor test user"""
    return await _create_user(db_session, UserRole.SUPERVISOR, 'supervisorpassword123')


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """Create an admin test user"""
    return await _create_user(db_session, UserRole.ADMIN, 'adminpassword123')


@pytest.fixture
def student_headers(student_user: User) -> dict:
    return make_auth_headers(student_user)


@pytest.fixture
def other_student_headers(other_student: User) -> dict:
    return make_auth_headers(other_student)


@pytest.fixture
def lecturer_headers(lecturer_user: User) -> dict:
    return make_auth_headers(lecturer_user)


@pytest.fixture
def supervisor_headers(supervisor_user: User) -> dict:
    return make_auth_headers(supervisor_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return make_auth_headers(admin_user)


@pytest.fixture
def make_letter(db_session: AsyncSession, student_user: User):
    """
    Factory inserting a letter row directly, bypassing the service.

    Returns the new letter's id so tests never touch instances that a later
    rollback may have expired.
    """
    default_requester = student_user.id

    async def _make(
        letter_type: str = 'SKA',
        status: LetterStatus = LetterStatus.PENDING,
        letter_number: str = None,
        requester_id: str = None,
        **fields
    ) -> str:
        if status == LetterStatus.APPROVED:
            fields.setdefault('approved_at', datetime.utcnow())
        letter = Letter(
            letter_type=letter_type,
            status=status,
            letter_number=letter_number,
            requester_id=requester_id or default_requester,
            supplementary_data=fields.pop('supplementary_data', {}),
            **fields
        )
        db_session.add(letter)
        await db_session.commit()
        return letter.id

    return _make

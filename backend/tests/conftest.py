"""
Data Confirmation - Test Configuration and Fixtures
"""
import os
import tempfile
from pathlib import Path
from typing import AsyncGenerator
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from faker import Faker

# Set testing environment before the app reads its settings
_TMP_DIR = Path(tempfile.mkdtemp(prefix="dataconfirm-tests-"))
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{_TMP_DIR / 'test.db'}"

os.environ['TESTING'] = 'true'
os.environ['ENVIRONMENT'] = 'test'
os.environ['DEBUG'] = 'false'
os.environ['DATABASE_URL'] = TEST_DATABASE_URL
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['UPLOAD_PATH'] = str(_TMP_DIR / 'uploads')
os.environ['EXPORT_PATH'] = str(_TMP_DIR / 'exports')
os.environ['LOG_FILE'] = ''
os.environ['SMTP_USER'] = ''
os.environ['SMTP_PASSWORD'] = ''
os.environ['NOTIFICATION_RECIPIENTS_STR'] = ''
os.environ['NOTIFICATION_TIMEOUT_SECONDS'] = '2'
os.environ['NOTIFICATION_RETRY_BASE_DELAY'] = '0'

from dataconfirm.main import app
from dataconfirm.core.database import Base, get_db, create_engine_for_url
from dataconfirm.models.user import User, UserRole
from dataconfirm.core.security import get_password_hash, create_access_token, build_token_claims

fake = Faker()

test_engine = create_engine_for_url(TEST_DATABASE_URL)
TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False
)

AGENCY_NAME = "Jabatan Perkhidmatan Awam"
SPMB = "Sistem Pengurusan Meja Bantuan (SPMB)"


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
    """Create test client with database override"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


async def _make_user(db_session: AsyncSession, role: UserRole, agency: str, password: str) -> User:
    user = User(
        email=f"{fake.unique.user_name()}@jpa.gov.my",
        hashed_password=get_password_hash(password),
        full_name=fake.name(),
        role=role,
        agency=agency,
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def agency_user(db_session: AsyncSession) -> User:
    """Agency officer of the catalog's first agency"""
    return await _make_user(db_session, UserRole.AGENCY, AGENCY_NAME, 'agencypassword123')


@pytest.fixture
async def other_agency_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, UserRole.AGENCY, "Kumpulan Wang Simpanan Pekerja", 'otherpassword123')


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """Create an admin test user"""
    return await _make_user(db_session, UserRole.ADMIN, None, 'adminpassword123')


def _headers(user: User) -> dict:
    token = create_access_token(build_token_claims(user))
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def auth_headers(agency_user: User) -> dict:
    """Authentication headers for the agency user"""
    return _headers(agency_user)


@pytest.fixture
def other_auth_headers(other_agency_user: User) -> dict:
    return _headers(other_agency_user)


@pytest.fixture
def admin_auth_headers(admin_user: User) -> dict:
    """Authentication headers for the admin user"""
    return _headers(admin_user)


@pytest.fixture
def spmb_grid() -> list:
    """Grid for the SPMB complaint module: one grouped row"""
    return [
        {
            "dataElement": "Nama",
            "groupName": "Pegawai",
            "nama": "nama_pegawai",
            "jenis": "VARCHAR",
            "saiz": "100",
            "nullable": "No",
            "rules": "",
        }
    ]

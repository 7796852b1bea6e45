"""
Test Configuration — Fixtures for async DB, test client, and workbook builders.

Each test gets its own in-memory SQLite database (StaticPool keeps the one
connection alive), so services are free to commit and roll back.
"""

import io
import os

# Settings are cached at first import; point them at SQLite and keep
# uploaded files off the working tree before anything imports core.config.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("STORE_SOURCE_FILES", "false")

import pytest
from httpx import ASGITransport, AsyncClient
from openpyxl import Workbook
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401
from api.deps import get_db
from api.main import app
from core.config import Settings
from db.session import Base

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

INBOUND_SHEET = "PIPO & BIBO Inward"
OUTBOUND_SHEET = "Outward MIS"

INBOUND_HEADERS = [
    "Received Date",
    "STN No./Invoice No.",
    "Invoice Value",
    "Party Name",
    "Invoice Qty",
    "No. of Boxes",
    "Type",
    "Article No",
]

OUTBOUND_HEADERS = [
    "Invoice No.",
    "Invoice Date",
    "Dispatched Date",
    "Party Name",
    "Invoice Qty",
    "No. of Box",
    "Invoice Gross Total Value",
]


def build_workbook(sheets: dict[str, list[list]]) -> bytes:
    """Serialize {sheet name: rows} to .xlsx bytes."""
    wb = Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(name)
        for row in rows:
            ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.fixture
async def test_engine():
    """Fresh in-memory database with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_db(test_engine):
    """Session bound to the per-test database."""
    session_factory = async_sessionmaker(test_engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(test_db):
    """Create an async test client with dependency overrides."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def settings(tmp_path):
    """Settings with source files written under tmp_path."""
    return Settings(upload_dir=str(tmp_path / "uploads"), store_source_files=True)


@pytest.fixture
def inbound_workbook():
    """Build a workbook holding one inbound sheet (header on row 1)."""

    def _build(rows: list[list], headers: list[str] | None = None, sheet: str = INBOUND_SHEET) -> bytes:
        return build_workbook({sheet: [headers or INBOUND_HEADERS, *rows]})

    return _build


@pytest.fixture
def outbound_workbook():
    """Build a workbook holding one outbound sheet (totals row 1, header row 2)."""

    def _build(rows: list[list], headers: list[str] | None = None, sheet: str = OUTBOUND_SHEET) -> bytes:
        totals = ["Totals", None, None, None, None, None, None]
        return build_workbook({sheet: [totals, headers or OUTBOUND_HEADERS, *rows]})

    return _build

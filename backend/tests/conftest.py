"""Shared fixtures: a throwaway SQLite database, marketplace users and invoices."""

import os

os.environ.setdefault("APP_ENV", "testing")

from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import invoicechain.db.models  # noqa: F401
from invoicechain.core.security import Actor
from invoicechain.db.base import Base
from invoicechain.db.models.invoice import InvoiceStatus
from invoicechain.db.models.user import User, UserRole
from invoicechain.services.financing import FinancingService
from invoicechain.services.lifecycle import InvoiceDraft, InvoiceService


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite so several sessions can share committed data."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


USERS = {
    "supplier": ("supplier@example.com", UserRole.SUPPLIER),
    "other_supplier": ("other-supplier@example.com", UserRole.SUPPLIER),
    "buyer": ("buyer@example.com", UserRole.BUYER),
    "other_buyer": ("other-buyer@example.com", UserRole.BUYER),
    "financier_a": ("fin-a@example.com", UserRole.FINANCIER),
    "financier_b": ("fin-b@example.com", UserRole.FINANCIER),
    "financier_c": ("fin-c@example.com", UserRole.FINANCIER),
    "admin": ("admin@example.com", UserRole.ADMIN),
}


@pytest_asyncio.fixture
async def parties(db) -> SimpleNamespace:
    """One committed user per marketplace role, exposed as Actors."""
    actors = {}
    for key, (email, role) in USERS.items():
        user = User(email=email, name=key.replace("_", " ").title(), role=role.value)
        db.add(user)
        await db.flush()
        actors[key] = Actor(id=user.id, role=role)
    await db.commit()
    return SimpleNamespace(**actors)


def draft_for(
    parties: SimpleNamespace,
    number: str = "INV-0001",
    amount: str = "1000",
    due_in_days: int = 45,
    buyer: Actor | None = None,
    description: str | None = "Widgets",
) -> InvoiceDraft:
    today = date.today()
    return InvoiceDraft(
        invoice_number=number,
        amount=Decimal(amount),
        currency="USD",
        issue_date=today,
        due_date=today + timedelta(days=due_in_days),
        buyer_id=(buyer or parties.buyer).id,
        description=description,
    )


@pytest.fixture
def make_invoice(db, parties):
    """Create an invoice and walk it forward to the requested status."""

    async def _make(
        status: InvoiceStatus = InvoiceStatus.DRAFT,
        number: str = "INV-0001",
        amount: str = "1000",
        due_in_days: int = 45,
    ):
        service = InvoiceService(db)
        invoice = await service.create_invoice(
            parties.supplier,
            draft_for(parties, number=number, amount=amount, due_in_days=due_in_days),
        )
        path = {
            InvoiceStatus.PENDING_APPROVAL: ["submit"],
            InvoiceStatus.REJECTED: ["submit", "reject"],
            InvoiceStatus.VERIFIED: ["submit", "approve"],
            InvoiceStatus.TOKENIZED: ["submit", "approve", "tokenize"],
            InvoiceStatus.FULLY_FINANCED: ["submit", "approve", "tokenize", "finance"],
        }.get(status, [])

        for step in path:
            if step == "submit":
                invoice = await service.submit_invoice(parties.supplier, invoice.id)
            elif step == "approve":
                invoice = await service.approve_invoice(parties.buyer, invoice.id)
            elif step == "reject":
                invoice = await service.reject_invoice(parties.buyer, invoice.id, "Wrong PO")
            elif step == "tokenize":
                invoice = await service.tokenize_invoice(parties.supplier, invoice.id)
            elif step == "finance":
                await FinancingService(db).finance_invoice(
                    parties.financier_a, invoice.id, Decimal(amount), Decimal("8.5")
                )
                invoice = await service.load_invoice(invoice.id)

        await db.commit()
        return invoice

    return _make


@pytest.fixture
def executed(db, monkeypatch) -> list:
    """Statements passed to ``db.execute``, in order."""
    statements = []
    execute = db.execute

    async def recording(statement, *args, **kwargs):
        statements.append(statement)
        return await execute(statement, *args, **kwargs)

    monkeypatch.setattr(db, "execute", recording)
    return statements


def as_postgres_sql(statement) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))

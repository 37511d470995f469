"""Seed demo users and a tokenized sample invoice for InvoiceChain."""

import asyncio
import sys
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

from sqlalchemy import select

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from invoicechain.db.base import engine, async_session, Base
from invoicechain.db.models.invoice import Invoice
from invoicechain.db.models.user import User, UserRole
from invoicechain.core.security import Actor
from invoicechain.services.lifecycle import InvoiceDraft, InvoiceService


DEMO_USERS = [
    {
        "email": "asha@meridian-textiles.example",
        "name": "Asha Verma",
        "role": UserRole.SUPPLIER.value,
        "company_name": "Meridian Textiles Ltd",
        "company_registration_no": "MT-2019-0042",
        "country": "IN",
    },
    {
        "email": "procurement@northwind.example",
        "name": "Daniel Okafor",
        "role": UserRole.BUYER.value,
        "company_name": "Northwind Retail plc",
        "company_registration_no": "NW-0773",
        "country": "GB",
    },
    {
        "email": "desk@harbour-capital.example",
        "name": "Mei Tanaka",
        "role": UserRole.FINANCIER.value,
        "company_name": "Harbour Capital Partners",
        "country": "SG",
    },
    {
        "email": "desk@lumen-credit.example",
        "name": "Rafael Costa",
        "role": UserRole.FINANCIER.value,
        "company_name": "Lumen Credit Fund",
        "country": "BR",
    },
    {
        "email": "admin@invoicechain.example",
        "name": "Platform Admin",
        "role": UserRole.ADMIN.value,
        "company_name": None,
        "country": None,
    },
]

SAMPLE_INVOICE_NUMBER = "INV-2026-0001"


async def seed():
    """Create tables and seed demo data."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as db:
        try:
            users = {}
            for user_data in DEMO_USERS:
                result = await db.execute(
                    select(User).where(User.email == user_data["email"])
                )
                existing = result.scalar_one_or_none()
                if existing:
                    print(f"  User {user_data['name']} already exists, skipping")
                    users[user_data["email"]] = existing
                else:
                    user = User(**user_data)
                    db.add(user)
                    users[user_data["email"]] = user
                    print(f"  Created user: {user_data['name']}")

            await db.flush()

            existing_invoice = await db.execute(
                select(Invoice).where(Invoice.invoice_number == SAMPLE_INVOICE_NUMBER)
            )
            if existing_invoice.scalar_one_or_none():
                print("  Sample invoice already exists, skipping")
                await db.commit()
                return

            supplier = users["asha@meridian-textiles.example"]
            buyer = users["procurement@northwind.example"]
            supplier_actor = Actor(id=supplier.id, role=UserRole.SUPPLIER)
            buyer_actor = Actor(id=buyer.id, role=UserRole.BUYER)

            # Walk the sample invoice up to the marketplace
            service = InvoiceService(db)
            invoice = await service.create_invoice(
                supplier_actor,
                InvoiceDraft(
                    invoice_number=SAMPLE_INVOICE_NUMBER,
                    amount=Decimal("48500.00"),
                    currency="USD",
                    issue_date=date.today(),
                    due_date=date.today() + timedelta(days=60),
                    buyer_id=buyer.id,
                    description="Spring collection, 1,200 units cotton knitwear",
                ),
            )
            await service.submit_invoice(supplier_actor, invoice.id)
            await service.approve_invoice(buyer_actor, invoice.id)
            await service.tokenize_invoice(supplier_actor, invoice.id)

            await db.commit()

            print("Demo data seeded successfully!")
            print(f"  Users: {len(DEMO_USERS)}")
            print(f"  Invoices: 1 ({SAMPLE_INVOICE_NUMBER}, TOKENIZED)")
            print()
            print("Login emails:")
            for u in DEMO_USERS:
                print(f"  {u['name']:20s}  {u['email']} ({u['role']})")

        except Exception as e:
            await db.rollback()
            print(f"Error seeding data: {e}")
            raise


if __name__ == "__main__":
    asyncio.run(seed())

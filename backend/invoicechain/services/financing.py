"""Financing ledger.

Records financier commitments against tokenized invoices and derives the
invoice's financed status from the running total.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from invoicechain.core.exceptions import BadRequestError, ConflictError, NotFoundError
from invoicechain.core.logging import log
from invoicechain.core.security import Actor, require_admin, require_financier
from invoicechain.db.models.financing import Financing, FinancingStatus
from invoicechain.db.models.invoice import Invoice, InvoiceStatus
from invoicechain.db.models.payment import Payment, PaymentType
from invoicechain.services.lifecycle import (
    FINANCEABLE_STATUSES,
    InvoiceService,
    apply_transition,
)
from invoicechain.services.money import ensure_cents
from invoicechain.services.pagination import fetch_page

MAX_INTEREST_RATE = Decimal("100")


@dataclass
class FinancingResult:
    financing: Financing
    invoice_status: InvoiceStatus


class FinancingService:
    """Financier positions on invoices."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.invoices = InvoiceService(db)

    async def finance_invoice(
        self,
        actor: Actor,
        invoice_id: uuid.UUID,
        amount: Decimal,
        interest_rate: Decimal,
    ) -> FinancingResult:
        """Commit ``amount`` of the actor's capital against an invoice.

        All checks run against the row-locked invoice before anything is
        written, so a rejected call leaves no financing, no payment and no
        status change behind.
        """
        require_financier(actor)
        ensure_cents(amount, "amount")
        ensure_cents(interest_rate, "interest_rate")
        if amount <= 0:
            raise BadRequestError("Financing amount must be positive")
        if not (0 <= interest_rate <= MAX_INTEREST_RATE):
            raise BadRequestError("Interest rate must be between 0 and 100")

        invoice = await self.invoices.load_invoice(invoice_id, lock=True)

        if InvoiceStatus(invoice.status) not in FINANCEABLE_STATUSES:
            raise BadRequestError(f"Cannot finance invoice in {invoice.status} status")

        result = await self.db.execute(
            select(Financing).where(Financing.invoice_id == invoice.id)
        )
        existing = list(result.scalars().all())

        if any(f.financier_id == actor.id for f in existing):
            raise BadRequestError("You have already financed this invoice")

        financed_so_far = sum((f.amount for f in existing), Decimal("0"))
        total_financed = financed_so_far + amount

        if total_financed > invoice.amount:
            available = invoice.amount - financed_so_far
            raise BadRequestError(
                f"Financing amount exceeds invoice amount. Maximum available: {available}",
                details={"max_available": str(available)},
            )

        new_status = (
            InvoiceStatus.FULLY_FINANCED
            if total_financed == invoice.amount
            else InvoiceStatus.PARTIALLY_FINANCED
        )

        financing = Financing(
            invoice_id=invoice.id,
            financier_id=actor.id,
            position=len(existing) + 1,
            amount=amount,
            interest_rate=interest_rate,
            status=FinancingStatus.ACTIVE.value,
            funded_at=datetime.now(timezone.utc),
        )
        self.db.add(financing)
        try:
            await self.db.flush()
        except IntegrityError:
            # duplicate financier or position taken by a concurrent write
            raise ConflictError("Invoice financing changed concurrently, please retry")

        apply_transition(invoice, new_status, "finance")

        # Capital goes to the supplier as soon as the position is taken
        self.db.add(
            Payment(
                invoice_id=invoice.id,
                financing_id=financing.id,
                payer_id=actor.id,
                amount=amount,
                payment_type=PaymentType.FINANCIER_TO_SUPPLIER.value,
            )
        )
        await self.db.flush()
        await self.db.refresh(financing)

        log.info(
            "Invoice financed",
            invoice_id=str(invoice.id),
            financing_id=str(financing.id),
            amount=str(amount),
            total_financed=str(total_financed),
            status=new_status.value,
        )
        return FinancingResult(financing=financing, invoice_status=new_status)

    async def list_financed_invoices(
        self,
        actor: Actor,
        status: str = "ALL",
        limit: int = 10,
        cursor: str | None = None,
    ) -> tuple[list[Financing], str | None]:
        """The actor's own positions, newest first, with their invoices."""
        require_financier(actor)
        stmt = (
            select(Financing)
            .options(
                selectinload(Financing.invoice).selectinload(Invoice.payments),
            )
            .where(Financing.financier_id == actor.id)
        )
        if status != "ALL":
            stmt = stmt.where(Financing.status == FinancingStatus(status).value)

        return await fetch_page(
            self.db,
            stmt,
            Financing,
            keys=[(Financing.funded_at, True), (Financing.id, True)],
            limit=limit,
            cursor=cursor,
        )

    async def update_financing_status(
        self,
        actor: Actor,
        financing_id: uuid.UUID,
        status: FinancingStatus,
    ) -> Financing:
        """Close a position as REPAID or DEFAULTED. Admin only, forward only."""
        require_admin(actor)
        result = await self.db.execute(
            select(Financing).where(Financing.id == financing_id).with_for_update()
        )
        financing = result.scalar_one_or_none()
        if not financing:
            raise NotFoundError("Financing")

        if financing.status != FinancingStatus.ACTIVE.value or status == FinancingStatus.ACTIVE:
            raise BadRequestError(
                f"Cannot move financing from {financing.status} to {status.value}"
            )

        financing.status = status.value
        financing.settled_at = datetime.now(timezone.utc)
        await self.db.flush()
        await self.db.refresh(financing)

        log.info(
            "Financing settled",
            financing_id=str(financing.id),
            invoice_id=str(financing.invoice_id),
            status=status.value,
        )
        return financing

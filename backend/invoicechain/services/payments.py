"""Payment ledger (buyer settlement)."""

from dataclasses import dataclass
from decimal import Decimal
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from invoicechain.core.exceptions import AuthorizationError, BadRequestError
from invoicechain.core.logging import log
from invoicechain.core.security import Actor, require_buyer
from invoicechain.db.models.financing import Financing
from invoicechain.db.models.invoice import InvoiceStatus
from invoicechain.db.models.payment import BUYER_SETTLEMENT_TYPES, Payment, PaymentType
from invoicechain.services.lifecycle import (
    PAYABLE_STATUSES,
    InvoiceService,
    apply_transition,
)
from invoicechain.services.money import ensure_cents


@dataclass
class PaymentResult:
    payment: Payment
    new_status: InvoiceStatus


class PaymentService:
    """Buyer payments against invoices."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.invoices = InvoiceService(db)

    async def mark_invoice_as_paid(
        self,
        actor: Actor,
        invoice_id: uuid.UUID,
        amount: Decimal,
        transaction_ref: str | None = None,
    ) -> PaymentResult:
        """Record a buyer payment and move the invoice to PARTIALLY_PAID/PAID.

        When the invoice has been financed the payment is routed to the
        financing with the lowest ``position``, i.e. the first one taken.
        Co-funded invoices are not split pro rata.
        """
        require_buyer(actor)
        ensure_cents(amount, "amount")
        if amount <= 0:
            raise BadRequestError("Payment amount must be positive")

        invoice = await self.invoices.load_invoice(invoice_id, lock=True)
        if invoice.buyer_id != actor.id:
            raise AuthorizationError("You do not have permission to mark this invoice as paid")
        if InvoiceStatus(invoice.status) not in PAYABLE_STATUSES:
            raise BadRequestError(f"Cannot pay invoice in {invoice.status} status")

        financings = await self.db.execute(
            select(Financing)
            .where(Financing.invoice_id == invoice.id)
            .order_by(Financing.position)
        )
        first_financing = financings.scalars().first()

        settled = await self.db.execute(
            select(Payment.amount).where(
                Payment.invoice_id == invoice.id,
                Payment.payment_type.in_(BUYER_SETTLEMENT_TYPES),
            )
        )
        paid_so_far = sum(settled.scalars().all(), Decimal("0"))
        total_paid = paid_so_far + amount

        if total_paid > invoice.amount:
            outstanding = invoice.amount - paid_so_far
            raise BadRequestError(
                f"Payment exceeds outstanding balance. Outstanding: {outstanding}",
                details={"outstanding": str(outstanding)},
            )

        if first_financing is not None:
            payment_type = PaymentType.BUYER_TO_FINANCIER
            financing_id = first_financing.id
        else:
            payment_type = PaymentType.BUYER_TO_SUPPLIER
            financing_id = None

        new_status = (
            InvoiceStatus.PAID if total_paid >= invoice.amount else InvoiceStatus.PARTIALLY_PAID
        )

        apply_transition(invoice, new_status, "pay")

        payment = Payment(
            invoice_id=invoice.id,
            financing_id=financing_id,
            payer_id=actor.id,
            amount=amount,
            transaction_ref=transaction_ref,
            payment_type=payment_type.value,
        )
        self.db.add(payment)

        await self.db.flush()
        await self.db.refresh(payment)

        log.info(
            "Invoice payment recorded",
            invoice_id=str(invoice.id),
            payment_id=str(payment.id),
            payment_type=payment_type.value,
            amount=str(amount),
            total_paid=str(total_paid),
            status=new_status.value,
        )
        return PaymentResult(payment=payment, new_status=new_status)

"""Invoice lifecycle engine.

Owns the invoice status state machine. Every status write in the
application, including the ones made by the financing and payment ledgers,
goes through ``ensure_transition``.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
import uuid

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from invoicechain.core.exceptions import (
    AuthorizationError,
    BadRequestError,
    ConflictError,
    NotFoundError,
)
from invoicechain.core.logging import log
from invoicechain.core.security import (
    Actor,
    require_buyer,
    require_supplier,
)
from invoicechain.db.models.financing import Financing
from invoicechain.db.models.invoice import Invoice, InvoiceStatus, RiskCategory
from invoicechain.db.models.user import User, UserRole
from invoicechain.services.money import as_money, ensure_cents
from invoicechain.services.pagination import fetch_page
from invoicechain.services.risk import assess_risk
from invoicechain.services.tokenization import mint_token_reference

S = InvoiceStatus

ALLOWED_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    S.DRAFT: frozenset({S.PENDING_APPROVAL}),
    S.PENDING_APPROVAL: frozenset({S.VERIFIED, S.REJECTED}),
    S.REJECTED: frozenset({S.PENDING_APPROVAL}),
    S.VERIFIED: frozenset({S.TOKENIZED}),
    S.TOKENIZED: frozenset(
        {S.PARTIALLY_FINANCED, S.FULLY_FINANCED, S.PARTIALLY_PAID, S.PAID}
    ),
    S.PARTIALLY_FINANCED: frozenset(
        {S.PARTIALLY_FINANCED, S.FULLY_FINANCED, S.PARTIALLY_PAID, S.PAID}
    ),
    S.FULLY_FINANCED: frozenset({S.PARTIALLY_PAID, S.PAID}),
    S.PARTIALLY_PAID: frozenset({S.PARTIALLY_PAID, S.PAID}),
    S.PAID: frozenset(),
    S.OVERDUE: frozenset(),
}

FINANCEABLE_STATUSES = frozenset({S.TOKENIZED, S.PARTIALLY_FINANCED})
PAYABLE_STATUSES = frozenset(
    {S.TOKENIZED, S.PARTIALLY_FINANCED, S.FULLY_FINANCED, S.PARTIALLY_PAID}
)
MARKETPLACE_STATUSES = frozenset(
    {S.TOKENIZED, S.PARTIALLY_FINANCED, S.FULLY_FINANCED, S.PARTIALLY_PAID, S.PAID}
)


def can_transition(current: InvoiceStatus, target: InvoiceStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(invoice: Invoice, target: InvoiceStatus, action: str) -> None:
    """Raise BAD_REQUEST unless ``invoice`` may move to ``target``."""
    current = InvoiceStatus(invoice.status)
    if not can_transition(current, target):
        raise BadRequestError(
            f"Cannot {action} invoice in {current.value} status",
            details={"status": current.value, "target": target.value},
        )


def apply_transition(invoice: Invoice, target: InvoiceStatus, action: str) -> None:
    ensure_transition(invoice, target, action)
    previous = invoice.status
    invoice.status = target.value
    log.info(
        "Invoice status changed",
        invoice_id=str(invoice.id),
        invoice_number=invoice.invoice_number,
        action=action,
        previous=previous,
        status=target.value,
    )


@dataclass(frozen=True)
class InvoiceDraft:
    """Full editable field set of an invoice."""

    invoice_number: str
    amount: Decimal
    currency: str
    issue_date: date
    due_date: date
    buyer_id: uuid.UUID
    description: str | None = None


class InvoiceService:
    """Invoice creation, state transitions and role-scoped reads."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Loading helpers ─────────────────────────────

    async def load_invoice(
        self,
        invoice_id: uuid.UUID,
        *,
        lock: bool = False,
        with_ledgers: bool = False,
    ) -> Invoice:
        """Load an invoice or raise NOT_FOUND.

        ``lock`` takes a row lock for the rest of the transaction so
        concurrent ledger writes against the same invoice serialize.
        """
        stmt = select(Invoice).where(Invoice.id == invoice_id)
        if with_ledgers:
            stmt = stmt.options(
                selectinload(Invoice.financings),
                selectinload(Invoice.payments),
            )
        if lock:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise NotFoundError("Invoice")
        return invoice

    async def _resolve_buyer(self, buyer_id: uuid.UUID) -> User:
        result = await self.db.execute(
            select(User).where(
                User.id == buyer_id,
                User.role == UserRole.BUYER.value,
            )
        )
        buyer = result.scalar_one_or_none()
        if not buyer:
            raise NotFoundError("Buyer")
        return buyer

    async def _ensure_number_available(self, invoice_number: str) -> None:
        result = await self.db.execute(
            select(Invoice.id).where(Invoice.invoice_number == invoice_number)
        )
        if result.scalar_one_or_none() is not None:
            raise ConflictError(
                "Invoice with this number already exists",
                details={"invoice_number": invoice_number},
            )

    @staticmethod
    def _validate_draft(draft: InvoiceDraft) -> None:
        ensure_cents(draft.amount, "amount")
        if draft.amount <= 0:
            raise BadRequestError("Invoice amount must be positive")
        if not draft.invoice_number.strip():
            raise BadRequestError("Invoice number is required")

    async def _save(self, invoice: Invoice) -> Invoice:
        invoice_number = invoice.invoice_number
        try:
            await self.db.flush()
        except IntegrityError:
            # invoice_number is the only unique column a write can collide on
            raise ConflictError(
                "Invoice with this number already exists",
                details={"invoice_number": invoice_number},
            )
        await self.db.refresh(invoice)
        return invoice

    # ─── Lifecycle operations ────────────────────────

    async def create_invoice(self, actor: Actor, draft: InvoiceDraft) -> Invoice:
        """Create a DRAFT invoice owned by the calling supplier."""
        require_supplier(actor)
        self._validate_draft(draft)
        await self._ensure_number_available(draft.invoice_number)
        await self._resolve_buyer(draft.buyer_id)

        risk = assess_risk(draft.amount, draft.due_date)

        invoice = Invoice(
            invoice_number=draft.invoice_number,
            amount=draft.amount,
            currency=draft.currency,
            issue_date=draft.issue_date,
            due_date=draft.due_date,
            description=draft.description,
            status=InvoiceStatus.DRAFT.value,
            risk_score=risk.score,
            risk_category=risk.category.value,
            supplier_id=actor.id,
            buyer_id=draft.buyer_id,
        )
        self.db.add(invoice)
        await self._save(invoice)

        log.info(
            "Invoice created",
            invoice_id=str(invoice.id),
            invoice_number=invoice.invoice_number,
            risk_score=risk.score,
            risk_category=risk.category.value,
        )
        return invoice

    async def submit_invoice(self, actor: Actor, invoice_id: uuid.UUID) -> Invoice:
        """DRAFT -> PENDING_APPROVAL, by the owning supplier."""
        require_supplier(actor)
        invoice = await self.load_invoice(invoice_id, lock=True)
        if invoice.supplier_id != actor.id:
            raise AuthorizationError("You do not have permission to submit this invoice")
        if invoice.status != InvoiceStatus.DRAFT.value:
            raise BadRequestError(f"Cannot submit invoice in {invoice.status} status")

        apply_transition(invoice, InvoiceStatus.PENDING_APPROVAL, "submit")
        return await self._save(invoice)

    async def approve_invoice(self, actor: Actor, invoice_id: uuid.UUID) -> Invoice:
        """PENDING_APPROVAL -> VERIFIED, by the owning buyer."""
        require_buyer(actor)
        invoice = await self.load_invoice(invoice_id, lock=True)
        if invoice.buyer_id != actor.id:
            raise AuthorizationError("You do not have permission to approve this invoice")
        if invoice.status != InvoiceStatus.PENDING_APPROVAL.value:
            raise BadRequestError(f"Cannot approve invoice in {invoice.status} status")

        apply_transition(invoice, InvoiceStatus.VERIFIED, "approve")
        return await self._save(invoice)

    async def reject_invoice(
        self,
        actor: Actor,
        invoice_id: uuid.UUID,
        reason: str,
    ) -> Invoice:
        """PENDING_APPROVAL -> REJECTED, storing the buyer's reason."""
        require_buyer(actor)
        if not reason or not reason.strip():
            raise BadRequestError("Rejection reason is required")

        invoice = await self.load_invoice(invoice_id, lock=True)
        if invoice.buyer_id != actor.id:
            raise AuthorizationError("You do not have permission to reject this invoice")
        if invoice.status != InvoiceStatus.PENDING_APPROVAL.value:
            raise BadRequestError(f"Cannot reject invoice in {invoice.status} status")

        apply_transition(invoice, InvoiceStatus.REJECTED, "reject")
        invoice.rejection_reason = reason.strip()
        return await self._save(invoice)

    async def edit_rejected_invoice(
        self,
        actor: Actor,
        invoice_id: uuid.UUID,
        draft: InvoiceDraft,
    ) -> Invoice:
        """Replace a rejected invoice's fields and resubmit it for approval.

        Absent, foreign and non-rejected invoices all report NOT_FOUND so a
        supplier cannot enumerate other suppliers' invoices.
        """
        require_supplier(actor)
        self._validate_draft(draft)

        result = await self.db.execute(
            select(Invoice)
            .where(
                Invoice.id == invoice_id,
                Invoice.supplier_id == actor.id,
                Invoice.status == InvoiceStatus.REJECTED.value,
            )
            .with_for_update()
        )
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise NotFoundError("Rejected invoice")

        if draft.invoice_number != invoice.invoice_number:
            await self._ensure_number_available(draft.invoice_number)
        if draft.buyer_id != invoice.buyer_id:
            await self._resolve_buyer(draft.buyer_id)

        risk = assess_risk(draft.amount, draft.due_date)

        invoice.invoice_number = draft.invoice_number
        invoice.amount = draft.amount
        invoice.currency = draft.currency
        invoice.issue_date = draft.issue_date
        invoice.due_date = draft.due_date
        invoice.description = draft.description
        invoice.buyer_id = draft.buyer_id
        invoice.risk_score = risk.score
        invoice.risk_category = risk.category.value
        invoice.rejection_reason = None

        apply_transition(invoice, InvoiceStatus.PENDING_APPROVAL, "resubmit")
        return await self._save(invoice)

    async def tokenize_invoice(self, actor: Actor, invoice_id: uuid.UUID) -> Invoice:
        """VERIFIED -> TOKENIZED, stamping a mock ledger reference."""
        require_supplier(actor)
        invoice = await self.load_invoice(invoice_id, lock=True)
        if invoice.supplier_id != actor.id:
            raise AuthorizationError("You do not have permission to tokenize this invoice")
        if invoice.status != InvoiceStatus.VERIFIED.value:
            raise BadRequestError(f"Cannot tokenize invoice in {invoice.status} status")

        apply_transition(invoice, InvoiceStatus.TOKENIZED, "tokenize")
        invoice.tokenized_at = datetime.now(timezone.utc)
        invoice.tokenization_tx_hash = mint_token_reference()
        return await self._save(invoice)

    # ─── Reads ───────────────────────────────────────

    async def get_invoice(self, actor: Actor, invoice_id: uuid.UUID) -> Invoice:
        """Invoice with its ledgers, visible to its parties and admins."""
        invoice = await self.load_invoice(invoice_id, with_ledgers=True)
        if not (
            actor.is_admin
            or invoice.supplier_id == actor.id
            or invoice.buyer_id == actor.id
            or any(f.financier_id == actor.id for f in invoice.financings)
            or (
                actor.role == UserRole.FINANCIER
                and InvoiceStatus(invoice.status) in FINANCEABLE_STATUSES
            )
        ):
            raise AuthorizationError("You do not have permission to view this invoice")
        return invoice

    async def list_my_invoices(
        self,
        actor: Actor,
        status: str = "ALL",
        limit: int = 10,
        cursor: str | None = None,
    ) -> tuple[list[Invoice], str | None]:
        """Role-scoped invoice listing, most recently updated first."""
        stmt = select(Invoice)
        if status != "ALL":
            stmt = stmt.where(Invoice.status == InvoiceStatus(status).value)

        if actor.role == UserRole.SUPPLIER:
            stmt = stmt.where(Invoice.supplier_id == actor.id)
        elif actor.role == UserRole.BUYER:
            stmt = stmt.where(Invoice.buyer_id == actor.id)
        elif actor.role == UserRole.FINANCIER:
            stmt = stmt.where(
                Invoice.status.in_([s.value for s in MARKETPLACE_STATUSES])
                | Invoice.financings.any(Financing.financier_id == actor.id)
            )

        return await fetch_page(
            self.db,
            stmt,
            Invoice,
            keys=[(Invoice.updated_at, True), (Invoice.id, True)],
            limit=limit,
            cursor=cursor,
        )

    async def list_tokenized_invoices(
        self,
        actor: Actor,
        risk_category: str = "ALL",
        limit: int = 10,
        cursor: str | None = None,
    ) -> tuple[list[Invoice], str | None]:
        """Financing opportunities, lowest risk and nearest due date first."""
        stmt = select(Invoice).where(
            Invoice.status.in_([s.value for s in FINANCEABLE_STATUSES])
        )
        if risk_category != "ALL":
            stmt = stmt.where(Invoice.risk_category == RiskCategory(risk_category).value)

        return await fetch_page(
            self.db,
            stmt,
            Invoice,
            keys=[
                (Invoice.risk_score, False),
                (Invoice.due_date, False),
                (Invoice.id, False),
            ],
            limit=limit,
            cursor=cursor,
        )

    async def buyer_stats(self, actor: Actor) -> dict:
        require_buyer(actor)
        result = await self.db.execute(
            select(
                func.count(Invoice.id),
                func.count(Invoice.id).filter(
                    Invoice.status == InvoiceStatus.PENDING_APPROVAL.value
                ),
                func.sum(Invoice.amount),
            ).where(Invoice.buyer_id == actor.id)
        )
        total, pending, amount = result.one()
        return {
            "total_invoices": total or 0,
            "pending_invoices": pending or 0,
            "total_amount": as_money(amount),
        }

    async def recent_buyer_invoices(self, actor: Actor, limit: int = 5) -> list[Invoice]:
        require_buyer(actor)
        result = await self.db.execute(
            select(Invoice)
            .options(selectinload(Invoice.supplier))
            .where(Invoice.buyer_id == actor.id)
            .order_by(Invoice.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def supplier_stats(self, actor: Actor) -> dict:
        require_supplier(actor)
        result = await self.db.execute(
            select(Invoice.status, func.count(Invoice.id), func.sum(Invoice.amount))
            .where(Invoice.supplier_id == actor.id)
            .group_by(Invoice.status)
        )
        counts: dict[str, int] = {}
        total_amount = Decimal("0")
        for status, count, amount in result.all():
            counts[status] = count
            total_amount += as_money(amount)

        financed = await self.db.execute(
            select(func.sum(Financing.amount))
            .join(Invoice, Financing.invoice_id == Invoice.id)
            .where(Invoice.supplier_id == actor.id)
        )

        return {
            "total_invoices": sum(counts.values()),
            "draft": counts.get(InvoiceStatus.DRAFT.value, 0),
            "pending_approval": counts.get(InvoiceStatus.PENDING_APPROVAL.value, 0),
            "rejected": counts.get(InvoiceStatus.REJECTED.value, 0),
            "total_amount": total_amount,
            "total_financed": as_money(financed.scalar()),
        }


"""Pydantic schemas shared across routers.

Monetary values are Decimal on the way in and serialize as strings on the
way out.
"""

from datetime import date, datetime
from decimal import Decimal
import uuid

from pydantic import BaseModel, Field

from invoicechain.db.models.financing import Financing
from invoicechain.db.models.invoice import Invoice
from invoicechain.db.models.payment import Payment, PaymentType

Money = Decimal


class InvoiceFields(BaseModel):
    """Full editable field set of an invoice."""
    invoice_number: str = Field(min_length=1, max_length=100)
    amount: Money = Field(gt=0, max_digits=18, decimal_places=2)
    currency: str = Field(min_length=3, max_length=3)
    issue_date: date
    due_date: date
    buyer_id: uuid.UUID
    description: str | None = None


class PaymentResponse(BaseModel):
    id: str
    invoice_id: str
    financing_id: str | None
    payer_id: str
    amount: Money
    payment_type: str
    transaction_ref: str | None
    created_at: datetime


class FinancingResponse(BaseModel):
    id: str
    invoice_id: str
    financier_id: str
    position: int
    amount: Money
    interest_rate: Decimal
    status: str
    funded_at: datetime
    settled_at: datetime | None


class InvoiceResponse(BaseModel):
    id: str
    invoice_number: str
    supplier_id: str
    buyer_id: str
    amount: Money
    currency: str
    issue_date: date
    due_date: date
    description: str | None
    risk_score: int
    risk_category: str
    status: str
    rejection_reason: str | None
    tokenized_at: datetime | None
    tokenization_tx_hash: str | None
    created_at: datetime
    updated_at: datetime


class InvoiceDetailResponse(InvoiceResponse):
    financings: list[FinancingResponse] = []
    payments: list[PaymentResponse] = []


class InvoicePage(BaseModel):
    invoices: list[InvoiceResponse]
    next_cursor: str | None = None


def _opt_str(value) -> str | None:
    return str(value) if value is not None else None


def invoice_to_response(i: Invoice) -> InvoiceResponse:
    """Convert an Invoice ORM instance to an InvoiceResponse."""
    return InvoiceResponse(
        id=str(i.id),
        invoice_number=i.invoice_number,
        supplier_id=str(i.supplier_id),
        buyer_id=str(i.buyer_id),
        amount=i.amount,
        currency=i.currency,
        issue_date=i.issue_date,
        due_date=i.due_date,
        description=i.description,
        risk_score=i.risk_score,
        risk_category=i.risk_category,
        status=i.status,
        rejection_reason=i.rejection_reason,
        tokenized_at=i.tokenized_at,
        tokenization_tx_hash=i.tokenization_tx_hash,
        created_at=i.created_at,
        updated_at=i.updated_at,
    )


def financing_to_response(f: Financing) -> FinancingResponse:
    return FinancingResponse(
        id=str(f.id),
        invoice_id=str(f.invoice_id),
        financier_id=str(f.financier_id),
        position=f.position,
        amount=f.amount,
        interest_rate=f.interest_rate,
        status=f.status,
        funded_at=f.funded_at,
        settled_at=f.settled_at,
    )


def payment_to_response(p: Payment) -> PaymentResponse:
    return PaymentResponse(
        id=str(p.id),
        invoice_id=str(p.invoice_id),
        financing_id=_opt_str(p.financing_id),
        payer_id=str(p.payer_id),
        amount=p.amount,
        payment_type=p.payment_type,
        transaction_ref=p.transaction_ref,
        created_at=p.created_at,
    )


def invoice_to_detail(i: Invoice) -> InvoiceDetailResponse:
    """Invoice with its (already loaded) financings and payments."""
    return InvoiceDetailResponse(
        **invoice_to_response(i).model_dump(),
        financings=[financing_to_response(f) for f in i.financings],
        payments=[payment_to_response(p) for p in i.payments],
    )


def repayments_of(i: Invoice) -> list[PaymentResponse]:
    """Buyer payments routed to financiers on a loaded invoice."""
    return [
        payment_to_response(p)
        for p in i.payments
        if p.payment_type == PaymentType.BUYER_TO_FINANCIER.value
    ]

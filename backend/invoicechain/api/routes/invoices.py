"""Invoice lifecycle routes"""

from typing import Literal
import uuid

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from invoicechain.api.dependencies import (
    BuyerActor,
    CurrentActor,
    DBSession,
    FinancierActor,
    SupplierActor,
)
from invoicechain.api.schemas import (
    InvoiceDetailResponse,
    InvoiceFields,
    InvoicePage,
    InvoiceResponse,
    Money,
    PaymentResponse,
    invoice_to_detail,
    invoice_to_response,
    payment_to_response,
)
from invoicechain.config import settings
from invoicechain.db.models.invoice import InvoiceStatus
from invoicechain.services.lifecycle import InvoiceDraft, InvoiceService
from invoicechain.services.payments import PaymentService

router = APIRouter()

StatusFilter = Literal[
    "ALL",
    "DRAFT",
    "PENDING_APPROVAL",
    "REJECTED",
    "VERIFIED",
    "TOKENIZED",
    "PARTIALLY_FINANCED",
    "FULLY_FINANCED",
    "PARTIALLY_PAID",
    "PAID",
    "OVERDUE",
]
RiskFilter = Literal["ALL", "LOW", "MEDIUM", "HIGH"]


class RejectRequest(BaseModel):
    reason: str = Field(min_length=1)


class PaymentRequest(BaseModel):
    amount: Money = Field(gt=0, max_digits=18, decimal_places=2)
    transaction_ref: str | None = None


class PaymentOutcome(BaseModel):
    payment: PaymentResponse
    new_status: InvoiceStatus


def _draft(data: InvoiceFields) -> InvoiceDraft:
    return InvoiceDraft(
        invoice_number=data.invoice_number.strip(),
        amount=data.amount,
        currency=data.currency.upper(),
        issue_date=data.issue_date,
        due_date=data.due_date,
        buyer_id=data.buyer_id,
        description=data.description,
    )


def _page_limit(limit: int | None) -> int:
    return limit or settings.DEFAULT_PAGE_SIZE


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(data: InvoiceFields, actor: SupplierActor, db: DBSession):
    """Create a new DRAFT invoice."""
    invoice = await InvoiceService(db).create_invoice(actor, _draft(data))
    return invoice_to_response(invoice)


@router.get("", response_model=InvoicePage)
async def list_my_invoices(
    actor: CurrentActor,
    db: DBSession,
    status_filter: StatusFilter = Query("ALL", alias="status"),
    limit: int | None = Query(None, ge=1, le=settings.MAX_PAGE_SIZE),
    cursor: str | None = None,
):
    """List invoices visible to the current user's role."""
    invoices, next_cursor = await InvoiceService(db).list_my_invoices(
        actor,
        status=status_filter,
        limit=_page_limit(limit),
        cursor=cursor,
    )
    return InvoicePage(
        invoices=[invoice_to_response(i) for i in invoices],
        next_cursor=next_cursor,
    )


@router.get("/marketplace", response_model=InvoicePage)
async def list_tokenized_invoices(
    actor: FinancierActor,
    db: DBSession,
    risk_category: RiskFilter = "ALL",
    limit: int | None = Query(None, ge=1, le=settings.MAX_PAGE_SIZE),
    cursor: str | None = None,
):
    """Tokenized invoices open for financing."""
    invoices, next_cursor = await InvoiceService(db).list_tokenized_invoices(
        actor,
        risk_category=risk_category,
        limit=_page_limit(limit),
        cursor=cursor,
    )
    return InvoicePage(
        invoices=[invoice_to_response(i) for i in invoices],
        next_cursor=next_cursor,
    )


@router.get("/{invoice_id}", response_model=InvoiceDetailResponse)
async def get_invoice(invoice_id: uuid.UUID, actor: CurrentActor, db: DBSession):
    """Get a single invoice with its financings and payments."""
    invoice = await InvoiceService(db).get_invoice(actor, invoice_id)
    return invoice_to_detail(invoice)


@router.post("/{invoice_id}/submit", response_model=InvoiceResponse)
async def submit_invoice(invoice_id: uuid.UUID, actor: SupplierActor, db: DBSession):
    invoice = await InvoiceService(db).submit_invoice(actor, invoice_id)
    return invoice_to_response(invoice)


@router.post("/{invoice_id}/approve", response_model=InvoiceResponse)
async def approve_invoice(invoice_id: uuid.UUID, actor: BuyerActor, db: DBSession):
    invoice = await InvoiceService(db).approve_invoice(actor, invoice_id)
    return invoice_to_response(invoice)


@router.post("/{invoice_id}/reject", response_model=InvoiceResponse)
async def reject_invoice(
    invoice_id: uuid.UUID,
    data: RejectRequest,
    actor: BuyerActor,
    db: DBSession,
):
    invoice = await InvoiceService(db).reject_invoice(actor, invoice_id, data.reason)
    return invoice_to_response(invoice)


@router.put("/{invoice_id}", response_model=InvoiceResponse)
async def edit_rejected_invoice(
    invoice_id: uuid.UUID,
    data: InvoiceFields,
    actor: SupplierActor,
    db: DBSession,
):
    """Edit a rejected invoice and resubmit it for approval."""
    invoice = await InvoiceService(db).edit_rejected_invoice(actor, invoice_id, _draft(data))
    return invoice_to_response(invoice)


@router.post("/{invoice_id}/tokenize", response_model=InvoiceResponse)
async def tokenize_invoice(invoice_id: uuid.UUID, actor: SupplierActor, db: DBSession):
    invoice = await InvoiceService(db).tokenize_invoice(actor, invoice_id)
    return invoice_to_response(invoice)


@router.post("/{invoice_id}/payments", response_model=PaymentOutcome)
async def mark_invoice_as_paid(
    invoice_id: uuid.UUID,
    data: PaymentRequest,
    actor: BuyerActor,
    db: DBSession,
):
    """Record a buyer payment against an invoice."""
    result = await PaymentService(db).mark_invoice_as_paid(
        actor, invoice_id, data.amount, data.transaction_ref
    )
    return PaymentOutcome(
        payment=payment_to_response(result.payment),
        new_status=result.new_status,
    )

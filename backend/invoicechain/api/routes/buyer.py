"""Buyer dashboard routes"""

from pydantic import BaseModel

from fastapi import APIRouter

from invoicechain.api.dependencies import BuyerActor, DBSession
from invoicechain.api.schemas import InvoiceResponse, Money, invoice_to_response
from invoicechain.services.lifecycle import InvoiceService

router = APIRouter()


class BuyerStats(BaseModel):
    total_invoices: int
    pending_invoices: int
    total_amount: Money


class RecentInvoice(InvoiceResponse):
    supplier_name: str
    supplier_company: str | None


@router.get("/stats", response_model=BuyerStats)
async def get_stats(actor: BuyerActor, db: DBSession):
    """Invoice counts and total amount addressed to the current buyer."""
    return BuyerStats(**await InvoiceService(db).buyer_stats(actor))


@router.get("/invoices/recent", response_model=list[RecentInvoice])
async def get_recent_invoices(actor: BuyerActor, db: DBSession):
    """The five most recently created invoices for the current buyer."""
    invoices = await InvoiceService(db).recent_buyer_invoices(actor)
    return [
        RecentInvoice(
            **invoice_to_response(i).model_dump(),
            supplier_name=i.supplier.name,
            supplier_company=i.supplier.company_name,
        )
        for i in invoices
    ]

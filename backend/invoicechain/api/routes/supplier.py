"""Supplier dashboard routes"""

from pydantic import BaseModel

from fastapi import APIRouter

from invoicechain.api.dependencies import DBSession, SupplierActor
from invoicechain.api.schemas import Money
from invoicechain.services.lifecycle import InvoiceService

router = APIRouter()


class SupplierStats(BaseModel):
    total_invoices: int
    draft: int
    pending_approval: int
    rejected: int
    total_amount: Money
    total_financed: Money


@router.get("/stats", response_model=SupplierStats)
async def get_stats(actor: SupplierActor, db: DBSession):
    """Counts of the current supplier's invoices and the capital raised on them."""
    return SupplierStats(**await InvoiceService(db).supplier_stats(actor))

"""Admin routes: financing settlement and invoice oversight"""

from typing import Literal
import uuid

from fastapi import APIRouter, Query
from pydantic import BaseModel

from invoicechain.api.dependencies import AdminActor, DBSession
from invoicechain.api.routes.invoices import StatusFilter
from invoicechain.api.schemas import (
    FinancingResponse,
    InvoicePage,
    financing_to_response,
    invoice_to_response,
)
from invoicechain.config import settings
from invoicechain.db.models.financing import FinancingStatus
from invoicechain.services.financing import FinancingService
from invoicechain.services.lifecycle import InvoiceService

router = APIRouter()


class FinancingStatusUpdate(BaseModel):
    status: Literal["REPAID", "DEFAULTED"]


@router.patch("/financings/{financing_id}", response_model=FinancingResponse)
async def update_financing_status(
    financing_id: uuid.UUID,
    data: FinancingStatusUpdate,
    admin: AdminActor,
    db: DBSession,
):
    """Close an active financing as repaid or defaulted."""
    financing = await FinancingService(db).update_financing_status(
        admin, financing_id, FinancingStatus(data.status)
    )
    return financing_to_response(financing)


@router.get("/invoices", response_model=InvoicePage)
async def list_all_invoices(
    admin: AdminActor,
    db: DBSession,
    status_filter: StatusFilter = Query("ALL", alias="status"),
    limit: int | None = Query(None, ge=1, le=settings.MAX_PAGE_SIZE),
    cursor: str | None = None,
):
    """All invoices on the platform."""
    invoices, next_cursor = await InvoiceService(db).list_my_invoices(
        admin,
        status=status_filter,
        limit=limit or settings.DEFAULT_PAGE_SIZE,
        cursor=cursor,
    )
    return InvoicePage(
        invoices=[invoice_to_response(i) for i in invoices],
        next_cursor=next_cursor,
    )

"""Financing routes: positions and portfolio analytics"""

from decimal import Decimal
from typing import Literal
import uuid

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from invoicechain.api.dependencies import DBSession, FinancierActor
from invoicechain.api.schemas import (
    FinancingResponse,
    InvoiceResponse,
    Money,
    PaymentResponse,
    financing_to_response,
    invoice_to_response,
    repayments_of,
)
from invoicechain.config import settings
from invoicechain.db.models.invoice import InvoiceStatus
from invoicechain.services.analytics import AnalyticsService
from invoicechain.services.financing import FinancingService

router = APIRouter()


class FinanceRequest(BaseModel):
    invoice_id: uuid.UUID
    amount: Money = Field(gt=0, max_digits=18, decimal_places=2)
    interest_rate: Decimal = Field(ge=0, le=100, max_digits=5, decimal_places=2)


class FinanceResponse(BaseModel):
    financing: FinancingResponse
    invoice_status: InvoiceStatus


class FinancedInvoice(FinancingResponse):
    invoice: InvoiceResponse
    repayments: list[PaymentResponse]


class FinancedInvoicePage(BaseModel):
    financings: list[FinancedInvoice]
    next_cursor: str | None = None


class RiskBucketResponse(BaseModel):
    risk_category: str
    count: int
    total: Money


class AnalyticsResponse(BaseModel):
    total_invested: Money
    outstanding: Money
    repaid: Money
    defaulted: Money
    status_counts: dict[str, int]
    risk_distribution: list[RiskBucketResponse]


@router.post("", response_model=FinanceResponse, status_code=status.HTTP_201_CREATED)
async def finance_invoice(data: FinanceRequest, actor: FinancierActor, db: DBSession):
    """Take a financing position in a tokenized invoice."""
    result = await FinancingService(db).finance_invoice(
        actor, data.invoice_id, data.amount, data.interest_rate
    )
    return FinanceResponse(
        financing=financing_to_response(result.financing),
        invoice_status=result.invoice_status,
    )


@router.get("", response_model=FinancedInvoicePage)
async def list_financed_invoices(
    actor: FinancierActor,
    db: DBSession,
    status_filter: Literal["ALL", "ACTIVE", "REPAID", "DEFAULTED"] = Query(
        "ALL", alias="status"
    ),
    limit: int | None = Query(None, ge=1, le=settings.MAX_PAGE_SIZE),
    cursor: str | None = None,
):
    """The current financier's positions with their invoices and repayments."""
    financings, next_cursor = await FinancingService(db).list_financed_invoices(
        actor,
        status=status_filter,
        limit=limit or settings.DEFAULT_PAGE_SIZE,
        cursor=cursor,
    )
    return FinancedInvoicePage(
        financings=[
            FinancedInvoice(
                **financing_to_response(f).model_dump(),
                invoice=invoice_to_response(f.invoice),
                repayments=repayments_of(f.invoice),
            )
            for f in financings
        ],
        next_cursor=next_cursor,
    )


@router.get("/analytics", response_model=AnalyticsResponse)
async def get_financing_analytics(actor: FinancierActor, db: DBSession):
    """Portfolio totals by status and active exposure by risk category."""
    analytics = await AnalyticsService(db).get_financing_analytics(actor)
    return AnalyticsResponse(
        total_invested=analytics.total_invested,
        outstanding=analytics.outstanding,
        repaid=analytics.repaid,
        defaulted=analytics.defaulted,
        status_counts=analytics.status_counts,
        risk_distribution=[
            RiskBucketResponse(
                risk_category=b.risk_category,
                count=b.count,
                total=b.total,
            )
            for b in analytics.risk_distribution
        ],
    )

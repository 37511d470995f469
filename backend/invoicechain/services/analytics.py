"""Financier portfolio analytics. Read-only."""

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from invoicechain.core.security import Actor, require_financier
from invoicechain.db.models.financing import Financing, FinancingStatus
from invoicechain.db.models.invoice import Invoice
from invoicechain.services.money import ZERO, as_money


@dataclass
class RiskBucket:
    risk_category: str
    count: int
    total: Decimal


@dataclass
class FinancingAnalytics:
    total_invested: Decimal = ZERO
    outstanding: Decimal = ZERO
    repaid: Decimal = ZERO
    defaulted: Decimal = ZERO
    status_counts: dict[str, int] = field(default_factory=dict)
    risk_distribution: list[RiskBucket] = field(default_factory=list)


class AnalyticsService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_financing_analytics(self, actor: Actor) -> FinancingAnalytics:
        """Roll up the actor's financings by status and by invoice risk."""
        require_financier(actor)

        by_status = await self.db.execute(
            select(Financing.status, func.count(Financing.id), func.sum(Financing.amount))
            .where(Financing.financier_id == actor.id)
            .group_by(Financing.status)
        )

        analytics = FinancingAnalytics(
            status_counts={s.value: 0 for s in FinancingStatus},
        )
        sums = {s.value: ZERO for s in FinancingStatus}
        for status, count, amount in by_status.all():
            analytics.status_counts[status] = count
            sums[status] = as_money(amount)

        analytics.outstanding = sums[FinancingStatus.ACTIVE.value]
        analytics.repaid = sums[FinancingStatus.REPAID.value]
        analytics.defaulted = sums[FinancingStatus.DEFAULTED.value]
        analytics.total_invested = sum(sums.values(), ZERO)

        by_risk = await self.db.execute(
            select(
                Invoice.risk_category,
                func.count(Financing.id),
                func.sum(Financing.amount),
            )
            .join(Invoice, Financing.invoice_id == Invoice.id)
            .where(
                Financing.financier_id == actor.id,
                Financing.status == FinancingStatus.ACTIVE.value,
            )
            .group_by(Invoice.risk_category)
            .order_by(Invoice.risk_category)
        )
        analytics.risk_distribution = [
            RiskBucket(risk_category=category, count=count, total=as_money(total))
            for category, count, total in by_risk.all()
        ]
        return analytics

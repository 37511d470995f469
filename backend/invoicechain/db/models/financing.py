"""Financing model: a financier's capital commitment against one invoice."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING
import uuid

from sqlalchemy import String, DateTime, ForeignKey, Integer, Numeric, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from invoicechain.db.base import Base

if TYPE_CHECKING:
    from invoicechain.db.models.invoice import Invoice
    from invoicechain.db.models.user import User
    from invoicechain.db.models.payment import Payment


class FinancingStatus(str, enum.Enum):
    """Financing position status. Moves forward only, out of ACTIVE."""
    ACTIVE = "ACTIVE"
    REPAID = "REPAID"
    DEFAULTED = "DEFAULTED"


class Financing(Base):
    """One financier's position in an invoice."""

    __tablename__ = "financings"
    __table_args__ = (
        UniqueConstraint("invoice_id", "financier_id", name="uq_financing_invoice_financier"),
        UniqueConstraint("invoice_id", "position", name="uq_financing_invoice_position"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("invoices.id"),
        index=True,
    )
    financier_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id"),
        index=True,
    )

    # 1-based funding order within the invoice
    position: Mapped[int] = mapped_column(Integer)

    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    interest_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2))  # annual, percent

    status: Mapped[str] = mapped_column(
        String(20), default=FinancingStatus.ACTIVE.value, index=True
    )

    funded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    settled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="financings")
    financier: Mapped["User"] = relationship("User", back_populates="financings")
    payments: Mapped[list["Payment"]] = relationship(
        "Payment",
        back_populates="financing",
    )

    def __repr__(self) -> str:
        return f"<Financing {self.invoice_id} {self.amount} ({self.status})>"

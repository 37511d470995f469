"""Invoice model: the central entity of the marketplace."""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING
import uuid

from sqlalchemy import String, Text, Date, DateTime, ForeignKey, Integer, Numeric, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from invoicechain.db.base import Base

if TYPE_CHECKING:
    from invoicechain.db.models.user import User
    from invoicechain.db.models.financing import Financing
    from invoicechain.db.models.payment import Payment


class InvoiceStatus(str, enum.Enum):
    """Invoice lifecycle status."""
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    REJECTED = "REJECTED"
    VERIFIED = "VERIFIED"
    TOKENIZED = "TOKENIZED"
    PARTIALLY_FINANCED = "PARTIALLY_FINANCED"
    FULLY_FINANCED = "FULLY_FINANCED"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"  # label only, never assigned


class RiskCategory(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Invoice(Base):
    """Invoice raised by a supplier against a buyer."""

    __tablename__ = "invoices"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    invoice_number: Mapped[str] = mapped_column(String(100), unique=True, index=True)

    supplier_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id"),
        index=True,
    )
    buyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id"),
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    currency: Mapped[str] = mapped_column(String(3))
    issue_date: Mapped[date] = mapped_column(Date)
    due_date: Mapped[date] = mapped_column(Date)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    risk_score: Mapped[int] = mapped_column(Integer)
    risk_category: Mapped[str] = mapped_column(String(10), index=True)

    status: Mapped[str] = mapped_column(
        String(30), default=InvoiceStatus.DRAFT.value, index=True
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Tokenization (mock ledger reference, no chain involved)
    tokenized_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    tokenization_tx_hash: Mapped[str | None] = mapped_column(String(66), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    supplier: Mapped["User"] = relationship(
        "User", back_populates="supplied_invoices", foreign_keys=[supplier_id]
    )
    buyer: Mapped["User"] = relationship(
        "User", back_populates="received_invoices", foreign_keys=[buyer_id]
    )
    financings: Mapped[list["Financing"]] = relationship(
        "Financing",
        back_populates="invoice",
        order_by="Financing.position",
    )
    payments: Mapped[list["Payment"]] = relationship(
        "Payment",
        back_populates="invoice",
        order_by="Payment.created_at",
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number} ({self.status})>"

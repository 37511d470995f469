"""Payment model: immutable settlement transfer tied to an invoice."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING
import uuid

from sqlalchemy import String, DateTime, ForeignKey, Numeric, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from invoicechain.db.base import Base

if TYPE_CHECKING:
    from invoicechain.db.models.invoice import Invoice
    from invoicechain.db.models.financing import Financing


class PaymentType(str, enum.Enum):
    BUYER_TO_SUPPLIER = "BUYER_TO_SUPPLIER"
    BUYER_TO_FINANCIER = "BUYER_TO_FINANCIER"
    FINANCIER_TO_SUPPLIER = "FINANCIER_TO_SUPPLIER"


# Payments that settle the buyer's obligation on the invoice
BUYER_SETTLEMENT_TYPES = (
    PaymentType.BUYER_TO_SUPPLIER.value,
    PaymentType.BUYER_TO_FINANCIER.value,
)


class Payment(Base):
    """Money movement recorded against an invoice."""

    __tablename__ = "payments"

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
    financing_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("financings.id"),
        nullable=True,
        index=True,
    )
    payer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id"),
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    payment_type: Mapped[str] = mapped_column(String(30), index=True)
    transaction_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="payments")
    financing: Mapped["Financing | None"] = relationship(
        "Financing", back_populates="payments"
    )

    def __repr__(self) -> str:
        return f"<Payment {self.payment_type} {self.amount}>"

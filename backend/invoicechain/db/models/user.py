"""User model"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING
import uuid

from sqlalchemy import String, Boolean, DateTime, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from invoicechain.db.base import Base

if TYPE_CHECKING:
    from invoicechain.db.models.invoice import Invoice
    from invoicechain.db.models.financing import Financing


class UserRole(str, enum.Enum):
    """Marketplace role of a user."""
    SUPPLIER = "SUPPLIER"
    BUYER = "BUYER"
    FINANCIER = "FINANCIER"
    ADMIN = "ADMIN"


class User(Base):
    """Marketplace participant (supplier/buyer/financier) or administrator."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(20), default=UserRole.SUPPLIER.value)

    # Company details
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    company_registration_no: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

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
    supplied_invoices: Mapped[list["Invoice"]] = relationship(
        "Invoice",
        back_populates="supplier",
        foreign_keys="Invoice.supplier_id",
    )
    received_invoices: Mapped[list["Invoice"]] = relationship(
        "Invoice",
        back_populates="buyer",
        foreign_keys="Invoice.buyer_id",
    )
    financings: Mapped[list["Financing"]] = relationship(
        "Financing",
        back_populates="financier",
    )

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"

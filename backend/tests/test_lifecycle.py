"""Tests for the invoice lifecycle engine."""

from datetime import date, timedelta
from decimal import Decimal
import uuid

import pytest
from sqlalchemy import func, select

from invoicechain.core.exceptions import (
    AuthorizationError,
    BadRequestError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from invoicechain.db.models.invoice import Invoice, InvoiceStatus, RiskCategory
from invoicechain.services.lifecycle import (
    ALLOWED_TRANSITIONS,
    InvoiceDraft,
    InvoiceService,
    can_transition,
)

from conftest import draft_for


class TestStateMachine:
    def test_every_status_has_an_entry(self) -> None:
        assert set(ALLOWED_TRANSITIONS) == set(InvoiceStatus)

    @pytest.mark.parametrize(
        "current, target",
        [
            (InvoiceStatus.DRAFT, InvoiceStatus.PENDING_APPROVAL),
            (InvoiceStatus.PENDING_APPROVAL, InvoiceStatus.VERIFIED),
            (InvoiceStatus.PENDING_APPROVAL, InvoiceStatus.REJECTED),
            (InvoiceStatus.REJECTED, InvoiceStatus.PENDING_APPROVAL),
            (InvoiceStatus.VERIFIED, InvoiceStatus.TOKENIZED),
            (InvoiceStatus.TOKENIZED, InvoiceStatus.PARTIALLY_FINANCED),
            (InvoiceStatus.TOKENIZED, InvoiceStatus.FULLY_FINANCED),
            (InvoiceStatus.PARTIALLY_FINANCED, InvoiceStatus.FULLY_FINANCED),
            (InvoiceStatus.FULLY_FINANCED, InvoiceStatus.PARTIALLY_PAID),
            (InvoiceStatus.PARTIALLY_PAID, InvoiceStatus.PAID),
            (InvoiceStatus.TOKENIZED, InvoiceStatus.PAID),
        ],
    )
    def test_legal_edges(self, current, target) -> None:
        assert can_transition(current, target)

    @pytest.mark.parametrize(
        "current, target",
        [
            (InvoiceStatus.DRAFT, InvoiceStatus.VERIFIED),
            (InvoiceStatus.DRAFT, InvoiceStatus.TOKENIZED),
            (InvoiceStatus.VERIFIED, InvoiceStatus.PARTIALLY_FINANCED),
            (InvoiceStatus.FULLY_FINANCED, InvoiceStatus.PARTIALLY_FINANCED),
            (InvoiceStatus.PARTIALLY_PAID, InvoiceStatus.FULLY_FINANCED),
            (InvoiceStatus.PAID, InvoiceStatus.PARTIALLY_PAID),
            (InvoiceStatus.REJECTED, InvoiceStatus.VERIFIED),
        ],
    )
    def test_illegal_edges(self, current, target) -> None:
        assert not can_transition(current, target)

    def test_nothing_moves_into_overdue(self) -> None:
        assert all(InvoiceStatus.OVERDUE not in targets for targets in ALLOWED_TRANSITIONS.values())


class TestCreateInvoice:
    @pytest.mark.asyncio
    async def test_creates_draft_with_risk(self, db, parties) -> None:
        invoice = await InvoiceService(db).create_invoice(parties.supplier, draft_for(parties))

        assert invoice.status == InvoiceStatus.DRAFT.value
        assert invoice.supplier_id == parties.supplier.id
        assert invoice.buyer_id == parties.buyer.id
        assert invoice.amount == Decimal("1000")
        assert invoice.risk_score == 40
        assert invoice.risk_category == RiskCategory.MEDIUM.value
        assert invoice.rejection_reason is None
        assert invoice.tokenization_tx_hash is None

    @pytest.mark.asyncio
    async def test_duplicate_number_conflicts(self, db, parties) -> None:
        service = InvoiceService(db)
        await service.create_invoice(parties.supplier, draft_for(parties))

        with pytest.raises(ConflictError) as exc_info:
            await service.create_invoice(parties.other_supplier, draft_for(parties))

        assert exc_info.value.code == "CONFLICT"

    @pytest.mark.asyncio
    async def test_buyer_must_have_buyer_role(self, db, parties) -> None:
        with pytest.raises(NotFoundError):
            await InvoiceService(db).create_invoice(
                parties.supplier, draft_for(parties, buyer=parties.financier_a)
            )

    @pytest.mark.asyncio
    async def test_non_positive_amount_rejected(self, db, parties) -> None:
        with pytest.raises(BadRequestError):
            await InvoiceService(db).create_invoice(
                parties.supplier, draft_for(parties, amount="0")
            )

    @pytest.mark.asyncio
    async def test_buyer_cannot_create(self, db, parties) -> None:
        with pytest.raises(AuthorizationError):
            await InvoiceService(db).create_invoice(parties.buyer, draft_for(parties))

    @pytest.mark.asyncio
    async def test_due_date_before_issue_date_is_accepted(self, db, parties) -> None:
        today = date.today()
        draft = InvoiceDraft(
            invoice_number="INV-BACKDATED",
            amount=Decimal("500"),
            currency="EUR",
            issue_date=today,
            due_date=today - timedelta(days=10),
            buyer_id=parties.buyer.id,
        )

        invoice = await InvoiceService(db).create_invoice(parties.supplier, draft)

        assert invoice.status == InvoiceStatus.DRAFT.value


class TestSubmitApproveReject:
    @pytest.mark.asyncio
    async def test_submit_moves_draft_to_pending(self, db, parties, make_invoice) -> None:
        invoice = await make_invoice()

        invoice = await InvoiceService(db).submit_invoice(parties.supplier, invoice.id)

        assert invoice.status == InvoiceStatus.PENDING_APPROVAL.value

    @pytest.mark.asyncio
    async def test_submit_by_other_supplier_forbidden(self, db, parties, make_invoice) -> None:
        invoice = await make_invoice()

        with pytest.raises(AuthorizationError):
            await InvoiceService(db).submit_invoice(parties.other_supplier, invoice.id)
        assert invoice.status == InvoiceStatus.DRAFT.value

    @pytest.mark.asyncio
    async def test_admin_passes_gate_but_not_ownership(self, db, parties, make_invoice) -> None:
        invoice = await make_invoice()

        with pytest.raises(AuthorizationError):
            await InvoiceService(db).submit_invoice(parties.admin, invoice.id)

    @pytest.mark.asyncio
    async def test_submit_twice_is_bad_request(self, db, parties, make_invoice) -> None:
        invoice = await make_invoice(InvoiceStatus.PENDING_APPROVAL)

        with pytest.raises(BadRequestError):
            await InvoiceService(db).submit_invoice(parties.supplier, invoice.id)
        assert invoice.status == InvoiceStatus.PENDING_APPROVAL.value

    @pytest.mark.asyncio
    async def test_submit_rejected_invoice_is_bad_request(self, db, parties, make_invoice) -> None:
        invoice = await make_invoice(InvoiceStatus.REJECTED)

        with pytest.raises(BadRequestError):
            await InvoiceService(db).submit_invoice(parties.supplier, invoice.id)
        assert invoice.status == InvoiceStatus.REJECTED.value

    @pytest.mark.asyncio
    async def test_missing_invoice_not_found(self, db, parties) -> None:
        with pytest.raises(NotFoundError):
            await InvoiceService(db).submit_invoice(parties.supplier, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_approve_by_owning_buyer(self, db, parties, make_invoice) -> None:
        invoice = await make_invoice(InvoiceStatus.PENDING_APPROVAL)

        invoice = await InvoiceService(db).approve_invoice(parties.buyer, invoice.id)

        assert invoice.status == InvoiceStatus.VERIFIED.value

    @pytest.mark.asyncio
    async def test_approve_by_other_buyer_forbidden(self, db, parties, make_invoice) -> None:
        invoice = await make_invoice(InvoiceStatus.PENDING_APPROVAL)

        with pytest.raises(AuthorizationError):
            await InvoiceService(db).approve_invoice(parties.other_buyer, invoice.id)

    @pytest.mark.asyncio
    async def test_approve_draft_is_bad_request(self, db, parties, make_invoice) -> None:
        invoice = await make_invoice()

        with pytest.raises(BadRequestError):
            await InvoiceService(db).approve_invoice(parties.buyer, invoice.id)
        assert invoice.status == InvoiceStatus.DRAFT.value

    @pytest.mark.asyncio
    async def test_reject_stores_reason_in_dedicated_field(self, db, parties, make_invoice) -> None:
        invoice = await make_invoice(InvoiceStatus.PENDING_APPROVAL)

        invoice = await InvoiceService(db).reject_invoice(
            parties.buyer, invoice.id, "  Quantities do not match the PO  "
        )

        assert invoice.status == InvoiceStatus.REJECTED.value
        assert invoice.rejection_reason == "Quantities do not match the PO"
        assert invoice.description == "Widgets"

    @pytest.mark.parametrize("reason", ["", "   "])
    @pytest.mark.asyncio
    async def test_reject_requires_reason(self, db, parties, make_invoice, reason) -> None:
        invoice = await make_invoice(InvoiceStatus.PENDING_APPROVAL)

        with pytest.raises(BadRequestError):
            await InvoiceService(db).reject_invoice(parties.buyer, invoice.id, reason)
        assert invoice.status == InvoiceStatus.PENDING_APPROVAL.value


class TestEditRejectedInvoice:
    @pytest.mark.asyncio
    async def test_edit_resubmits_and_recomputes_risk(self, db, parties, make_invoice) -> None:
        invoice = await make_invoice(InvoiceStatus.REJECTED)
        assert invoice.risk_score == 40

        invoice = await InvoiceService(db).edit_rejected_invoice(
            parties.supplier,
            invoice.id,
            draft_for(parties, amount="150000", due_in_days=10, description="Corrected"),
        )

        assert invoice.status == InvoiceStatus.PENDING_APPROVAL.value
        assert invoice.rejection_reason is None
        assert invoice.amount == Decimal("150000")
        assert invoice.description == "Corrected"
        assert invoice.risk_score == 85
        assert invoice.risk_category == RiskCategory.HIGH.value

    @pytest.mark.asyncio
    async def test_edit_with_changed_number_checks_uniqueness(self, db, parties, make_invoice) -> None:
        await make_invoice(number="INV-TAKEN")
        invoice = await make_invoice(InvoiceStatus.REJECTED, number="INV-0002")

        with pytest.raises(ConflictError):
            await InvoiceService(db).edit_rejected_invoice(
                parties.supplier, invoice.id, draft_for(parties, number="INV-TAKEN")
            )
        assert invoice.status == InvoiceStatus.REJECTED.value

    @pytest.mark.asyncio
    async def test_edit_keeping_number_is_allowed(self, db, parties, make_invoice) -> None:
        invoice = await make_invoice(InvoiceStatus.REJECTED, number="INV-0002")

        invoice = await InvoiceService(db).edit_rejected_invoice(
            parties.supplier, invoice.id, draft_for(parties, number="INV-0002")
        )

        assert invoice.invoice_number == "INV-0002"

    @pytest.mark.asyncio
    async def test_edit_non_rejected_is_not_found(self, db, parties, make_invoice) -> None:
        invoice = await make_invoice(InvoiceStatus.PENDING_APPROVAL)

        with pytest.raises(NotFoundError):
            await InvoiceService(db).edit_rejected_invoice(
                parties.supplier, invoice.id, draft_for(parties)
            )

    @pytest.mark.asyncio
    async def test_edit_foreign_invoice_is_not_found(self, db, parties, make_invoice) -> None:
        invoice = await make_invoice(InvoiceStatus.REJECTED)

        with pytest.raises(NotFoundError):
            await InvoiceService(db).edit_rejected_invoice(
                parties.other_supplier, invoice.id, draft_for(parties)
            )


class TestTokenize:
    @pytest.mark.asyncio
    async def test_tokenize_stamps_reference(self, db, parties, make_invoice) -> None:
        invoice = await make_invoice(InvoiceStatus.VERIFIED)

        invoice = await InvoiceService(db).tokenize_invoice(parties.supplier, invoice.id)

        assert invoice.status == InvoiceStatus.TOKENIZED.value
        assert invoice.tokenized_at is not None
        assert invoice.tokenization_tx_hash.startswith("0x")
        assert len(invoice.tokenization_tx_hash) == 42

    @pytest.mark.asyncio
    async def test_tokenize_pending_is_bad_request(self, db, parties, make_invoice) -> None:
        invoice = await make_invoice(InvoiceStatus.PENDING_APPROVAL)

        with pytest.raises(BadRequestError):
            await InvoiceService(db).tokenize_invoice(parties.supplier, invoice.id)
        assert invoice.tokenization_tx_hash is None

    @pytest.mark.asyncio
    async def test_tokenize_twice_is_bad_request(self, db, parties, make_invoice) -> None:
        invoice = await make_invoice(InvoiceStatus.TOKENIZED)

        with pytest.raises(BadRequestError):
            await InvoiceService(db).tokenize_invoice(parties.supplier, invoice.id)


class TestReads:
    @pytest.mark.asyncio
    async def test_get_invoice_visibility(self, db, parties, make_invoice) -> None:
        invoice = await make_invoice(InvoiceStatus.FULLY_FINANCED)
        service = InvoiceService(db)

        for actor in (parties.supplier, parties.buyer, parties.financier_a, parties.admin):
            loaded = await service.get_invoice(actor, invoice.id)
            assert loaded.id == invoice.id
            assert len(loaded.financings) == 1
            assert len(loaded.payments) == 1

        for actor in (parties.other_supplier, parties.other_buyer, parties.financier_b):
            with pytest.raises(AuthorizationError):
                await service.get_invoice(actor, invoice.id)

    @pytest.mark.asyncio
    async def test_financiers_see_invoices_open_for_financing(self, db, parties, make_invoice) -> None:
        invoice = await make_invoice(InvoiceStatus.TOKENIZED)

        loaded = await InvoiceService(db).get_invoice(parties.financier_c, invoice.id)

        assert loaded.id == invoice.id

    @pytest.mark.asyncio
    async def test_list_is_role_scoped(self, db, parties, make_invoice) -> None:
        await make_invoice(number="INV-DRAFT")
        await make_invoice(InvoiceStatus.TOKENIZED, number="INV-TOKEN")
        service = InvoiceService(db)

        supplier_rows, _ = await service.list_my_invoices(parties.supplier)
        buyer_rows, _ = await service.list_my_invoices(parties.buyer)
        other_buyer_rows, _ = await service.list_my_invoices(parties.other_buyer)
        financier_rows, _ = await service.list_my_invoices(parties.financier_c)
        admin_rows, _ = await service.list_my_invoices(parties.admin, status="DRAFT")

        assert {i.invoice_number for i in supplier_rows} == {"INV-DRAFT", "INV-TOKEN"}
        assert {i.invoice_number for i in buyer_rows} == {"INV-DRAFT", "INV-TOKEN"}
        assert other_buyer_rows == []
        assert [i.invoice_number for i in financier_rows] == ["INV-TOKEN"]
        assert [i.invoice_number for i in admin_rows] == ["INV-DRAFT"]

    @pytest.mark.asyncio
    async def test_list_paginates_with_cursor(self, db, parties, make_invoice) -> None:
        for n in range(5):
            await make_invoice(number=f"INV-{n:04d}")
        service = InvoiceService(db)

        seen = []
        cursor = None
        while True:
            rows, cursor = await service.list_my_invoices(parties.supplier, limit=2, cursor=cursor)
            seen.extend(i.invoice_number for i in rows)
            if cursor is None:
                break

        assert sorted(seen) == [f"INV-{n:04d}" for n in range(5)]
        assert len(seen) == len(set(seen))

    @pytest.mark.asyncio
    async def test_invalid_cursor_is_bad_request(self, db, parties) -> None:
        with pytest.raises(BadRequestError):
            await InvoiceService(db).list_my_invoices(parties.supplier, cursor="not-a-uuid")

    @pytest.mark.asyncio
    async def test_marketplace_orders_by_risk_then_due_date(self, db, parties, make_invoice) -> None:
        await make_invoice(InvoiceStatus.TOKENIZED, number="INV-HIGH", due_in_days=10)
        await make_invoice(InvoiceStatus.TOKENIZED, number="INV-LOW", due_in_days=120)
        await make_invoice(InvoiceStatus.VERIFIED, number="INV-NOT-LISTED")

        rows, next_cursor = await InvoiceService(db).list_tokenized_invoices(parties.financier_a)

        assert [i.invoice_number for i in rows] == ["INV-LOW", "INV-HIGH"]
        assert next_cursor is None

        low_only, _ = await InvoiceService(db).list_tokenized_invoices(
            parties.financier_a, risk_category="LOW"
        )
        assert [i.invoice_number for i in low_only] == ["INV-LOW"]

    @pytest.mark.asyncio
    async def test_buyer_stats(self, db, parties, make_invoice) -> None:
        await make_invoice(InvoiceStatus.PENDING_APPROVAL, number="INV-A", amount="1000")
        await make_invoice(number="INV-B", amount="250.50")

        stats = await InvoiceService(db).buyer_stats(parties.buyer)

        assert stats["total_invoices"] == 2
        assert stats["pending_invoices"] == 1
        assert stats["total_amount"] == Decimal("1250.50")

    @pytest.mark.asyncio
    async def test_supplier_stats(self, db, parties, make_invoice) -> None:
        await make_invoice(number="INV-A", amount="300")
        await make_invoice(InvoiceStatus.REJECTED, number="INV-B", amount="200")
        await make_invoice(InvoiceStatus.FULLY_FINANCED, number="INV-C", amount="500")

        stats = await InvoiceService(db).supplier_stats(parties.supplier)

        assert stats["total_invoices"] == 3
        assert stats["draft"] == 1
        assert stats["rejected"] == 1
        assert stats["pending_approval"] == 0
        assert stats["total_amount"] == Decimal("1000")
        assert stats["total_financed"] == Decimal("500")

    @pytest.mark.asyncio
    async def test_recent_buyer_invoices_limited_to_five(self, db, parties, make_invoice) -> None:
        for n in range(7):
            await make_invoice(number=f"INV-{n:04d}")

        rows = await InvoiceService(db).recent_buyer_invoices(parties.buyer)

        assert len(rows) == 5
        assert all(r.supplier.id == parties.supplier.id for r in rows)

    @pytest.mark.asyncio
    async def test_invoice_count_unchanged_after_conflict(self, db, parties, make_invoice) -> None:
        await make_invoice()

        with pytest.raises(ConflictError):
            await InvoiceService(db).create_invoice(parties.supplier, draft_for(parties))

        count = await db.scalar(select(func.count(Invoice.id)))
        assert count == 1


async def _number_always_free(self, invoice_number: str) -> None:
    return None


class TestInvoiceNumberCollisions:
    """The unique index still reports CONFLICT when the pre-check is raced."""

    @pytest.mark.asyncio
    async def test_create_collision_is_conflict(self, db, parties, make_invoice, monkeypatch) -> None:
        await make_invoice(number="RACE-1")
        monkeypatch.setattr(InvoiceService, "_ensure_number_available", _number_always_free)

        with pytest.raises(ConflictError) as exc_info:
            await InvoiceService(db).create_invoice(
                parties.other_supplier, draft_for(parties, number="RACE-1")
            )

        assert exc_info.value.details == {"invoice_number": "RACE-1"}

    @pytest.mark.asyncio
    async def test_edit_collision_is_conflict(self, db, parties, make_invoice, monkeypatch) -> None:
        await make_invoice(number="RACE-1")
        invoice = await make_invoice(InvoiceStatus.REJECTED, number="INV-0002")
        monkeypatch.setattr(InvoiceService, "_ensure_number_available", _number_always_free)

        with pytest.raises(ConflictError):
            await InvoiceService(db).edit_rejected_invoice(
                parties.supplier, invoice.id, draft_for(parties, number="RACE-1")
            )


class TestSubCentAmounts:
    @pytest.mark.asyncio
    async def test_create_rejects_sub_cent_amount(self, db, parties) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await InvoiceService(db).create_invoice(
                parties.supplier, draft_for(parties, amount="999.995")
            )

        assert exc_info.value.code == "BAD_REQUEST"
        assert await db.scalar(select(func.count(Invoice.id))) == 0

    @pytest.mark.asyncio
    async def test_edit_rejects_sub_cent_amount(self, db, parties, make_invoice) -> None:
        invoice = await make_invoice(InvoiceStatus.REJECTED)

        with pytest.raises(ValidationError):
            await InvoiceService(db).edit_rejected_invoice(
                parties.supplier, invoice.id, draft_for(parties, amount="10.001")
            )
        assert invoice.status == InvoiceStatus.REJECTED.value

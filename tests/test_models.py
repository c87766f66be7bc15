"""
Tests for the Wallet Ledger models

Test strategy:
1. Unit tests for individual models (wallets, transfers, audit events)
2. Integration tests for flows live in test_service.py (in-memory storage)
3. No I/O in model tests
"""

from datetime import datetime

import pytest
from uuid import uuid4

from pydantic import ValidationError

from ledger.models import (
    CENTS_MAX,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    InvalidAmountError,
    Transfer,
    Wallet,
    WalletArchivedError,
    WalletType,
)
from tests.conftest import utc


class TestWalletModel:
    """Tests for the Wallet model."""

    def test_wallet_creation(self):
        wallet = Wallet(name="Checking", wallet_type=WalletType.ASSET)
        assert wallet.name == "Checking"
        assert wallet.currency == "EUR"
        assert wallet.archived_at is None
        assert wallet.is_archived is False

    def test_wallet_strips_whitespace(self):
        wallet = Wallet(name="  Checking  ", wallet_type=WalletType.ASSET)
        assert wallet.name == "Checking"

    def test_asset_defaults_to_non_negative(self):
        wallet = Wallet(name="Cash", wallet_type=WalletType.ASSET)
        assert wallet.allow_negative is False

    @pytest.mark.parametrize("wallet_type", [
        WalletType.LIABILITY,
        WalletType.INCOME,
        WalletType.EXPENSE,
        WalletType.EQUITY,
    ])
    def test_other_types_default_to_negative_allowed(self, wallet_type):
        wallet = Wallet(name="W", wallet_type=wallet_type)
        assert wallet.allow_negative is True

    def test_explicit_negative_policy_wins(self):
        wallet = Wallet(name="Overdraft", wallet_type=WalletType.ASSET, allow_negative=True)
        assert wallet.allow_negative is True

    def test_currency_is_normalized(self):
        wallet = Wallet(name="Travel", wallet_type=WalletType.ASSET, currency=" usd ")
        assert wallet.currency == "USD"

    def test_invalid_currency_rejected(self):
        with pytest.raises(ValidationError, match="Invalid currency code"):
            Wallet(name="Bad", wallet_type=WalletType.ASSET, currency="EURO")

    def test_empty_name_rejected(self):
        with pytest.raises(ValidationError):
            Wallet(name="", wallet_type=WalletType.ASSET)

    def test_external_types(self):
        assert WalletType.INCOME.is_external
        assert WalletType.EXPENSE.is_external
        assert WalletType.EQUITY.is_external
        assert not WalletType.ASSET.is_external
        assert not WalletType.LIABILITY.is_external

    def test_archived_returns_copy(self):
        wallet = Wallet(name="Old", wallet_type=WalletType.ASSET)
        archived = wallet.archived(utc(2024, 3, 1))
        assert archived.is_archived
        assert archived.archived_at == utc(2024, 3, 1)
        assert wallet.is_archived is False

    def test_archiving_twice_keeps_first_date(self):
        wallet = Wallet(name="Old", wallet_type=WalletType.ASSET).archived(utc(2024, 3, 1))
        assert wallet.archived(utc(2024, 4, 1)).archived_at == utc(2024, 3, 1)

    def test_naive_archive_date_is_read_as_utc(self):
        wallet = Wallet(name="Old", wallet_type=WalletType.ASSET).archived(datetime(2024, 3, 1))
        assert wallet.archived_at == utc(2024, 3, 1)

    def test_ensure_active(self):
        wallet = Wallet(name="Old", wallet_type=WalletType.ASSET)
        wallet.ensure_active()
        with pytest.raises(WalletArchivedError, match="Old"):
            wallet.archived().ensure_active()


class TestTransferModel:
    """Tests for Transfer creation and reversals."""

    def _transfer(self, amount=10000, **fields):
        return Transfer.new(uuid4(), uuid4(), amount, utc(2024, 1, 15), **fields)

    def test_transfer_creation(self):
        transfer = self._transfer(description="Rent", category="housing")
        assert transfer.amount_cents == 10000
        assert transfer.sequence == 0
        assert transfer.reverses is None
        assert transfer.is_reversal is False

    @pytest.mark.parametrize("amount", [0, -1, -5000])
    def test_non_positive_amount_rejected(self, amount):
        with pytest.raises(InvalidAmountError):
            self._transfer(amount)

    def test_amount_above_64_bit_range_rejected(self):
        with pytest.raises(InvalidAmountError, match="out of range"):
            self._transfer(CENTS_MAX + 1)
        with pytest.raises(ValidationError):
            Transfer(
                from_wallet=uuid4(),
                to_wallet=uuid4(),
                amount_cents=CENTS_MAX + 1,
                timestamp=utc(2024, 1, 15),
            )

    def test_naive_timestamp_is_read_as_utc(self):
        transfer = Transfer.new(uuid4(), uuid4(), 100, datetime(2024, 1, 15, 9, 30))
        assert transfer.timestamp == utc(2024, 1, 15, 9, 30)
        assert transfer.timestamp.tzinfo is not None

    def test_transfer_is_immutable(self):
        transfer = self._transfer()
        with pytest.raises(ValidationError):
            transfer.amount_cents = 1

    def test_with_sequence_returns_copy(self):
        transfer = self._transfer()
        stored = transfer.with_sequence(7)
        assert stored.sequence == 7
        assert stored.id == transfer.id
        assert transfer.sequence == 0

    def test_touches(self):
        transfer = self._transfer()
        assert transfer.touches(transfer.from_wallet)
        assert transfer.touches(transfer.to_wallet)
        assert not transfer.touches(uuid4())

    def test_full_reversal(self):
        original = self._transfer(description="Dinner", category="dining")
        reversal = original.create_reversal(utc(2024, 1, 20))

        assert reversal.from_wallet == original.to_wallet
        assert reversal.to_wallet == original.from_wallet
        assert reversal.amount_cents == original.amount_cents
        assert reversal.reverses == original.id
        assert reversal.category == "dining"
        assert reversal.description == "Reversal of: Dinner"
        assert reversal.timestamp == utc(2024, 1, 20)
        assert reversal.is_reversal

    def test_reversal_without_description(self):
        reversal = self._transfer().create_reversal()
        assert reversal.description == "Reversal of: (no description)"

    def test_partial_reversal(self):
        original = self._transfer(description="Shoes", category="clothing")
        reversal = original.create_partial_reversal(4000)
        assert reversal.amount_cents == 4000
        assert reversal.reverses == original.id
        assert reversal.category == "clothing"
        assert reversal.description == "Partial reversal of: Shoes"

    @pytest.mark.parametrize("amount", [0, -100, 10001])
    def test_partial_reversal_bounds(self, amount):
        with pytest.raises(InvalidAmountError):
            self._transfer().create_partial_reversal(amount)


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.WALLET_CREATED,
            description="Wallet created",
        )
        assert event.event_type == AuditEventType.WALLET_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        event = AuditEvent(
            event_type=AuditEventType.TRANSFER_RECORDED,
            description="Transfer recorded",
            details={"amount_cents": 500},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "transfer_recorded"
        assert log_dict["details"]["amount_cents"] == 500

    def test_builder_transfer_recorded(self):
        transfer_id = uuid4()
        correlation_id = uuid4()

        event = AuditEventBuilder.transfer_recorded(
            transfer_id=transfer_id,
            sequence=3,
            from_wallet="Salary",
            to_wallet="Checking",
            amount_cents=500000,
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.TRANSFER_RECORDED
        assert event.entity_id == transfer_id
        assert event.correlation_id == correlation_id
        assert "5000.00" in event.description

    def test_builder_transfer_rejected_carries_error(self):
        error = InvalidAmountError(0)
        event = AuditEventBuilder.transfer_rejected("A", "B", 0, error)
        assert event.severity == AuditSeverity.WARNING
        assert event.error_code == "InvalidAmountError"
        assert "Invalid amount 0" in event.error_message

    def test_builder_schedule_status(self):
        event = AuditEventBuilder.schedule_status_changed(
            uuid4(), "Rent", AuditEventType.SCHEDULE_PAUSED
        )
        assert event.description == "Scheduled transfer paused: Rent"

    def test_builder_integrity_severity(self):
        healthy = AuditEventBuilder.integrity_checked(True, [], 0)
        broken = AuditEventBuilder.integrity_checked(False, ["Sequence numbers have gaps"], 0)
        assert healthy.severity == AuditSeverity.INFO
        assert broken.severity == AuditSeverity.ERROR


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

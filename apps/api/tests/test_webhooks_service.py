"""Tests for webhook verification and ledger reconciliation."""
from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.core.config import Settings
from app.models.purchase import Purchase
from app.models.transaction import Transaction, TransactionStatus
from app.repositories import purchases as purchases_repo
from app.repositories import transactions as transactions_repo
from app.services import webhooks as webhooks_service
from app.services.signatures import compute_webhook_signature
from app.services.webhooks import ReconcileOutcome

SECRET = "sk_test_webhook"
SETTINGS = Settings(paystack_secret_key=SECRET)
PRODUCT_ID = "6f1c7d2e-3b8a-4c51-9e0f-2a7d4b6c8e10"


class LedgerSession:
    """In-memory stand-in for the transactions and purchases tables."""

    def __init__(self) -> None:
        self.transactions: dict[str, Transaction] = {}
        self.purchases: list[Purchase] = []
        self.reads = 0
        self.begin_calls = 0
        self._pending: list[Purchase] = []

    def add(self, obj: object) -> None:
        if isinstance(obj, Purchase):
            self._pending.append(obj)

    def begin(self):  # noqa: D401 - mimic SQLAlchemy's async begin
        session = self

        class _Tx:
            async def __aenter__(self_inner):
                session.begin_calls += 1
                return session

            async def __aexit__(self_inner, exc_type, exc, tb):
                return False

        return _Tx()

    def begin_nested(self):
        session = self

        class _Savepoint:
            async def __aenter__(self_inner):
                return session

            async def __aexit__(self_inner, exc_type, exc, tb):
                pending, session._pending = session._pending, []
                if exc_type is not None:
                    return False
                for purchase in pending:
                    if any(p.transaction_id == purchase.transaction_id for p in session.purchases):
                        raise IntegrityError("INSERT INTO purchases", {}, Exception("uq_purchases_transaction_id"))
                    session.purchases.append(purchase)
                return False

        return _Savepoint()


@pytest.fixture
def ledger(monkeypatch) -> LedgerSession:
    session = LedgerSession()

    async def get_by_reference(_session, reference, *, for_update=False):
        session.reads += 1
        return next((t for t in session.transactions.values() if t.payment_reference == reference), None)

    async def get_by_id(_session, transaction_id, *, for_update=False):
        session.reads += 1
        return session.transactions.get(transaction_id)

    async def exists_for_transaction(_session, transaction_id):
        session.reads += 1
        return any(p.transaction_id == transaction_id for p in session.purchases)

    monkeypatch.setattr(transactions_repo, "get_by_reference", get_by_reference)
    monkeypatch.setattr(transactions_repo, "get_by_id", get_by_id)
    monkeypatch.setattr(purchases_repo, "exists_for_transaction", exists_for_transaction)
    return session


def add_transaction(
    ledger: LedgerSession,
    *,
    transaction_id: str = "tx-1",
    reference: str | None = "REF123",
    status: TransactionStatus = TransactionStatus.PENDING,
    product_id: str | None = PRODUCT_ID,
) -> Transaction:
    created = datetime(2025, 1, 1, tzinfo=timezone.utc)
    transaction = Transaction(
        id=transaction_id,
        buyer_id="user-1",
        product_id=product_id,
        amount=5000,
        currency="NGN",
        payment_method="paystack",
        payment_reference=reference,
        payment_status=status,
        created_at=created,
        updated_at=created,
    )
    ledger.transactions[transaction_id] = transaction
    return transaction


def signed(payload: dict) -> tuple[bytes, str]:
    body = json.dumps(payload).encode("utf-8")
    return body, compute_webhook_signature(SECRET, body)


def charge(event: str = "charge.success", reference: str = "REF123", **data) -> dict:
    return {"event": event, "data": {"reference": reference, "amount": 500000, **data}}


@pytest.mark.parametrize(
    ("current", "event", "expected"),
    [
        (TransactionStatus.PENDING, "charge.success", TransactionStatus.COMPLETED),
        (TransactionStatus.PENDING, "charge.failed", TransactionStatus.FAILED),
        (TransactionStatus.PENDING, "transfer.success", None),
        (TransactionStatus.COMPLETED, "charge.success", None),
        (TransactionStatus.COMPLETED, "charge.failed", None),
        (TransactionStatus.FAILED, "charge.success", None),
    ],
)
def test_next_status(current, event, expected) -> None:
    assert webhooks_service.next_status(current, event) is expected


@pytest.mark.asyncio
async def test_success_is_idempotent_across_redelivery(ledger: LedgerSession) -> None:
    transaction = add_transaction(ledger)
    body, signature = signed(charge(authorization={"card_type": "visa"}))

    first = await webhooks_service.handle_webhook(body, signature, ledger, SETTINGS)
    second = await webhooks_service.handle_webhook(body, signature, ledger, SETTINGS)

    assert first.status_code == second.status_code == 200
    assert first.body == {"received": True}
    assert first.outcome is ReconcileOutcome.APPLIED
    assert second.outcome is ReconcileOutcome.DUPLICATE
    assert transaction.payment_status is TransactionStatus.COMPLETED
    assert transaction.card_type == "visa"
    assert len(ledger.purchases) == 1
    purchase = ledger.purchases[0]
    assert purchase.transaction_id == "tx-1"
    assert purchase.user_id == "user-1"
    assert purchase.product_id == PRODUCT_ID


@pytest.mark.asyncio
async def test_missing_signature_touches_nothing(ledger: LedgerSession) -> None:
    add_transaction(ledger)
    body, _ = signed(charge())

    result = await webhooks_service.handle_webhook(body, None, ledger, SETTINGS)

    assert result.status_code == 401
    assert ledger.reads == 0
    assert ledger.begin_calls == 0


@pytest.mark.asyncio
async def test_tampered_body_is_rejected(ledger: LedgerSession) -> None:
    transaction = add_transaction(ledger)
    body, signature = signed(charge())
    tampered = body.replace(b"500000", b"500001")

    result = await webhooks_service.handle_webhook(tampered, signature, ledger, SETTINGS)

    assert result.status_code == 401
    assert ledger.reads == 0
    assert transaction.payment_status is TransactionStatus.PENDING


@pytest.mark.asyncio
async def test_missing_secret_is_server_error(ledger: LedgerSession) -> None:
    body, signature = signed(charge())

    result = await webhooks_service.handle_webhook(body, signature, ledger, Settings(paystack_secret_key=""))

    assert result.status_code == 500
    assert ledger.reads == 0


@pytest.mark.asyncio
async def test_malformed_json_is_bad_request(ledger: LedgerSession) -> None:
    body = b'{"event": "charge.success", '
    signature = compute_webhook_signature(SECRET, body)

    result = await webhooks_service.handle_webhook(body, signature, ledger, SETTINGS)

    assert result.status_code == 400
    assert ledger.reads == 0


@pytest.mark.asyncio
async def test_unknown_shape_and_event_are_acknowledged(ledger: LedgerSession) -> None:
    add_transaction(ledger)
    odd_body, odd_signature = signed({"hello": "world"})
    other_body, other_signature = signed(charge(event="transfer.success"))

    odd = await webhooks_service.handle_webhook(odd_body, odd_signature, ledger, SETTINGS)
    other = await webhooks_service.handle_webhook(other_body, other_signature, ledger, SETTINGS)

    assert odd.status_code == other.status_code == 200
    assert odd.outcome is other.outcome is ReconcileOutcome.IGNORED
    assert ledger.reads == 0


@pytest.mark.asyncio
async def test_unknown_reference_is_acknowledged(ledger: LedgerSession) -> None:
    body, signature = signed(charge(reference="NOPE"))

    result = await webhooks_service.handle_webhook(body, signature, ledger, SETTINGS)

    assert result.status_code == 200
    assert result.outcome is ReconcileOutcome.NOT_FOUND
    assert ledger.purchases == []


@pytest.mark.asyncio
async def test_failed_charge_marks_transaction_without_purchase(ledger: LedgerSession) -> None:
    transaction = add_transaction(ledger)
    body, signature = signed(charge(event="charge.failed"))

    result = await webhooks_service.handle_webhook(body, signature, ledger, SETTINGS)

    assert result.outcome is ReconcileOutcome.APPLIED
    assert transaction.payment_status is TransactionStatus.FAILED
    assert ledger.purchases == []


@pytest.mark.asyncio
async def test_conflicting_terminal_event_is_a_no_op(ledger: LedgerSession, caplog) -> None:
    transaction = add_transaction(ledger, status=TransactionStatus.COMPLETED)
    body, signature = signed(charge(event="charge.failed"))

    with caplog.at_level("WARNING", logger="app.services.webhooks"):
        result = await webhooks_service.handle_webhook(body, signature, ledger, SETTINGS)

    assert result.status_code == 200
    assert result.outcome is ReconcileOutcome.CONFLICT
    assert transaction.payment_status is TransactionStatus.COMPLETED
    assert any("Conflicting" in record.message for record in caplog.records)


@pytest.mark.asyncio
async def test_metadata_fallback_records_reference(ledger: LedgerSession) -> None:
    transaction = add_transaction(ledger, transaction_id="tx-9", reference=None)
    body, signature = signed(charge(reference="PSK-9", metadata={"transaction_id": "tx-9", "user_id": "user-1"}))

    result = await webhooks_service.handle_webhook(body, signature, ledger, SETTINGS)

    assert result.outcome is ReconcileOutcome.APPLIED
    assert transaction.payment_status is TransactionStatus.COMPLETED
    assert transaction.payment_reference == "PSK-9"
    assert [p.transaction_id for p in ledger.purchases] == ["tx-9"]


@pytest.mark.asyncio
async def test_empty_metadata_string_is_tolerated(ledger: LedgerSession) -> None:
    transaction = add_transaction(ledger, product_id=None)
    body, signature = signed(charge(metadata=""))

    result = await webhooks_service.handle_webhook(body, signature, ledger, SETTINGS)

    assert result.outcome is ReconcileOutcome.APPLIED
    assert transaction.payment_status is TransactionStatus.COMPLETED
    assert ledger.purchases == []


@pytest.mark.asyncio
async def test_unique_constraint_suppresses_concurrent_purchase(ledger: LedgerSession, monkeypatch) -> None:
    transaction = add_transaction(ledger)
    ledger.purchases.append(
        Purchase(id="p-0", user_id="user-1", product_id=PRODUCT_ID, transaction_id="tx-1")
    )

    async def racing_exists(_session, _transaction_id):
        return False

    monkeypatch.setattr(purchases_repo, "exists_for_transaction", racing_exists)
    body, signature = signed(charge())

    result = await webhooks_service.handle_webhook(body, signature, ledger, SETTINGS)

    assert result.status_code == 200
    assert result.outcome is ReconcileOutcome.APPLIED
    assert transaction.payment_status is TransactionStatus.COMPLETED
    assert len(ledger.purchases) == 1


@pytest.mark.asyncio
async def test_database_failure_returns_server_error(ledger: LedgerSession, monkeypatch) -> None:
    async def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    monkeypatch.setattr(transactions_repo, "get_by_reference", broken)
    body, signature = signed(charge())

    result = await webhooks_service.handle_webhook(body, signature, ledger, SETTINGS)

    assert result.status_code == 500

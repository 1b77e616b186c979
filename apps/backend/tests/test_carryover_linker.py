from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import update

from billcycle import models
from billcycle.services import carryover_linker
from billcycle.errors import ReconciliationSkipped
from billcycle.services.carryover_linker import (
    CarryoverCandidate,
    CarryoverLinker,
    calculate_realized_interest,
    classify,
    is_carryover_description,
    resolve,
)
from billcycle.services.ledger_store import LedgerStore


@pytest.mark.parametrize(
    "description",
    [
        "SALDO ANTERIOR",
        "Saldo Fatura Anterior",
        "SALDO ROTATIVO 03/24",
        "Juros rotativo",
        "FINANCIAMENTO FATURA 1/6",
        "Financ fatura",
        "Parcelamento de Fatura",
        "PGTO MINIMO",
        "pagamento minimo",
    ],
)
def test_carryover_descriptions(description):
    assert is_carryover_description(description)


@pytest.mark.parametrize("description", ["NETFLIX.COM", "Pagamento recebido", "", None])
def test_regular_descriptions(description):
    assert not is_carryover_description(description)


def test_classify_points_at_previous_bill():
    candidate = classify("SALDO ANTERIOR", "Nubank", date(2024, 1, 10), -320.0)
    assert candidate == CarryoverCandidate(origin="Nubank", month=1, year=2024, amount=320.0)
    assert (candidate.bill_month, candidate.bill_year) == (12, 2023)
    assert classify("Mercado", "Nubank", date(2024, 1, 10), -50.0) is None


def test_realized_interest():
    interest = calculate_realized_interest(300, 320)
    assert interest.amount == 20.0
    assert interest.rate == 6.6667

    lower = calculate_realized_interest(300, 280)
    assert lower.amount == -20.0
    assert lower.rate == -6.6667

    assert calculate_realized_interest(0, 50).rate == 0.0


def _record(id_, *, origin="Nubank", month=2, year=2024, carried=300.0, linked=None):
    return models.BillPayment(
        id=id_,
        user_id=1,
        origin=origin,
        bill_month=month,
        bill_year=year,
        total_bill_amount=1000.0,
        amount_paid=1000.0 - carried,
        amount_carried=carried,
        payment_type=models.BillPaymentType.PARTIAL,
        carryover_transaction_id=id_ * 10,
        linked_transaction_id=linked,
    )


def test_resolve_picks_single_record():
    candidate = CarryoverCandidate(origin="Nubank", month=3, year=2024, amount=320.0)
    records = [
        _record(1),
        _record(2, origin="Itau"),
        _record(3, month=1),
        _record(4, carried=100.0),
        _record(5, linked=99),
    ]
    match = resolve(candidate, records, tolerance=0.5)
    assert match.bill_payment_id == 1
    assert match.from_bill == "2/2024"
    assert match.carryover_transaction_id == 10
    assert match.interest.amount == 20.0


def test_resolve_tolerance_band():
    candidate = CarryoverCandidate(origin="Nubank", month=3, year=2024, amount=200.0)
    assert resolve(candidate, [_record(1, carried=300.0)], tolerance=0.5).bill_payment_id == 1
    assert resolve(candidate, [_record(1, carried=301.0)], tolerance=0.5) is None
    assert resolve(candidate, [_record(1, carried=300.0)], tolerance=0.1) is None


def test_resolve_ambiguous_raises():
    candidate = CarryoverCandidate(origin="Nubank", month=3, year=2024, amount=300.0)
    with pytest.raises(ReconciliationSkipped):
        resolve(candidate, [_record(1, carried=290.0), _record(2, carried=310.0)])


def _partial_payment(db_session, user, *, carried=300.0):
    placeholder = LedgerStore(db_session).create(
        user_id=user.id,
        description="Saldo Anterior Fatura Fevereiro/2024 - Nubank",
        amount=-carried,
        occurred_at=date(2024, 3, 15),
        type=models.TxnType.EXPENSE,
        origin="Nubank",
        kind=models.EntryKind.BILL_CARRYOVER,
    )
    record = models.BillPayment(
        user_id=user.id,
        origin="Nubank",
        bill_month=2,
        bill_year=2024,
        total_bill_amount=1000.0,
        amount_paid=1000.0 - carried,
        amount_carried=carried,
        payment_type=models.BillPaymentType.PARTIAL,
        carryover_transaction_id=placeholder.id,
    )
    db_session.add(record)
    db_session.commit()
    return record, placeholder


def _imported(db_session, user, description, amount, *, type=models.TxnType.EXPENSE):
    return LedgerStore(db_session).create(
        user_id=user.id,
        description=description,
        amount=amount,
        occurred_at=date(2024, 3, 5),
        type=type,
        origin="Nubank",
    )


def test_link_updates_record_and_trashes_placeholder(db_session, user, clock):
    record, placeholder = _partial_payment(db_session, user)
    entry = _imported(db_session, user, "SALDO ROTATIVO", -320.0)

    match = CarryoverLinker(db_session, clock=clock).link(entry)
    db_session.commit()

    assert match.bill_payment_id == record.id
    db_session.refresh(record)
    assert record.linked_transaction_id == entry.id
    assert record.interest_amount == 20.0
    assert record.interest_rate == 6.6667
    assert entry.kind == models.EntryKind.BILL_CARRYOVER
    assert db_session.get(models.Transaction, placeholder.id).deleted_at == clock.now()


def test_link_skips_income_and_regular_entries(db_session, user, clock):
    _partial_payment(db_session, user)
    linker = CarryoverLinker(db_session, clock=clock)
    assert linker.link(_imported(db_session, user, "SALDO ANTERIOR", 320.0, type=models.TxnType.INCOME)) is None
    assert linker.link(_imported(db_session, user, "Mercado", -320.0)) is None


def test_link_is_single_use(db_session, user, clock):
    record, _ = _partial_payment(db_session, user)
    linker = CarryoverLinker(db_session, clock=clock)
    first = _imported(db_session, user, "SALDO ANTERIOR", -300.0)
    second = _imported(db_session, user, "SALDO ANTERIOR", -300.0)

    assert linker.link(first).bill_payment_id == record.id
    assert linker.link(second) is None
    db_session.commit()

    assert second.kind == models.EntryKind.REGULAR
    db_session.refresh(record)
    assert record.linked_transaction_id == first.id
    assert record.interest_amount == 0.0


def test_link_lost_between_resolve_and_update(db_session, user, clock, monkeypatch):
    record, placeholder = _partial_payment(db_session, user)
    other = _imported(db_session, user, "SALDO ANTERIOR", -300.0)
    entry = _imported(db_session, user, "SALDO ROTATIVO", -320.0)
    original_resolve = carryover_linker.resolve

    def resolve_then_link_elsewhere(*args, **kwargs):
        match = original_resolve(*args, **kwargs)
        db_session.execute(
            update(models.BillPayment)
            .where(models.BillPayment.id == record.id)
            .values(linked_transaction_id=other.id)
            .execution_options(synchronize_session=False)
        )
        return match

    monkeypatch.setattr(carryover_linker, "resolve", resolve_then_link_elsewhere)
    with pytest.raises(ReconciliationSkipped):
        CarryoverLinker(db_session, clock=clock).link(entry)
    db_session.commit()

    assert entry.kind == models.EntryKind.REGULAR
    assert db_session.get(models.Transaction, placeholder.id).deleted_at is None

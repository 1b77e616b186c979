from __future__ import annotations

from datetime import date

import pytest

from billcycle import models
from billcycle.services.bill_payment_service import BillPaymentService


def _payload(**overrides):
    body = {
        "origin": "Nubank",
        "billMonth": 2,
        "billYear": 2024,
        "totalBillAmount": 1000,
        "paymentType": "PARTIAL",
        "amountPaid": 600,
        "interestRate": 10,
    }
    body.update(overrides)
    return body


def _entry(db_session, txn_id) -> models.Transaction:
    return db_session.get(models.Transaction, txn_id)


def test_partial_payment_spawns_entries(client, db_session):
    res = client.post("/api/bill-payments", json=_payload())
    assert res.status_code == 201
    bp = res.json()
    assert bp["paymentType"] == "PARTIAL"
    assert bp["amountCarried"] == 400.0
    assert bp["interestAmount"] == 40.0
    assert bp["installment"] is None
    assert bp["linkedTransactionId"] is None

    paid = _entry(db_session, bp["entryTransactionId"])
    assert paid.description == "Pagamento Fatura Fevereiro/2024 - Nubank"
    assert paid.amount == -600.0
    assert paid.occurred_at == date(2024, 2, 15)
    assert paid.kind == models.EntryKind.BILL_PAYMENT

    placeholder = _entry(db_session, bp["carryoverTransactionId"])
    assert placeholder.description == "Saldo Anterior Fatura Fevereiro/2024 - Nubank"
    assert placeholder.amount == -440.0
    assert placeholder.occurred_at == date(2024, 3, 15)
    assert placeholder.kind == models.EntryKind.BILL_CARRYOVER


def test_partial_payment_without_interest(client, db_session):
    res = client.post("/api/bill-payments", json=_payload(interestRate=None, amountPaid=0))
    assert res.status_code == 201
    bp = res.json()
    assert bp["interestAmount"] is None
    assert bp["entryTransactionId"] is None
    assert _entry(db_session, bp["carryoverTransactionId"]).amount == -1000.0


def test_duplicate_payment_conflicts(client):
    assert client.post("/api/bill-payments", json=_payload()).status_code == 201
    res = client.post("/api/bill-payments", json=_payload(amountPaid=100))
    assert res.status_code == 409

    # Another card or another month is a different bill
    assert client.post("/api/bill-payments", json=_payload(origin="Itau")).status_code == 201
    assert client.post("/api/bill-payments", json=_payload(billMonth=3)).status_code == 201


def test_duplicate_caught_by_unique_constraint(client, db_session, monkeypatch):
    assert client.post("/api/bill-payments", json=_payload()).status_code == 201

    lookup = BillPaymentService.find_for_period
    calls = []

    def miss_first(self, **kwargs):
        calls.append(kwargs)
        return None if len(calls) == 1 else lookup(self, **kwargs)

    # A concurrent request that passed the pre-check before the first insert
    monkeypatch.setattr(BillPaymentService, "find_for_period", miss_first)
    res = client.post("/api/bill-payments", json=_payload(amountPaid=100))

    assert res.status_code == 409
    assert res.json()["detail"] == "A payment is already recorded for bill 2/2024 - Nubank"
    assert len(calls) == 2
    assert db_session.query(models.BillPayment).count() == 1
    assert db_session.query(models.Transaction).count() == 2


@pytest.mark.parametrize(
    "overrides",
    [
        {"amountPaid": 1000},
        {"amountPaid": 1500},
        {"amountPaid": -1},
        {"totalBillAmount": 0},
        {"paymentType": "FULL"},
        {"billMonth": 13},
        {"billMonth": 0},
        {"interestRate": -1},
        {"paymentType": "FINANCED", "installments": 1},
        {"paymentType": "FINANCED"},
    ],
)
def test_invalid_payment_rejected(client, db_session, overrides):
    res = client.post("/api/bill-payments", json=_payload(**overrides))
    assert res.status_code == 400
    assert db_session.query(models.BillPayment).count() == 0
    assert db_session.query(models.Transaction).count() == 0


def test_missing_field_is_bad_request(client):
    body = _payload()
    del body["totalBillAmount"]
    assert client.post("/api/bill-payments", json=body).status_code == 400


def test_financed_payment_creates_plan(client, db_session):
    res = client.post(
        "/api/bill-payments",
        json=_payload(paymentType="FINANCED", amountPaid=200, installments=3, interestRate=5),
    )
    assert res.status_code == 201
    bp = res.json()
    assert bp["amountCarried"] == 800.0
    assert bp["interestAmount"] == 40.0
    assert bp["carryoverTransactionId"] is None
    assert bp["installment"]["totalInstallments"] == 3
    assert bp["installment"]["totalAmount"] == 840.0
    assert bp["installment"]["startDate"] == "2024-03-15"

    down = _entry(db_session, bp["entryTransactionId"])
    assert down.description == "Entrada Financiamento Fatura Fevereiro/2024 - Nubank"
    assert down.amount == -200.0

    plan = db_session.get(models.Installment, bp["installmentId"])
    entries = plan.transactions
    assert [t.description for t in entries] == [
        f"Financiamento Fatura Fevereiro/2024 - Nubank ({i}/3)" for i in (1, 2, 3)
    ]
    assert [t.occurred_at for t in entries] == [date(2024, 3, 15), date(2024, 4, 15), date(2024, 5, 15)]
    assert all(t.kind == models.EntryKind.FINANCING for t in entries)
    assert round(sum(-t.amount for t in entries), 2) == 840.0


def test_financed_split_absorbs_remainder(client, db_session):
    res = client.post(
        "/api/bill-payments",
        json=_payload(paymentType="FINANCED", totalBillAmount=100, amountPaid=0, installments=3, interestRate=None),
    )
    assert res.status_code == 201
    plan = db_session.get(models.Installment, res.json()["installmentId"])
    assert [-t.amount for t in plan.transactions] == [33.33, 33.33, 33.34]


def test_list_and_get(client):
    first = client.post("/api/bill-payments", json=_payload()).json()
    client.post("/api/bill-payments", json=_payload(billMonth=1))

    all_rows = client.get("/api/bill-payments").json()
    assert [r["billMonth"] for r in all_rows] == [2, 1]

    feb = client.get("/api/bill-payments", params={"month": 2, "year": 2024}).json()
    assert [r["id"] for r in feb] == [first["id"]]

    assert client.get(f"/api/bill-payments/{first['id']}").json()["origin"] == "Nubank"
    assert client.get("/api/bill-payments/9999").status_code == 404


def test_update_recomputes_and_rebuilds_entries(client, db_session):
    bp = client.post("/api/bill-payments", json=_payload()).json()
    old_ids = {bp["entryTransactionId"], bp["carryoverTransactionId"]}

    res = client.put(f"/api/bill-payments/{bp['id']}", json={"amountPaid": 700})
    assert res.status_code == 200
    updated = res.json()
    assert updated["amountCarried"] == 300.0
    assert updated["interestRate"] == 10.0
    assert updated["interestAmount"] == 30.0
    assert _entry(db_session, updated["carryoverTransactionId"]).amount == -330.0
    assert _entry(db_session, updated["entryTransactionId"]).amount == -700.0

    trashed = {t["id"] for t in client.get("/api/transactions/trash").json()}
    assert old_ids <= trashed


def test_update_clears_interest(client, db_session):
    bp = client.post("/api/bill-payments", json=_payload()).json()
    updated = client.put(f"/api/bill-payments/{bp['id']}", json={"interestRate": None}).json()
    assert updated["interestRate"] is None
    assert updated["interestAmount"] is None
    assert _entry(db_session, updated["carryoverTransactionId"]).amount == -400.0


def test_update_switches_to_financed(client, db_session):
    bp = client.post("/api/bill-payments", json=_payload()).json()
    res = client.put(
        f"/api/bill-payments/{bp['id']}",
        json={"paymentType": "FINANCED", "installments": 2},
    )
    assert res.status_code == 200
    updated = res.json()
    assert updated["paymentType"] == "FINANCED"
    assert updated["carryoverTransactionId"] is None
    assert updated["installment"]["totalInstallments"] == 2
    assert updated["installment"]["totalAmount"] == 440.0
    assert _entry(db_session, bp["carryoverTransactionId"]).deleted_at is not None


def test_update_rejects_empty_and_invalid(client):
    bp = client.post("/api/bill-payments", json=_payload()).json()
    assert client.put(f"/api/bill-payments/{bp['id']}", json={}).status_code == 400
    assert client.put(f"/api/bill-payments/{bp['id']}", json={"amountPaid": 1000}).status_code == 400
    assert client.put(f"/api/bill-payments/{bp['id']}", json={"paymentType": "FINANCED"}).status_code == 400
    assert client.put("/api/bill-payments/9999", json={"amountPaid": 1}).status_code == 404

    # Rejected edits leave the record as it was
    unchanged = client.get(f"/api/bill-payments/{bp['id']}").json()
    assert unchanged["amountPaid"] == 600.0
    assert unchanged["carryoverTransactionId"] == bp["carryoverTransactionId"]


def test_delete_partial_payment(client, db_session):
    bp = client.post("/api/bill-payments", json=_payload()).json()

    res = client.delete(f"/api/bill-payments/{bp['id']}")
    assert res.status_code == 200
    assert res.json()["success"] is True
    assert client.get(f"/api/bill-payments/{bp['id']}").status_code == 404

    for txn_id in (bp["entryTransactionId"], bp["carryoverTransactionId"]):
        assert _entry(db_session, txn_id).deleted_at is not None

    # The period is free again
    assert client.post("/api/bill-payments", json=_payload()).status_code == 201


def test_delete_financed_payment_removes_plan(client, db_session):
    bp = client.post(
        "/api/bill-payments",
        json=_payload(paymentType="FINANCED", amountPaid=200, installments=4),
    ).json()
    plan = db_session.get(models.Installment, bp["installmentId"])
    entry_ids = [t.id for t in plan.transactions]

    assert client.delete(f"/api/bill-payments/{bp['id']}").status_code == 200

    assert db_session.get(models.Installment, bp["installmentId"]) is None
    for txn_id in entry_ids:
        row = _entry(db_session, txn_id)
        assert row.deleted_at is not None
        assert row.installment_id is None
    assert client.get("/api/installments").json() == []
    assert client.delete("/api/bill-payments/9999").status_code == 404


def test_update_keeps_negative_realized_rate(client):
    bp = client.post("/api/bill-payments", json=_payload(amountPaid=700, interestRate=None)).json()
    imported = client.post(
        "/api/import",
        json={
            "origin": "Nubank",
            "transactions": [{"description": "SALDO ROTATIVO", "amount": 290, "date": "2024-03-05"}],
        },
    ).json()
    assert imported["carryoverLinkedCount"] == 1

    linked = client.get(f"/api/bill-payments/{bp['id']}").json()
    assert linked["interestRate"] == -3.3333
    assert linked["interestAmount"] == -10.0

    res = client.put(f"/api/bill-payments/{bp['id']}", json={"amountPaid": 650})
    assert res.status_code == 200
    updated = res.json()
    assert updated["amountPaid"] == 650.0
    assert updated["amountCarried"] == 350.0
    assert updated["interestRate"] == -3.3333

    # A rate sent by the caller is still checked
    assert client.put(f"/api/bill-payments/{bp['id']}", json={"interestRate": -1}).status_code == 400

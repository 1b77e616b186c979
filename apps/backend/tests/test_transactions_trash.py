from __future__ import annotations

from datetime import date, timedelta

from billcycle import models


def _create(client, **overrides):
    body = {"description": "Mercado", "amount": 50, "date": "2024-03-06"}
    body.update(overrides)
    res = client.post("/api/transactions", json=body)
    assert res.status_code == 201
    return res.json()


def _exists(db_session, txn_id) -> bool:
    return db_session.query(models.Transaction).filter_by(id=txn_id).count() == 1


def test_create_and_list(client):
    created = _create(client)
    assert created["amount"] == -50.0
    assert created["date"] == "2024-03-06"
    assert created["kind"] == "REGULAR"
    assert created["origin"] == "Importacao CSV"
    _create(client, description="Salario", amount=5000, type="INCOME", origin="Conta", date="2024-03-05")
    _create(client, description="Aluguel", amount=1500, isFixed=True, date="2024-02-05")

    march = client.get("/api/transactions", params={"month": 3, "year": 2024}).json()
    assert [t["description"] for t in march] == ["Mercado", "Salario"]

    income = client.get("/api/transactions", params={"type": "INCOME"}).json()
    assert [t["amount"] for t in income] == [5000.0]

    fixed = client.get("/api/transactions", params={"isFixed": "true"}).json()
    assert [t["description"] for t in fixed] == ["Aluguel"]

    assert len(client.get("/api/transactions", params={"year": 2024}).json()) == 3
    assert client.get("/api/transactions", params={"origin": "Conta"}).json()[0]["description"] == "Salario"


def test_soft_delete_and_restore(client):
    created = _create(client)

    assert client.delete(f"/api/transactions/{created['id']}").json()["success"] is True
    assert client.get("/api/transactions").json() == []
    # Already in the trash
    assert client.delete(f"/api/transactions/{created['id']}").status_code == 404

    trash = client.get("/api/transactions/trash").json()
    assert [t["id"] for t in trash] == [created["id"]]
    assert trash[0]["deletedAt"] is not None

    restored = client.put("/api/transactions/trash", json={"id": created["id"]})
    assert restored.status_code == 200
    assert restored.json()["deletedAt"] is None
    assert [t["id"] for t in client.get("/api/transactions").json()] == [created["id"]]
    assert client.put("/api/transactions/trash", json={"id": created["id"]}).status_code == 404


def test_purge_single_entry(client, db_session):
    created = _create(client)

    # Live entries cannot be purged
    assert client.delete("/api/transactions/trash", params={"id": created["id"]}).status_code == 404

    client.delete(f"/api/transactions/{created['id']}")
    res = client.delete("/api/transactions/trash", params={"id": created["id"]})
    assert res.status_code == 200
    assert res.json()["count"] == 1
    assert not _exists(db_session, created["id"])
    assert client.get("/api/transactions/trash").json() == []


def test_clean_old_respects_retention(client, db_session, add_entry, clock):
    now = clock.now()
    old = add_entry("Antigo", 10, date(2024, 1, 5), deleted_at=now - timedelta(days=31))
    recent = add_entry("Recente", 10, date(2024, 3, 5), deleted_at=now - timedelta(days=5))
    live = add_entry("Vivo", 10, date(2024, 3, 5))
    old_id, recent_id, live_id = old.id, recent.id, live.id

    res = client.delete("/api/transactions/trash", params={"cleanOld": "true"})
    assert res.status_code == 200
    assert res.json()["count"] == 1
    assert not _exists(db_session, old_id)
    assert _exists(db_session, recent_id)
    assert _exists(db_session, live_id)


def test_purge_requires_target(client):
    assert client.delete("/api/transactions/trash").status_code == 400
    assert client.delete("/api/transactions/9999").status_code == 404


def test_purging_last_plan_entry_removes_plan(client, db_session):
    first = _create(client, description="Tenis", amount=100, isInstallment=True, totalInstallments=2)
    plan_id = first["installmentId"]
    entry_ids = [
        t["id"] for t in client.get("/api/transactions", params={"isInstallment": "true"}).json()
    ]
    assert len(entry_ids) == 2

    for txn_id in entry_ids:
        client.delete(f"/api/transactions/{txn_id}")

    client.delete("/api/transactions/trash", params={"id": entry_ids[0]})
    assert db_session.query(models.Installment).filter_by(id=plan_id).count() == 1

    client.delete("/api/transactions/trash", params={"id": entry_ids[1]})
    assert db_session.query(models.Installment).filter_by(id=plan_id).count() == 0


def test_create_rejects_bad_payload(client):
    assert client.post("/api/transactions", json={"description": "", "amount": 1, "date": "2024-03-01"}).status_code == 400
    assert client.post("/api/transactions", json={"description": "X", "amount": 1}).status_code == 400
    assert client.put("/api/transactions/trash", json={"id": 0}).status_code == 400

"""
E2E test of a loan's collection lifecycle through the HTTP API.

Onboard a borrower, disburse a daily loan, let installments go overdue,
collect them, reverse a mistaken payment, close the loan and finally show
that the paid history blocks deletion.
"""

import pytest
from datetime import datetime
from fastapi.testclient import TestClient

from microledger.api.dependencies import get_clock


@pytest.mark.e2e
def test_daily_loan_collection_lifecycle(client: TestClient, admin_headers, agent, agent_headers):
    clock = {"now": datetime(2024, 1, 1, 4, 0)}
    client.app.dependency_overrides[get_clock] = lambda: clock["now"]

    # Agent onboards a borrower and disburses a daily loan starting today
    response = client.post("/v1/borrowers", json={"name": "Ravi Kumar", "address": "Ward 4"}, headers=agent_headers)
    assert response.status_code == 201
    borrower_id = response.json()["id"]

    response = client.post(
        "/v1/loans",
        json={"borrower_id": borrower_id, "principal_cents": 3000, "num_installments": 3, "frequency": "DAILY"},
        headers=agent_headers,
    )
    assert response.status_code == 201
    loan = response.json()
    installment_ids = [i["id"] for i in loan["installments"]]
    assert [i["due_date"] for i in loan["installments"]] == ["2024-01-01", "2024-01-02", "2024-01-03"]

    # Two days later nothing has been collected
    clock["now"] = datetime(2024, 1, 3, 4, 0)
    response = client.post("/v1/installments/overdue-sweep", headers=admin_headers)
    assert response.json()["transitioned"] == 2

    response = client.get(f"/v1/borrowers/{borrower_id}/installments", headers=agent_headers)
    assert [(i["id"], i["status"]) for i in response.json()] == [
        (installment_ids[0], "OVERDUE"),
        (installment_ids[1], "OVERDUE"),
        (installment_ids[2], "PENDING"),
    ]

    # Agent collects everything, then one payment turns out to be a mistake
    for installment_id in installment_ids:
        response = client.post(
            f"/v1/installments/{installment_id}/pay", json={"amount_cents": 1000}, headers=agent_headers
        )
        assert response.status_code == 200

    response = client.post(f"/v1/installments/{installment_ids[2]}/unpaid", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "PENDING"

    response = client.get(f"/v1/borrowers/{borrower_id}/installments", headers=agent_headers)
    assert [i["id"] for i in response.json()] == [installment_ids[2]]

    response = client.post(
        f"/v1/installments/{installment_ids[2]}/pay",
        json={"amount_cents": 1000, "notes": "paid at shop"},
        headers=agent_headers,
    )
    assert response.status_code == 200

    response = client.get(f"/v1/borrowers/{borrower_id}/installments", headers=agent_headers)
    assert response.status_code == 404

    # Day book shows exactly one payment per installment
    response = client.get("/v1/transactions/today", headers=admin_headers)
    payments = [t for t in response.json() if t["type"] == "INSTALLMENT"]
    assert sorted(t["installment_id"] for t in payments) == sorted(installment_ids)

    # A loan with collected installments cannot be deleted
    response = client.delete(f"/v1/loans/{loan['id']}", headers=admin_headers)
    assert response.status_code == 409

    response = client.get(f"/v1/agents/{agent.id}/borrowers", headers=agent_headers)
    assert [b["id"] for b in response.json()] == [borrower_id]

from __future__ import annotations

from fastapi.testclient import TestClient

from tests.conftest import SeededCompany


def _create_issuance(client: TestClient, seeded: SeededCompany, headers: dict[str, str], quantity: str) -> dict:
    response = client.post(
        f"/api/companies/{seeded.company.id}/transactions",
        json={
            "type": "ISSUANCE",
            "share_class_id": seeded.common.id,
            "quantity": quantity,
            "to_shareholder_id": seeded.alice.id,
            "price_per_share": "1.25",
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_issuance_lifecycle_updates_cap_table(
    client: TestClient, seeded: SeededCompany, actor_headers: dict[str, str]
) -> None:
    base = f"/api/companies/{seeded.company.id}"
    created = _create_issuance(client, seeded, actor_headers, "8000")
    assert created["status"] == "DRAFT"
    assert created["quantity"] == "8000"
    assert created["total_value"] == "10000"
    assert created["to_shareholder"]["name"] == "Alice Founder"
    assert created["share_class"] == {"id": seeded.common.id, "name": "ON", "type": "COMMON_SHARES"}
    assert created["created_by"] == "user-admin"

    submitted = client.post(f"{base}/transactions/{created['id']}/submit", headers=actor_headers)
    assert submitted.json()["status"] == "SUBMITTED"

    confirmed = client.post(f"{base}/transactions/{created['id']}/confirm", headers=actor_headers)
    assert confirmed.status_code == 200, confirmed.text
    assert confirmed.json()["status"] == "CONFIRMED"
    assert confirmed.json()["confirmed_at"] is not None

    cap_table = client.get(f"{base}/cap-table", headers=actor_headers).json()
    assert cap_table["summary"]["total_shares"] == "8000"
    [entry] = cap_table["entries"]
    assert entry["shareholder_id"] == seeded.alice.id
    assert entry["ownership_pct"] == "100"

    detail = client.get(f"{base}/transactions/{created['id']}", headers=actor_headers).json()
    assert detail["settlement_records"] == []


def test_business_rule_violation_renders_error_body(
    client: TestClient, seeded: SeededCompany, actor_headers: dict[str, str]
) -> None:
    response = client.post(
        f"/api/companies/{seeded.company.id}/transactions",
        json={
            "type": "TRANSFER",
            "share_class_id": seeded.common.id,
            "quantity": "50000",
            "from_shareholder_id": seeded.alice.id,
            "to_shareholder_id": seeded.bob.id,
        },
        headers=actor_headers,
    )

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "TXN_INSUFFICIENT_SHARES"
    assert body["message_key"] == "errors.txn.insufficientShares"
    assert body["details"]["available"] == "0"
    assert body["details"]["requested"] == "50000"


def test_unknown_transaction_is_404(client: TestClient, seeded: SeededCompany, actor_headers: dict[str, str]) -> None:
    response = client.get(f"/api/companies/{seeded.company.id}/transactions/missing", headers=actor_headers)

    assert response.status_code == 404
    assert response.json() == {
        "code": "TRANSACTION_NOT_FOUND",
        "message_key": "errors.transaction.notFound",
        "details": {"id": "missing"},
    }


def test_invalid_transition_is_rejected(
    client: TestClient, seeded: SeededCompany, actor_headers: dict[str, str]
) -> None:
    created = _create_issuance(client, seeded, actor_headers, "10")

    response = client.post(
        f"/api/companies/{seeded.company.id}/transactions/{created['id']}/confirm", headers=actor_headers
    )

    assert response.status_code == 422
    assert response.json()["details"] == {"current_status": "DRAFT", "target_status": "CONFIRMED"}


def test_fail_and_cancel_endpoints(client: TestClient, seeded: SeededCompany, actor_headers: dict[str, str]) -> None:
    base = f"/api/companies/{seeded.company.id}/transactions"
    created = _create_issuance(client, seeded, actor_headers, "10")
    client.post(f"{base}/{created['id']}/submit", headers=actor_headers)

    failed = client.post(f"{base}/{created['id']}/fail", json={"reason": "Bank rejected"}, headers=actor_headers)
    assert failed.json()["status"] == "FAILED"
    assert failed.json()["failure_reason"] == "Bank rejected"

    cancelled = client.post(f"{base}/{created['id']}/cancel", headers=actor_headers)
    assert cancelled.json()["status"] == "CANCELLED"
    assert cancelled.json()["cancelled_by"] == "user-admin"


def test_list_transactions_with_filters(
    client: TestClient, seeded: SeededCompany, actor_headers: dict[str, str]
) -> None:
    base = f"/api/companies/{seeded.company.id}/transactions"
    first = _create_issuance(client, seeded, actor_headers, "10")
    _create_issuance(client, seeded, actor_headers, "20")
    client.post(f"{base}/{first['id']}/submit", headers=actor_headers)

    submitted = client.get(base, params={"status": "SUBMITTED"}, headers=actor_headers).json()
    assert submitted["total"] == 1
    assert submitted["items"][0]["id"] == first["id"]

    paged = client.get(base, params={"limit": 1, "sort": "-quantity"}, headers=actor_headers).json()
    assert paged["total"] == 2
    assert paged["limit"] == 1
    assert paged["items"][0]["quantity"] == "20"


def test_requests_without_actor_are_unauthorized(client: TestClient, seeded: SeededCompany) -> None:
    response = client.get(f"/api/companies/{seeded.company.id}/transactions")

    assert response.status_code == 401

from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from tests.conftest import SeededCompany, add_option_grant


def test_vesting_and_exercise(
    client: TestClient, db_session: Session, seeded: SeededCompany, actor_headers: dict[str, str]
) -> None:
    grant = add_option_grant(db_session, seeded)
    base = f"/api/companies/{seeded.company.id}/option-grants/{grant.id}"

    vesting = client.get(f"{base}/vesting", headers=actor_headers).json()
    assert vesting["vested"] == "24000"
    assert vesting["unvested"] == "24000"
    assert vesting["cliff_reached"] is True

    exercised = client.post(f"{base}/exercise", json={"quantity": "1000"}, headers=actor_headers)
    assert exercised.status_code == 200, exercised.text
    assert exercised.json()["exercised"] == "1000"

    too_many = client.post(f"{base}/exercise", json={"quantity": "23001"}, headers=actor_headers)
    assert too_many.status_code == 422
    assert too_many.json()["code"] == "OPT_EXERCISE_EXCEEDS_VESTED"

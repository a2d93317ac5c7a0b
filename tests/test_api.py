import pytest

pytestmark = pytest.mark.asyncio

DEATH = {"deceasedName": "Lorenzo Bautista", "dateOfDeath": "2024-04-30", "informantName": "Maria Bautista"}


async def _submit_death(client, headers, **extra):
    resp = await client.post("/api/death-registrations", json={**DEATH, **extra}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def _status(client, headers, resource, request_id, **body):
    return await client.put(f"/api/{resource}/{request_id}/status", json=body, headers=headers)


async def test_health(client):
    resp = await client.get("/health")
    assert resp.json() == {"ok": True}


async def test_citizen_submission_sets_initial_state(client, citizen_headers):
    """Submissions start at the first stage with a reference number, fee and history."""
    data = await _submit_death(client, citizen_headers)
    assert data["status"] == "SUBMITTED"
    assert data["registrationNumber"].startswith("DR-")
    assert data["amountDue"] == 50.0
    assert data["requesterId"] == "citizen-1"
    assert data["requesterName"] == "Juana Dela Cruz"
    assert [h["toStatus"] for h in data["stateHistory"]] == ["SUBMITTED"]
    assert data["statusView"]["progressPercent"] == 14
    assert "_id" not in data


async def test_delayed_registration_fee(client, citizen_headers):
    data = await _submit_death(client, citizen_headers, registrationType="delayed")
    assert data["registrationType"] == "DELAYED"
    assert data["amountDue"] == 150.0


async def test_submission_ignores_protected_fields(client, citizen_headers):
    data = await _submit_death(client, citizen_headers, status="CLAIMED", amountDue=0, orNumber="FAKE")
    assert data["status"] == "SUBMITTED"
    assert data["amountDue"] == 50.0
    assert "orNumber" not in data


async def test_submission_missing_field_is_422(client, citizen_headers):
    resp = await client.post("/api/death-registrations", json={"deceasedName": "X"}, headers=citizen_headers)
    assert resp.status_code == 422
    assert resp.json() == {"error": "Missing required field: dateOfDeath"}


async def test_full_death_registration_walk(client, citizen_headers, staff_headers, fake_db):
    item = await _submit_death(client, citizen_headers)
    rid = item["id"]

    resp = await _status(client, staff_headers, "death-registrations", rid, status="PROCESSING")
    assert resp.status_code == 200
    assert resp.json()["data"]["verifiedAt"]

    resp = await _status(client, staff_headers, "death-registrations", rid, status="PAID")
    assert resp.status_code == 422
    assert resp.json() == {"error": "Missing required field: orNumber"}

    resp = await _status(client, staff_headers, "death-registrations", rid, status="PAID", orNumber="OR-1001")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["orNumber"] == "OR-1001"
    assert data["paymentStatus"] == "PAID"
    assert data["paidAt"]

    for status in ("REGISTERED", "FOR_PICKUP", "CLAIMED"):
        resp = await _status(client, staff_headers, "death-registrations", rid, status=status)
        assert resp.status_code == 200, resp.text

    data = resp.json()["data"]
    assert data["status"] == "CLAIMED"
    assert data["pickupStatus"] == "CLAIMED"
    assert data["statusView"]["progressPercent"] == 100
    history = data["stateHistory"]
    assert [h["toStatus"] for h in history] == ["SUBMITTED", "PROCESSING", "PAID", "REGISTERED", "FOR_PICKUP", "CLAIMED"]
    assert history[1]["fromStatus"] == "SUBMITTED"
    assert history[1]["byUserName"] == "Registry Clerk"

    stored = fake_db.death_registrations.docs[0]
    assert stored["status"] == "CLAIMED"


async def test_invalid_transition_is_400(client, citizen_headers, staff_headers):
    item = await _submit_death(client, citizen_headers)
    resp = await _status(client, staff_headers, "death-registrations", item["id"], status="REGISTERED")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Transition not allowed: SUBMITTED → REGISTERED"}


async def test_unknown_status_value_is_400(client, citizen_headers, staff_headers):
    item = await _submit_death(client, citizen_headers)
    resp = await _status(client, staff_headers, "death-registrations", item["id"], status="TELEPORTED")
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("Invalid status value: TELEPORTED")


async def test_status_body_without_status_is_422(client, citizen_headers, staff_headers):
    item = await _submit_death(client, citizen_headers)
    resp = await client.patch(f"/api/death-registrations/{item['id']}/status", json={"remarks": "x"}, headers=staff_headers)
    assert resp.status_code == 422
    assert "status" in resp.json()["error"]


async def test_citizen_cannot_change_status(client, citizen_headers):
    item = await _submit_death(client, citizen_headers)
    resp = await _status(client, citizen_headers, "death-registrations", item["id"], status="PROCESSING")
    assert resp.status_code == 403
    assert resp.json() == {"error": "Not authorized"}


async def test_bad_token_is_401(client):
    resp = await client.get("/api/death-registrations", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid credentials"}


async def test_unknown_resource_and_id_are_404(client, staff_headers):
    resp = await client.get("/api/spaceships", headers=staff_headers)
    assert resp.status_code == 404
    assert resp.json() == {"error": "Unknown resource: spaceships"}

    resp = await client.get("/api/death-registrations/nope", headers=staff_headers)
    assert resp.status_code == 404
    assert resp.json() == {"error": "Death Registration not found"}


async def test_citizens_only_see_their_own(client, citizen_headers, other_citizen_headers, staff_headers):
    mine = await _submit_death(client, citizen_headers)
    theirs = await _submit_death(client, other_citizen_headers)

    resp = await client.get("/api/death-registrations", headers=citizen_headers)
    assert [d["id"] for d in resp.json()["data"]] == [mine["id"]]

    resp = await client.get(f"/api/death-registrations/{theirs['id']}", headers=citizen_headers)
    assert resp.status_code == 404

    resp = await client.get("/api/death-registrations", headers=staff_headers)
    assert resp.json()["pagination"]["total"] == 2


async def test_list_filters_and_search(client, citizen_headers, staff_headers):
    first = await _submit_death(client, citizen_headers)
    await _submit_death(client, citizen_headers, deceasedName="Rosa Villanueva")
    await _status(client, staff_headers, "death-registrations", first["id"], status="PROCESSING")

    resp = await client.get("/api/death-registrations", params={"status": "processing"}, headers=staff_headers)
    assert [d["id"] for d in resp.json()["data"]] == [first["id"]]

    resp = await client.get("/api/death-registrations", params={"search": "villanueva"}, headers=staff_headers)
    body = resp.json()
    assert body["success"] is True
    assert [d["deceasedName"] for d in body["data"]] == ["Rosa Villanueva"]
    assert body["pagination"] == {
        "page": 1, "pageSize": 20, "total": 1, "totalPages": 1, "hasPrev": False, "hasNext": False,
    }


async def test_stats(client, citizen_headers, staff_headers):
    first = await _submit_death(client, citizen_headers)
    await _submit_death(client, citizen_headers)
    await _status(client, staff_headers, "death-registrations", first["id"], status="REJECTED", remarks="Incomplete")

    resp = await client.get("/api/death-registrations/stats", headers=staff_headers)
    data = resp.json()["data"]
    assert data["total"] == 2
    assert data["open"] == 1
    assert data["byStatus"]["SUBMITTED"] == 1
    assert data["byStatus"]["REJECTED"] == 1


async def test_rejection_copies_remarks_to_reason(client, citizen_headers, staff_headers):
    item = await _submit_death(client, citizen_headers)
    resp = await _status(client, staff_headers, "death-registrations", item["id"], status="REJECTED")
    assert resp.status_code == 422
    resp = await _status(client, staff_headers, "death-registrations", item["id"], status="REJECTED", remarks="Unreadable ID")
    data = resp.json()["data"]
    assert data["rejectionReason"] == "Unreadable ID"
    assert data["rejectedAt"]


async def test_permit_statuses_are_lowercase(client, citizen_headers, staff_headers):
    resp = await client.post(
        "/api/permits", json={"deceasedName": "Jose Rizal", "permitType": "cremation"}, headers=citizen_headers,
    )
    data = resp.json()["data"]
    assert data["status"] == "submitted"
    assert data["permitType"] == "CREMATION"
    assert data["amountDue"] == 750.0
    assert data["pickupStatus"] == "NOT_READY"

    resp = await _status(client, staff_headers, "permits", data["id"], status="for_payment")
    assert resp.json()["data"]["status"] == "for_payment"

    resp = await _status(client, staff_headers, "permits", data["id"], status="issued")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Transition not allowed: for_payment → issued"}


async def test_invalid_permit_type(client, citizen_headers):
    resp = await client.post("/api/permits", json={"deceasedName": "X", "permitType": "launch"}, headers=citizen_headers)
    assert resp.status_code == 400
    assert "Invalid permit type" in resp.json()["error"]


async def test_acknowledge_water_issue(client, citizen_headers, staff_headers):
    resp = await client.post(
        "/api/water-issues",
        json={"location": "Purok 2", "description": "Burst main", "priority": "urgent"},
        headers=citizen_headers,
    )
    issue = resp.json()["data"]
    assert issue["priority"] == "URGENT"
    assert issue["ticketNumber"].startswith("WI-")

    resp = await client.patch(f"/api/water-issues/{issue['id']}/acknowledge", json={"acknowledgedBy": "  "}, headers=staff_headers)
    assert resp.status_code == 422
    assert resp.json() == {"error": "acknowledgedBy is required"}

    resp = await client.patch(f"/api/water-issues/{issue['id']}/acknowledge", json={"acknowledgedBy": "Engr. Lim"}, headers=staff_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "ACKNOWLEDGED"
    assert data["acknowledgedBy"] == "Engr. Lim"
    assert data["acknowledgedAt"]

    resp = await client.post(f"/api/water-issues/{issue['id']}/acknowledge", json={"acknowledgedBy": "Engr. Lim"}, headers=staff_headers)
    assert resp.status_code == 400


async def test_acknowledge_not_supported(client, citizen_headers, staff_headers):
    item = await _submit_death(client, citizen_headers)
    resp = await client.patch(f"/api/death-registrations/{item['id']}/acknowledge", json={"acknowledgedBy": "A"}, headers=staff_headers)
    assert resp.status_code == 400


async def test_amenity_payment_deadline(client, citizen_headers, staff_headers):
    resp = await client.post(
        "/api/amenity-reservations", json={"amenityName": "Covered Court", "reservationDate": "2024-06-01"},
        headers=citizen_headers,
    )
    item = resp.json()["data"]
    assert item["status"] == "PENDING_REVIEW"
    resp = await _status(client, staff_headers, "amenity-reservations", item["id"], status="AWAITING_PAYMENT")
    data = resp.json()["data"]
    assert data["reviewedAt"]
    assert data["paymentDueAt"] > data["reviewedAt"]


async def test_generic_update_routes_status_through_transition_rules(client, citizen_headers, staff_headers):
    item = await _submit_death(client, citizen_headers)
    resp = await client.patch(f"/api/death-registrations/{item['id']}", json={"notes": "Called informant"}, headers=staff_headers)
    assert resp.json()["data"]["notes"] == "Called informant"
    assert resp.json()["data"]["status"] == "SUBMITTED"

    resp = await client.put(f"/api/death-registrations/{item['id']}", json={"status": "CLAIMED"}, headers=staff_headers)
    assert resp.status_code == 400

    resp = await client.put(f"/api/death-registrations/{item['id']}", json={"status": "PROCESSING", "notes": "ok"}, headers=staff_headers)
    assert resp.json()["data"]["status"] == "PROCESSING"


async def test_override_requires_admin_and_reason(client, citizen_headers, staff_headers, admin_headers):
    item = await _submit_death(client, citizen_headers)
    url = f"/api/death-registrations/{item['id']}/override"

    resp = await client.post(url, json={"action": "approve", "reason": "Court order"}, headers=staff_headers)
    assert resp.status_code == 403

    resp = await client.post(url, json={"action": "approve", "reason": "   "}, headers=admin_headers)
    assert resp.status_code == 422
    assert resp.json() == {"error": "Override reason is required"}

    resp = await client.post(url, json={"action": "expedite", "reason": "Court order"}, headers=admin_headers)
    assert resp.status_code == 400


async def test_override_approve_jumps_ahead_and_is_audited(client, citizen_headers, admin_headers, fake_db):
    item = await _submit_death(client, citizen_headers)
    resp = await client.post(
        f"/api/death-registrations/{item['id']}/override",
        json={"action": "approve", "reason": "Court order 2024-118"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["data"]["status"] == "REGISTERED"
    assert body["audit"]["reason"] == "Court order 2024-118"
    assert body["audit"]["previousStatus"] == "SUBMITTED"
    assert body["audit"]["byUserId"] == "admin-1"

    overrides = body["data"]["overrides"]
    assert [o["action"] for o in overrides] == ["approve"]
    assert body["data"]["stateHistory"][-1]["override"] is True

    [log] = fake_db.audit_logs.docs
    assert log["event"] == "DEATH_REGISTRATION_OVERRIDE_APPROVE"
    assert log["requestId"] == item["id"]


async def test_override_fee_actions(client, citizen_headers, admin_headers):
    resp = await client.post("/api/permits", json={"deceasedName": "A", "permitType": "BURIAL"}, headers=citizen_headers)
    permit = resp.json()["data"]
    url = f"/api/permits/{permit['id']}/override"

    resp = await client.post(url, json={"action": "adjust_fee", "reason": "Indigent"}, headers=admin_headers)
    assert resp.status_code == 422

    resp = await client.post(url, json={"action": "adjust_fee", "reason": "Indigent", "newAmount": 250}, headers=admin_headers)
    data = resp.json()["data"]
    assert data["amountDue"] == 250.0
    assert data["status"] == "submitted"
    assert resp.json()["audit"]["previousAmount"] == 500.0

    resp = await client.post(url, json={"action": "waive_fee", "reason": "Senior citizen"}, headers=admin_headers)
    data = resp.json()["data"]
    assert data["amountDue"] == 0.0
    assert data["paymentStatus"] == "WAIVED"
    assert len(data["overrides"]) == 2


async def test_override_not_supported_for_tickets(client, citizen_headers, admin_headers):
    resp = await client.post("/api/drainage", json={"location": "A", "description": "Clogged"}, headers=citizen_headers)
    item = resp.json()["data"]
    resp = await client.post(f"/api/drainage/{item['id']}/override", json={"action": "approve", "reason": "x"}, headers=admin_headers)
    assert resp.status_code == 400


async def test_lifecycle_endpoints(client):
    resp = await client.get("/api/lifecycles")
    kinds = [lc["kind"] for lc in resp.json()["data"]]
    assert "death_registration" in kinds and "issuance" in kinds

    resp = await client.get("/api/lifecycles/permits")
    data = resp.json()["data"]
    assert data["initial"] == "submitted"
    assert "claimed" in data["terminal"]

    resp = await client.get("/api/lifecycles/death_registration/render", params={"status": "PAID"})
    data = resp.json()["data"]
    assert data["progressPercent"] == 57
    assert [a["label"] for a in data["actions"]] == ["Complete Registration"]

    resp = await client.get("/api/lifecycles/death_registration/render", params={"status": "bogus"})
    assert resp.status_code == 200
    assert resp.json()["data"]["tone"] == "neutral"

    resp = await client.get("/api/lifecycles/spaceship")
    assert resp.status_code == 404


async def test_status_change_loses_to_a_concurrent_one(client, citizen_headers, staff_headers, fake_db, monkeypatch):
    """The write only lands if nobody moved the request since it was read."""
    from civreg.repositories import requests_repo

    item = await _submit_death(client, citizen_headers)
    await _status(client, staff_headers, "death-registrations", item["id"], status="PROCESSING")
    real_find = requests_repo.find_by_id

    async def find_then_reject(collection, request_id):
        doc = await real_find(collection, request_id)
        fake_db[collection].docs[0]["status"] = "REJECTED"
        return doc
    monkeypatch.setattr(requests_repo, "find_by_id", find_then_reject)

    resp = await _status(client, staff_headers, "death-registrations", item["id"], status="PAID", orNumber="OR-7")
    assert resp.status_code == 409
    assert "changed by someone else" in resp.json()["error"]
    stored = fake_db.death_registrations.docs[0]
    assert stored["status"] == "REJECTED"
    assert [h["toStatus"] for h in stored["stateHistory"]] == ["SUBMITTED", "PROCESSING"]
    assert "orNumber" not in stored


async def test_certificate_expedite_and_waive_fee(client, citizen_headers, admin_headers):
    resp = await client.post("/api/certificates", json={"certificateType": "DEATH"}, headers=citizen_headers)
    assert resp.status_code == 201, resp.text
    url = f"/api/certificates/{resp.json()['data']['id']}/override"

    resp = await client.post(url, json={"action": "expedite", "reason": "Medical emergency"}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["status"] == "PROCESSING"
    assert data["processingAt"]
    assert data["stateHistory"][-1]["override"] is True
    assert data["stateHistory"][-1]["toStatus"] == "PROCESSING"

    resp = await client.post(url, json={"action": "waive_fee", "reason": "Indigent family"}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["status"] == "READY_FOR_PICKUP"
    assert data["amountDue"] == 0.0
    assert data["paymentStatus"] == "WAIVED"
    assert data["pickupStatus"] == "READY_FOR_PICKUP"
    assert data["readyAt"]
    assert [o["action"] for o in data["overrides"]] == ["expedite", "waive_fee"]


async def test_reset_status_clears_stage_timestamps(client, citizen_headers, staff_headers, admin_headers, fake_db):
    item = await _submit_death(client, citizen_headers)
    rid = item["id"]
    await _status(client, staff_headers, "death-registrations", rid, status="PROCESSING")
    resp = await _status(client, staff_headers, "death-registrations", rid, status="PAID", orNumber="OR-55")
    assert resp.json()["data"]["paidAt"]

    resp = await client.post(
        f"/api/death-registrations/{rid}/override",
        json={"action": "reset_status", "reason": "Wrong deceased record"},
        headers=admin_headers,
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["status"] == "SUBMITTED"
    assert data.get("verifiedAt") is None
    assert data.get("paidAt") is None
    assert data["stateHistory"][-1]["fromStatus"] == "PAID"
    assert data["stateHistory"][-1]["override"] is True
    stored = fake_db.death_registrations.docs[0]
    assert stored["verifiedAt"] is None
    assert stored["paidAt"] is None

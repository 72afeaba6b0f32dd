"""
Tests for /api/claim-requests: creation, admin transitions, corrections and reads.
"""

import jwt
import pytest
from sqlalchemy.exc import OperationalError

from app.claims import lifecycle
from app.config import settings
from app.models.tables import ClaimRequest


async def _detail(client, claim_id: int) -> dict:
    response = await client.get("/api/claim-requests/detail", params={"claim_id": claim_id})
    assert response.status_code == 200
    return response.json()["data"]


class TestCreate:

    async def test_create_bare_claim(self, client):
        response = await client.post("/api/claim-requests", json={"user_id": 7, "selected_car_id": 3})

        assert response.status_code == 201
        claim = response.json()["claim"]
        assert claim["status"] == "pending"
        assert claim["accident_detail_id"] is None
        assert claim["version"] == 1

    async def test_bare_claim_hidden_from_listing(self, client):
        await client.post("/api/claim-requests", json={"user_id": 7})
        response = await client.get("/api/claim-requests/listall")
        assert response.json()["data"] == []

    async def test_user_id_required(self, client):
        response = await client.post("/api/claim-requests", json={})
        assert response.status_code == 400
        assert response.json()["error"] == "validation"

    async def test_attach_accident(self, client, submitted_claim):
        created = await client.post("/api/claim-requests", json={"user_id": 7})
        claim_id = created.json()["claim"]["id"]

        response = await client.put(
            f"/api/claim-requests/{claim_id}/accident",
            json={"accident_detail_id": submitted_claim["accident_detail_id"]},
        )

        assert response.status_code == 200
        assert response.json()["claim"]["accident_detail_id"] == submitted_claim["accident_detail_id"]
        assert response.json()["claim"]["version"] == 2

    async def test_attach_missing_accident(self, client):
        created = await client.post("/api/claim-requests", json={"user_id": 7})
        claim_id = created.json()["claim"]["id"]

        response = await client.put(f"/api/claim-requests/{claim_id}/accident", json={"accident_detail_id": 555})

        assert response.status_code == 404


class TestPatchStatus:

    async def test_mark_incomplete_with_note(self, client, submitted_claim):
        claim_id = submitted_claim["claim_id"]

        response = await client.patch(
            f"/api/claim-requests/{claim_id}",
            json={"status": "incomplete", "admin_note": "license photo missing"},
        )

        assert response.status_code == 200
        detail = await _detail(client, claim_id)
        assert detail["status"] == "incomplete"
        assert detail["admin_note"] == "license photo missing"

    async def test_omitted_fields_keep_stored_values(self, client, submitted_claim):
        claim_id = submitted_claim["claim_id"]
        await client.patch(
            f"/api/claim-requests/{claim_id}",
            json={"status": "approved", "approved_by": 12, "approved_at": "2024-05-03T10:00:00"},
        )

        response = await client.patch(f"/api/claim-requests/{claim_id}", json={"admin_note": "paid out"})

        assert response.status_code == 200
        claim = response.json()["claim"]
        assert claim["status"] == "approved"
        assert claim["approved_by"] == 12
        assert claim["approved_at"].startswith("2024-05-03T10:00:00")
        assert claim["admin_note"] == "paid out"

    async def test_null_fields_keep_stored_values(self, client, submitted_claim):
        claim_id = submitted_claim["claim_id"]
        await client.patch(f"/api/claim-requests/{claim_id}", json={"admin_note": "first look"})

        response = await client.patch(
            f"/api/claim-requests/{claim_id}", json={"status": None, "admin_note": None}
        )

        assert response.json()["claim"]["admin_note"] == "first look"
        assert response.json()["claim"]["status"] == "pending"

    async def test_every_patch_bumps_version_and_timestamp(self, client, submitted_claim):
        claim_id = submitted_claim["claim_id"]
        before = await _detail(client, claim_id)

        response = await client.patch(f"/api/claim-requests/{claim_id}", json={})

        claim = response.json()["claim"]
        assert claim["version"] == before["version"] + 1
        assert claim["updated_at"] >= before["updated_at"]

    async def test_unknown_status_rejected(self, client, submitted_claim):
        claim_id = submitted_claim["claim_id"]

        response = await client.patch(f"/api/claim-requests/{claim_id}", json={"status": "archived"})

        assert response.status_code == 400
        assert response.json()["error"] == "validation"
        assert (await _detail(client, claim_id))["status"] == "pending"

    async def test_terminal_status_cannot_reopen(self, client, submitted_claim):
        claim_id = submitted_claim["claim_id"]
        await client.patch(f"/api/claim-requests/{claim_id}", json={"status": "rejected"})

        response = await client.patch(f"/api/claim-requests/{claim_id}", json={"status": "pending"})

        assert response.status_code == 409
        assert response.json()["error"] == "invalid_transition"

    async def test_stale_version_conflicts(self, client, submitted_claim):
        claim_id = submitted_claim["claim_id"]
        first = await client.patch(f"/api/claim-requests/{claim_id}", json={"status": "incomplete", "version": 1})
        assert first.status_code == 200

        second = await client.patch(f"/api/claim-requests/{claim_id}", json={"status": "approved", "version": 1})

        assert second.status_code == 409
        assert second.json()["error"] == "conflict"
        assert (await _detail(client, claim_id))["status"] == "incomplete"

    async def test_unknown_claim(self, client):
        response = await client.patch("/api/claim-requests/9999", json={"status": "approved"})
        assert response.status_code == 404
        assert response.json() == {"ok": False, "error": "not_found", "message": "claim not found"}


class TestCorrection:

    async def test_correction_appends_ordered_steps(self, client, submitted_claim):
        claim_id = submitted_claim["claim_id"]

        first = await client.patch(
            f"/api/claim-requests/{claim_id}/correction", json={"note": "uploaded license"}
        )
        second = await client.patch(f"/api/claim-requests/{claim_id}/correction")

        assert first.status_code == 200
        assert second.status_code == 200
        detail = await _detail(client, claim_id)
        assert detail["status"] == "incomplete"
        assert [(s["step_type"], s["step_order"]) for s in detail["steps"]] == [
            ("corrected", 1), ("corrected", 2),
        ]
        assert detail["steps"][0]["note"] == "uploaded license"
        assert detail["steps"][1]["note"] is None

    async def test_correction_on_closed_claim_refused(self, client, submitted_claim):
        claim_id = submitted_claim["claim_id"]
        await client.patch(f"/api/claim-requests/{claim_id}", json={"status": "approved"})

        response = await client.patch(f"/api/claim-requests/{claim_id}/correction", json={"note": "late"})

        assert response.status_code == 409
        detail = await _detail(client, claim_id)
        assert detail["status"] == "approved"
        assert detail["steps"] == []

    async def test_failed_step_insert_rolls_back_status(self, client, submitted_claim, monkeypatch):
        claim_id = submitted_claim["claim_id"]

        async def broken_next_step_order(session, claim_id):
            raise OperationalError("SELECT max(step_order)", {}, Exception("connection lost"))

        monkeypatch.setattr(lifecycle, "next_step_order", broken_next_step_order)

        response = await client.patch(f"/api/claim-requests/{claim_id}/correction", json={"note": "x"})

        assert response.status_code == 500
        assert response.json() == {"ok": False, "error": "internal", "message": "server error"}
        detail = await _detail(client, claim_id)
        assert detail["status"] == "pending"
        assert detail["version"] == 1
        assert detail["steps"] == []

    async def test_correction_unknown_claim(self, client):
        response = await client.patch("/api/claim-requests/9999/correction")
        assert response.status_code == 404


class TestReads:

    async def test_list_by_user(self, client, submit_payload):
        await client.post("/api/claim-submit/submit", json=submit_payload)
        submit_payload["user_id"] = 8
        await client.post("/api/claim-submit/submit", json=submit_payload)

        response = await client.get("/api/claim-requests/list", params={"user_id": 7})

        data = response.json()["data"]
        assert len(data) == 1
        assert data[0]["user_id"] == 7
        assert data[0]["car_id"] == submit_payload["selected_car_id"]
        assert data[0]["thumbnail_url"] == "https://img.example/evidence.jpg"
        assert len(data[0]["images"]) == 2

    async def test_listall_most_recent_activity_first(self, client, submit_payload):
        first = await client.post("/api/claim-submit/submit", json=submit_payload)
        await client.post("/api/claim-submit/submit", json=submit_payload)
        first_id = first.json()["data"]["claim_id"]
        await client.patch(f"/api/claim-requests/{first_id}", json={"admin_note": "bump"})

        response = await client.get("/api/claim-requests/listall")

        assert [c["claim_id"] for c in response.json()["data"]][0] == first_id

    async def test_listall_limit(self, client, submit_payload):
        for _ in range(3):
            await client.post("/api/claim-submit/submit", json=submit_payload)

        response = await client.get("/api/claim-requests/listall", params={"limit": 2})

        assert len(response.json()["data"]) == 2

    async def test_detail_requires_claim_id(self, client):
        response = await client.get("/api/claim-requests/detail")
        assert response.status_code == 400

    @pytest.mark.parametrize("path", [
        "/api/claim-requests/detail",
        "/api/claim-requests/admin/detail",
        "/api/admin/detail",
    ])
    async def test_negative_claim_id_rejected(self, client, path):
        response = await client.get(path, params={"claim_id": -3})
        assert response.status_code == 400
        assert response.json()["error"] == "validation"

    async def test_detail_scoped_to_owner(self, client, submitted_claim):
        response = await client.get(
            "/api/claim-requests/detail",
            params={"claim_id": submitted_claim["claim_id"], "user_id": 99},
        )
        assert response.status_code == 404

    async def test_customer_cookie_scopes_listing(self, client, submit_payload, monkeypatch):
        monkeypatch.setattr(settings, "JWT_SECRET", "claims-test-secret-0123456789abcdef")
        await client.post("/api/claim-submit/submit", json=submit_payload)
        token = jwt.encode({"id": 8, "role": "customer"}, "claims-test-secret-0123456789abcdef", algorithm="HS256")

        response = await client.get(
            "/api/claim-requests/list",
            params={"user_id": 7},
            headers={"Cookie": f"{settings.AUTH_COOKIE_NAME}={token}"},
        )

        assert response.status_code == 200
        assert response.json()["data"] == []

    async def test_admin_detail_layout(self, client, submitted_claim):
        response = await client.get(
            "/api/admin/detail", params={"claim_id": submitted_claim["claim_id"]}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["car"]["car_license_plate"] == "1กข 1234"
        assert data["accident"]["accidentType"] == "collision"
        assert data["accident"]["location"]["lat"] == pytest.approx(13.746389)
        assert data["accident"]["evidenceMedia"] == [
            {"url": "https://img.example/evidence.jpg", "type": "image"}
        ]
        assert len(data["accident"]["damagePhotos"]) == 2

    async def test_claim_requests_admin_detail_alias(self, client, submitted_claim):
        response = await client.get(
            "/api/claim-requests/admin/detail", params={"claim_id": submitted_claim["claim_id"]}
        )
        assert response.status_code == 200
        assert response.json()["data"]["claim_id"] == submitted_claim["claim_id"]

    async def test_claim_rows_untouched_by_reads(self, client, submitted_claim, count_rows):
        await client.get("/api/claim-requests/listall")
        assert await count_rows(ClaimRequest) == 1

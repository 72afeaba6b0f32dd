"""
Tests for /api/claim-submit: atomic submission and resubmission.
"""

import pytest
from sqlalchemy.exc import OperationalError

from app.claims import submission
from app.models.tables import AccidentDetail, ClaimRequest, EvaluationImage


async def _detail(client, claim_id: int) -> dict:
    response = await client.get("/api/claim-requests/detail", params={"claim_id": claim_id})
    assert response.status_code == 200
    return response.json()["data"]


class TestSubmit:

    async def test_submit_creates_claim_with_images(self, client, submit_payload, count_rows):
        response = await client.post("/api/claim-submit/submit", json=submit_payload)

        assert response.status_code == 201
        body = response.json()
        assert body["ok"] is True
        assert body["data"]["inserted_image_damage"] == 2
        assert await count_rows(AccidentDetail) == 1
        assert await count_rows(ClaimRequest) == 1
        assert await count_rows(EvaluationImage) == 2

    async def test_detail_reflects_submission(self, client, submitted_claim, policy):
        detail = await _detail(client, submitted_claim["claim_id"])

        assert detail["status"] == "pending"
        assert detail["accident_detail_id"] == submitted_claim["accident_detail_id"]
        assert detail["selected_car_id"] == policy.id
        assert detail["car_brand"] == "Toyota"
        assert detail["evidence_file_url"] == "https://img.example/evidence.jpg"
        assert detail["media_type"] == "image"
        assert [i["side"] for i in detail["damage_images"]] == ["หลัง", "ซ้าย"]
        assert detail["damage_images"][0]["damage_note"] == "bumper dent"
        assert all(i["is_annotated"] is False for i in detail["damage_images"])
        assert detail["admin_note"] is None
        assert detail["approved_by"] is None

    async def test_time_and_location_normalised(self, client, submitted_claim):
        detail = await _detail(client, submitted_claim["claim_id"])

        assert detail["accident_time"] == "14:30:00"
        assert detail["latitude"] == pytest.approx(13.746389)
        assert detail["longitude"] == pytest.approx(100.535)
        assert detail["accuracy"] == pytest.approx(12.35)

    async def test_malformed_time_stored_as_midnight(self, client, submit_payload):
        submit_payload["accident"]["time"] = "after lunch"
        response = await client.post("/api/claim-submit/submit", json=submit_payload)
        detail = await _detail(client, response.json()["data"]["claim_id"])
        assert detail["accident_time"] == "00:00:00"

    async def test_huge_accuracy_clamped(self, client, submit_payload):
        submit_payload["accident"]["location"]["accuracy"] = 123456.789
        response = await client.post("/api/claim-submit/submit", json=submit_payload)
        detail = await _detail(client, response.json()["data"]["claim_id"])
        assert detail["accuracy"] == pytest.approx(9999.99)

    async def test_photos_without_url_skipped(self, client, submit_payload):
        submit_payload["accident"]["damagePhotos"].append({"side": "หน้า"})
        submit_payload["accident"]["damagePhotos"].append(None)

        response = await client.post("/api/claim-submit/submit", json=submit_payload)

        assert response.json()["data"]["inserted_image_damage"] == 2

    async def test_missing_side_defaults_to_unspecified(self, client, submit_payload):
        submit_payload["accident"]["damagePhotos"] = [{"url": "https://img.example/x.jpg"}]
        response = await client.post("/api/claim-submit/submit", json=submit_payload)
        detail = await _detail(client, response.json()["data"]["claim_id"])
        assert detail["damage_images"][0]["side"] == "ไม่ระบุ"

    async def test_no_photos_is_valid(self, client, submit_payload):
        submit_payload["accident"]["damagePhotos"] = []
        response = await client.post("/api/claim-submit/submit", json=submit_payload)
        assert response.status_code == 201
        assert response.json()["data"]["inserted_image_damage"] == 0

    @pytest.mark.parametrize("field", ["accidentType", "date", "time", "areaType", "location"])
    async def test_missing_required_field_rejected(self, client, submit_payload, count_rows, field):
        del submit_payload["accident"][field]

        response = await client.post("/api/claim-submit/submit", json=submit_payload)

        assert response.status_code == 400
        assert response.json()["ok"] is False
        assert response.json()["error"] == "validation"
        assert await count_rows(ClaimRequest) == 0

    async def test_missing_car_rejected(self, client, submit_payload):
        del submit_payload["selected_car_id"]
        response = await client.post("/api/claim-submit/submit", json=submit_payload)
        assert response.status_code == 400

    async def test_unknown_side_rejected(self, client, submit_payload):
        submit_payload["accident"]["damagePhotos"][0]["side"] = "top"
        response = await client.post("/api/claim-submit/submit", json=submit_payload)
        assert response.status_code == 400

    async def test_database_failure_rolls_back_everything(
        self, client, submit_payload, count_rows, monkeypatch
    ):
        def broken_build_images(claim_id, photos):
            raise OperationalError("INSERT INTO evaluation_images", {}, Exception("connection lost"))

        monkeypatch.setattr(submission, "build_images", broken_build_images)

        response = await client.post("/api/claim-submit/submit", json=submit_payload)

        assert response.status_code == 500
        assert response.json() == {"ok": False, "error": "internal", "message": "server error"}
        assert await count_rows(AccidentDetail) == 0
        assert await count_rows(ClaimRequest) == 0
        assert await count_rows(EvaluationImage) == 0


class TestResubmit:

    async def test_resubmit_replaces_images_and_resets_status(
        self, client, submitted_claim, accident_draft, count_rows
    ):
        claim_id = submitted_claim["claim_id"]
        await client.patch(
            f"/api/claim-requests/{claim_id}",
            json={"status": "incomplete", "admin_note": "need a clearer rear photo", "approved_by": 1},
        )
        accident_draft["details"] = "Rear-ended, photos retaken"
        accident_draft["damagePhotos"] = [
            {"url": "https://img.example/rear-2.jpg", "side": "หลัง"},
        ]

        response = await client.put(
            f"/api/claim-submit/update/{claim_id}", json={"accident": accident_draft}
        )

        assert response.status_code == 200
        assert response.json()["updated_images"] == 1
        detail = await _detail(client, claim_id)
        assert detail["status"] == "pending"
        assert detail["admin_note"] is None
        assert detail["approved_by"] is None
        assert detail["approved_at"] is None
        assert detail["details"] == "Rear-ended, photos retaken"
        assert [i["original_url"] for i in detail["damage_images"]] == [
            "https://img.example/rear-2.jpg"
        ]
        assert await count_rows(EvaluationImage) == 1

    async def test_resubmit_keeps_accident_row(self, client, submitted_claim, accident_draft, count_rows):
        claim_id = submitted_claim["claim_id"]
        await client.put(f"/api/claim-submit/update/{claim_id}", json={"accident": accident_draft})

        detail = await _detail(client, claim_id)
        assert detail["accident_detail_id"] == submitted_claim["accident_detail_id"]
        assert await count_rows(AccidentDetail) == 1

    async def test_database_failure_leaves_claim_untouched(
        self, client, submitted_claim, accident_draft, count_rows, monkeypatch
    ):
        claim_id = submitted_claim["claim_id"]
        await client.patch(
            f"/api/claim-requests/{claim_id}",
            json={"status": "incomplete", "admin_note": "need a clearer rear photo"},
        )
        before = await _detail(client, claim_id)

        async def broken_replace_images(session, claim_id, photos):
            raise OperationalError("DELETE FROM evaluation_images", {}, Exception("connection lost"))

        monkeypatch.setattr(submission, "replace_images", broken_replace_images)
        accident_draft["details"] = "should not be stored"

        response = await client.put(f"/api/claim-submit/update/{claim_id}", json={"accident": accident_draft})

        assert response.status_code == 500
        assert response.json()["error"] == "internal"
        after = await _detail(client, claim_id)
        assert after["status"] == "incomplete"
        assert after["admin_note"] == "need a clearer rear photo"
        assert after["details"] == before["details"]
        assert after["version"] == before["version"]
        assert [i["id"] for i in after["damage_images"]] == [i["id"] for i in before["damage_images"]]
        assert await count_rows(EvaluationImage) == 2

    async def test_resubmit_drops_annotations_of_replaced_images(
        self, client, submitted_claim, accident_draft
    ):
        claim_id = submitted_claim["claim_id"]
        image_id = (await _detail(client, claim_id))["damage_images"][0]["id"]
        await client.post("/api/image-annotations/save", json={
            "image_id": image_id,
            "boxes": [{"part_name": "bumper", "x": 0.1, "y": 0.1, "w": 0.2, "h": 0.2}],
        })

        await client.put(f"/api/claim-submit/update/{claim_id}", json={"accident": accident_draft})

        response = await client.get("/api/image-annotations/by-image", params={"image_id": image_id})
        assert response.json()["data"] == []

    async def test_resubmit_unknown_claim(self, client, accident_draft):
        response = await client.put("/api/claim-submit/update/9999", json={"accident": accident_draft})
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    async def test_resubmit_approved_claim_refused(self, client, submitted_claim, accident_draft):
        claim_id = submitted_claim["claim_id"]
        await client.patch(f"/api/claim-requests/{claim_id}", json={"status": "approved"})

        response = await client.put(f"/api/claim-submit/update/{claim_id}", json={"accident": accident_draft})

        assert response.status_code == 409
        assert response.json()["error"] == "invalid_transition"
        assert (await _detail(client, claim_id))["status"] == "approved"

    async def test_resubmit_stale_version(self, client, submitted_claim, accident_draft):
        claim_id = submitted_claim["claim_id"]
        response = await client.put(
            f"/api/claim-submit/update/{claim_id}",
            json={"accident": accident_draft, "version": 42},
        )
        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    async def test_resubmit_claim_without_accident(self, client, accident_draft):
        created = await client.post("/api/claim-requests", json={"user_id": 7})
        claim_id = created.json()["claim"]["id"]

        response = await client.put(f"/api/claim-submit/update/{claim_id}", json={"accident": accident_draft})

        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

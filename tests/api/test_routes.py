"""HTTP surface: uploads, status, results, share, downloads, retry, preferences, purchases, data deletion."""
import os

from babypeek.core.config import settings
from babypeek.pipeline import JobStage, StageEngine, VariantPayload

WORKER = {"X-Worker-Secret": settings.worker_callback_secret}
WEBHOOK = {"X-Webhook-Secret": settings.payment_webhook_secret}


def _upload(client, email="Mom@Example.com"):
    response = client.post(
        "/api/uploads",
        json={"email": email, "source_image_ref": "uploads/tmp/original.jpg"},
    )
    assert response.status_code == 201
    return response.json()


def _auth(token):
    return {"X-Session-Token": token}


def _complete(db_session, job_id, variants=2):
    engine = StageEngine(db_session)
    engine.advance(job_id, JobStage.VALIDATING)
    engine.advance(job_id, JobStage.GENERATING)
    for i in range(variants):
        engine.record_variant(
            job_id,
            VariantPayload(
                variant_index=i,
                result_ref=f"results/{job_id}/{i}.jpg",
                preview_ref=f"results/{job_id}/{i}_preview.jpg",
            ),
        )
    engine.advance(job_id, JobStage.COMPLETE)


class TestUploadAndStatus:
    def test_upload_enqueues_processing(self, client, enqueue_mock):
        body = _upload(client)
        assert body["job_id"]
        assert body["session_token"]
        enqueue_mock.assert_called_once_with(args=[body["job_id"], body["workflow_run_ref"]])

    def test_upload_rejects_bad_email(self, client):
        response = client.post("/api/uploads", json={"email": "nope", "source_image_ref": "x"})
        assert response.status_code == 422

    def test_enqueue_failure_fails_job(self, client, enqueue_mock):
        enqueue_mock.side_effect = ConnectionError("broker down")
        body = _upload(client)
        status = client.get(f"/api/status/{body['job_id']}", headers=_auth(body["session_token"]))
        assert status.json()["status"] == "failed"

    def test_status_for_owner(self, client):
        body = _upload(client)
        response = client.get(f"/api/status/{body['job_id']}", headers=_auth(body["session_token"]))
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending"
        assert data["stage"] is None
        assert data["progress"] == 0

    def test_status_wrong_token_and_unknown_job(self, client):
        body = _upload(client)
        wrong = client.get(f"/api/status/{body['job_id']}", headers=_auth("forged"))
        unknown = client.get("/api/status/does-not-exist", headers=_auth(body["session_token"]))
        missing = client.get(f"/api/status/{body['job_id']}")
        assert wrong.status_code == unknown.status_code == missing.status_code == 401
        assert wrong.json() == unknown.json()
        assert wrong.json()["detail"]["code"] == "SESSION_EXPIRED"


class TestResultsAndPurchases:
    def test_results_locked_then_unlocked(self, client, db_session):
        body = _upload(client)
        job_id, token = body["job_id"], body["session_token"]
        _complete(db_session, job_id)

        locked = client.get(f"/api/results/{job_id}", headers=_auth(token)).json()
        assert locked["tier"] == "none"
        assert locked["show_preview"] is True
        assert [r["variant_index"] for r in locked["results"]] == [0, 1]
        assert all(r["result_url"] is None for r in locked["results"])
        assert locked["results"][0]["is_primary"] is True

        checkout = client.post(
            f"/api/purchases/{job_id}",
            json={"tier": "all", "amount": 1999, "provider_session_id": "cs_test_1"},
            headers=_auth(token),
        )
        assert checkout.status_code == 201
        assert checkout.json()["status"] == "pending"

        paid = client.post("/webhooks/payments/completed", json={"provider_session_id": "cs_test_1"}, headers=WEBHOOK)
        assert paid.status_code == 200
        assert paid.json()["status"] == "completed"

        unlocked = client.get(f"/api/results/{job_id}", headers=_auth(token)).json()
        assert unlocked["tier"] == "all"
        assert all(r["result_url"] for r in unlocked["results"])

        refunded = client.post("/webhooks/payments/refunded", json={"provider_session_id": "cs_test_1"}, headers=WEBHOOK)
        assert refunded.json()["status"] == "refunded"
        again = client.get(f"/api/results/{job_id}", headers=_auth(token)).json()
        assert again["tier"] == "none"

    def test_webhook_requires_secret(self, client):
        response = client.post("/webhooks/payments/completed", json={"purchase_id": "x"})
        assert response.status_code == 401

    def test_webhook_unknown_purchase(self, client):
        response = client.post("/webhooks/payments/completed", json={"purchase_id": "x"}, headers=WEBHOOK)
        assert response.status_code == 404

    def test_gift_purchase_unlocks_owner(self, client, db_session):
        body = _upload(client)
        job_id, token = body["job_id"], body["session_token"]
        _complete(db_session, job_id, variants=1)

        gift = client.post(
            f"/api/purchases/{job_id}/gift",
            json={"tier": "single", "is_gift": True, "purchaser_email": "grandpa@example.com"},
        )
        assert gift.status_code == 201
        client.post("/webhooks/payments/completed", json={"purchase_id": gift.json()["purchase_id"]}, headers=WEBHOOK)

        status = client.get(f"/api/status/{job_id}", headers=_auth(token)).json()
        assert status["result_url"] is not None

    def test_purchase_before_completion_conflicts(self, client):
        body = _upload(client)
        response = client.post(
            f"/api/purchases/{body['job_id']}",
            json={"tier": "single"},
            headers=_auth(body["session_token"]),
        )
        assert response.status_code == 409


class TestShareAndDownload:
    def test_share_exposes_preview_only(self, client, db_session, storage):
        body = _upload(client)
        job_id = body["job_id"]
        assert client.get(f"/api/share/{job_id}").status_code == 404

        _complete(db_session, job_id)
        response = client.get(f"/api/share/{job_id}")
        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"share_id", "job_id", "preview_url"}
        assert data["job_id"] == job_id
        token = data["preview_url"].rsplit("/", 1)[1]
        assert storage.verify(token) == f"results/{job_id}/0_preview.jpg"

    def test_share_unknown_job(self, client):
        assert client.get("/api/share/nope").status_code == 404

    def test_download_gated_by_purchase(self, client, db_session):
        body = _upload(client)
        job_id, token = body["job_id"], body["session_token"]
        _complete(db_session, job_id)

        locked = client.get(f"/api/download/{job_id}", headers=_auth(token))
        assert locked.status_code == 403
        assert locked.json()["detail"]["code"] == "PURCHASE_REQUIRED"
        status = client.get(f"/api/download/{job_id}/status", headers=_auth(token)).json()
        assert status["can_download"] is False

        checkout = client.post(f"/api/purchases/{job_id}", json={"tier": "single"}, headers=_auth(token))
        client.post("/webhooks/payments/completed", json={"purchase_id": checkout.json()["purchase_id"]}, headers=WEBHOOK)

        first = client.get(f"/api/download/{job_id}", headers=_auth(token))
        assert first.status_code == 200
        assert first.json()["variant_index"] == 0
        assert first.json()["is_redownload"] is False
        assert first.json()["suggested_filename"].startswith("babypeek-")
        second = client.get(f"/api/download/{job_id}", headers=_auth(token)).json()
        assert second["is_redownload"] is True
        assert second["download_count"] == 2

        status = client.get(f"/api/download/{job_id}/status", headers=_auth(token)).json()
        assert status["can_download"] is True
        assert status["days_remaining"] == 30

    def test_download_requires_session(self, client, db_session):
        body = _upload(client)
        _complete(db_session, body["job_id"])
        response = client.get(f"/api/download/{body['job_id']}", headers=_auth("forged"))
        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "SESSION_EXPIRED"


class TestRetryPreferencesAndData:
    def test_retry_only_failed(self, client, db_session, enqueue_mock):
        body = _upload(client)
        job_id, token = body["job_id"], body["session_token"]
        assert client.post(f"/api/retry/{job_id}", headers=_auth(token)).status_code == 409

        StageEngine(db_session).fail(job_id, "boom")
        response = client.post(f"/api/retry/{job_id}", headers=_auth(token))
        assert response.status_code == 200
        assert response.json()["status"] == "pending"
        assert response.json()["workflow_run_ref"] != body["workflow_run_ref"]
        assert enqueue_mock.call_count == 2

    def test_preference_write_once(self, client, db_session):
        body = _upload(client)
        job_id, token = body["job_id"], body["session_token"]
        _complete(db_session, job_id)
        results = client.get(f"/api/results/{job_id}", headers=_auth(token)).json()["results"]

        payload = {
            "job_id": job_id,
            "selected_result_id": results[1]["result_id"],
            "reason": "better_lighting",
            "shown_variants": ["v3", "v3-json"],
        }
        first = client.post("/api/preferences", json=payload, headers=_auth(token))
        assert first.status_code == 201
        assert first.json()["selected_variant_descriptor"] == "v3-json"
        assert client.post("/api/preferences", json=payload, headers=_auth(token)).status_code == 409

    def test_delete_data(self, client):
        body = _upload(client)
        token = body["session_token"]
        response = client.delete(f"/api/data/{token}")
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert client.get(f"/api/status/{body['job_id']}", headers=_auth(token)).status_code == 401
        assert client.delete(f"/api/data/{token}").status_code == 404


class TestWorkerCallbacks:
    def test_requires_secret(self, client):
        body = _upload(client)
        response = client.post(f"/internal/jobs/{body['job_id']}/stage", json={"stage": "validating"})
        assert response.status_code == 401

    def test_callback_flow(self, client):
        body = _upload(client)
        job_id, run = body["job_id"], body["workflow_run_ref"]

        def post(path, payload):
            return client.post(f"/internal/jobs/{job_id}/{path}", json={**payload, "workflow_run_ref": run}, headers=WORKER)

        assert post("stage", {"stage": "validating"}).json()["applied"] is True
        assert post("stage", {"stage": "generating"}).json()["stage"] == "generating"
        variant = post("variants", {"variant_index": 0, "result_ref": f"results/{job_id}/0.jpg"}).json()
        assert variant["stage"] == "first_ready"
        assert post("variants", {"variant_index": 0, "result_ref": f"results/{job_id}/0.jpg"}).json()["duplicate"] is True
        for i in (1, 2, 3):
            post("variant-failures", {"variant_index": i, "reason": "blocked"})
        done = post("stage", {"stage": "complete"}).json()
        assert done["status"] == "completed"
        assert done["progress"] == 100

    def test_rejected_callback_still_200(self, client):
        body = _upload(client)
        response = client.post(
            f"/internal/jobs/{body['job_id']}/stage",
            json={"stage": "storing"},
            headers=WORKER,
        )
        assert response.status_code == 200
        assert response.json()["error"] == "invalid_transition"
        assert response.json()["status"] == "pending"

    def test_stale_run_callback(self, client):
        body = _upload(client)
        response = client.post(
            f"/internal/jobs/{body['job_id']}/failure",
            json={"reason": "boom", "workflow_run_ref": "someone-elses-run"},
            headers=WORKER,
        )
        assert response.json()["error"] == "stale_run"


class TestFilesAndHealth:
    def test_signed_download(self, client, storage):
        path = storage.path_for("uploads/j1/original.jpg")
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(b"ultrasound")
        url = storage.sign("uploads/j1/original.jpg")
        response = client.get(url.replace("http://testserver", ""))
        assert response.status_code == 200
        assert response.content == b"ultrasound"

    def test_tampered_link(self, client):
        assert client.get("/files/not-a-token").status_code == 403

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

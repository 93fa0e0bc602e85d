"""Report API: generate, fetch and list integrity reports."""

SESSIONS = "/api/v1/sessions"
REPORTS = "/api/v1/reports"


def _active_session_with_events(client, *categories, email="ada@example.com"):
    session_id = client.post(
        f"{SESSIONS}/", json={"candidate_name": "Ada", "candidate_email": email}
    ).json()["session_id"]
    client.post(f"{SESSIONS}/{session_id}/start")
    for category in categories:
        client.post(f"{SESSIONS}/{session_id}/events", json={"category": category, "confidence": 0.9})
    return session_id


class TestReportEndpoints:
    def test_generate_and_fetch(self, client):
        session_id = _active_session_with_events(client, "no_face", "no_face", "device_detected")
        client.post(f"{SESSIONS}/{session_id}/complete")

        resp = client.post(f"{REPORTS}/{session_id}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["score"] == 75
        assert data["risk_tier"] == "MEDIUM"
        assert data["breakdown"]["no_face"]["count"] == 2
        assert data["breakdown"]["device_detected"]["severity"] == "CRITICAL"
        assert data["session_status"] == "completed"

        fetched = client.get(f"{REPORTS}/{session_id}").json()
        assert fetched["score"] == 75
        assert fetched["generated_at"] == data["generated_at"]

    def test_report_missing_before_generation(self, client):
        session_id = _active_session_with_events(client)
        resp = client.get(f"{REPORTS}/{session_id}")
        assert resp.status_code == 404
        assert resp.json()["code"] == "report_not_found"

    def test_generate_unknown_session(self, client):
        assert client.post(f"{REPORTS}/missing").status_code == 404

    def test_regenerate_picks_up_new_events(self, client):
        session_id = _active_session_with_events(client)
        assert client.post(f"{REPORTS}/{session_id}").json()["score"] == 100
        client.post(f"{SESSIONS}/{session_id}/events", json={"category": "materials_detected"})
        assert client.post(f"{REPORTS}/{session_id}").json()["score"] == 90

    def test_list_by_risk_tier(self, client):
        low = _active_session_with_events(client, email="low@example.com")
        critical = _active_session_with_events(client, *["device_detected"] * 5, email="crit@example.com")
        client.post(f"{REPORTS}/{low}")
        client.post(f"{REPORTS}/{critical}")

        data = client.get(f"{REPORTS}/", params={"risk_tier": "CRITICAL"}).json()
        assert [r["session_id"] for r in data["reports"]] == [critical]
        assert data["pagination"]["total_count"] == 1

        everything = client.get(f"{REPORTS}/").json()
        assert everything["pagination"]["total_count"] == 2

    def test_list_rejects_unknown_tier(self, client):
        assert client.get(f"{REPORTS}/", params={"risk_tier": "SEVERE"}).status_code == 422

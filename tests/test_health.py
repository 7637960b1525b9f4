"""
Health endpoints and app-level request guards.
"""


class TestHealth:
    def test_ready(self, client):
        res = client.get("/api/v1/health")
        assert res.status_code == 200
        assert res.get_json() == {"status": "ok"}

    def test_live_reports_dependencies(self, client):
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "ok"
        assert body["checks"]["redis"]["status"] == "skipped"
        assert body["checks"]["collab"] == {"status": "disabled", "url": None}
        assert body["checks"]["app"]["testing"] is True


class TestRequestGuards:
    def test_non_json_body_rejected(self, client, admin_headers):
        res = client.post("/api/v1/teams", data="name=Ops", headers=admin_headers, content_type="text/plain")
        assert res.status_code == 415

    def test_unknown_route(self, client):
        res = client.get("/api/v1/nope")
        assert res.status_code == 404
        assert res.get_json()["error"] == "Not found"

    def test_security_headers(self, client):
        res = client.get("/api/v1/health")
        assert res.headers["X-Content-Type-Options"] == "nosniff"

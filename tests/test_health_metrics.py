# tests/test_health_metrics.py
from voicerelay import monitoring


def test_health_describes_service(client):
    for path in ("/", "/health"):
        r = client.get(path)
        assert r.status_code == 200
        j = r.json()
        assert j["status"] == "running"
        assert j["name"] == "ESP32 Voice Assistant API"
        assert j["endpoints"]["query"] == "POST /api/query"
        assert "timestamp" in j


def test_metrics_endpoint_returns_prometheus_format(client):
    client.post("/api/query", json={"request_id": "metrics-1", "text": "hi"})
    r = client.get("/metrics")
    if not monitoring.PROMETHEUS_ENABLED:
        assert r.status_code == 404
        return
    assert r.status_code == 200
    assert "text/plain" in r.headers.get("content-type", "")
    body = r.text
    assert "relay_http_requests_total" in body
    assert 'relay_submissions_total{input_type="text"}' in body

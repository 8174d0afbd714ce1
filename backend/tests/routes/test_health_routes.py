from fastapi.testclient import TestClient


def test_health_reports_database(api_client: TestClient) -> None:
    res = api_client.get("/health")

    assert res.status_code == 200
    payload = res.json()
    assert payload["status"] == "healthy"
    assert payload["database"] == "connected"
    assert res.headers["Cache-Control"] == "no-store"


def test_metrics_exposes_prometheus_text(api_client: TestClient) -> None:
    api_client.get("/health")

    res = api_client.get("/metrics")

    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/plain")


def test_root(api_client: TestClient) -> None:
    res = api_client.get("/")

    assert res.status_code == 200
    assert "version" in res.json()

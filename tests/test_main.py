"""애플리케이션 조립 테스트"""
from fastapi.testclient import TestClient

from infinitepay_webhook.main import create_app


def test_root_reports_running():
    client = TestClient(create_app())

    response = client.get("/")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["data"]["version"] == "1.0.0"


def test_routes_are_mounted():
    paths = create_app().openapi()["paths"]

    assert "/api/infinitepay/webhook" in paths
    assert "/api/infinitepay/health" in paths

from fastapi.testclient import TestClient

from decide.main import ALLOWED_ORIGINS, RESPONSE_HEADERS, app

client = TestClient(app)


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_security_headers_present():
    response = client.get("/health")
    for header, value in RESPONSE_HEADERS.items():
        assert response.headers.get(header) == value


def test_cors_preflight_allows_known_origin():
    origin = ALLOWED_ORIGINS[0]
    response = client.options(
        "/api/start_vote",
        headers={
            "origin": origin,
            "access-control-request-method": "POST",
            "access-control-request-headers": "content-type",
        },
    )

    assert response.status_code == 200
    assert response.headers.get("access-control-allow-origin") == origin
    assert response.headers.get("access-control-allow-credentials") == "true"
    allow_methods = response.headers.get("access-control-allow-methods", "").upper()
    assert "POST" in allow_methods


def test_simple_get_disallowed_origin_omits_acao():
    res = client.get("/health", headers={"Origin": "https://evil.com"})
    assert res.status_code == 200
    # No ACAO header => browsers will block cross-origin access
    assert "access-control-allow-origin" not in {k.lower(): v for k, v in res.headers.items()}


def test_unsupported_methods_are_refused():
    for method in ("PUT", "DELETE", "PATCH"):
        response = client.request(method, "/health")
        assert response.status_code == 405
        assert response.headers["allow"] == "GET, POST, OPTIONS"

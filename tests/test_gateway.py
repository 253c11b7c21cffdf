"""End-to-end gateway behaviour with faked authorizer and upstream services."""

import json
import os
import unittest
from unittest.mock import patch

import httpx
from fastapi.testclient import TestClient

from rebac_gate.daemon.app import app
from rebac_gate.daemon.app.lifecycle import set_http_client
from rebac_gate.daemon.auth import hash_key
from rebac_gate.daemon.utils.config_loader import GatewayConfig, config_loader

AUTHZ_URL = "https://authorizer.test/api/v2/authz/is"
API_KEY = "k" * 40


def _gateway_config() -> GatewayConfig:
    return GatewayConfig(
        authorizer={"url": AUTHZ_URL},
        policy={
            "tenant_id": "tenant-1",
            "authorizer_api_key": "secret-key",
            "policy_name": "policy-rebac",
            "service_name": "catalog",
        },
        consumers=[{"name": "web", "sub": "user-1", "key_hash": hash_key(API_KEY)}],
        routes=[
            {"path": "/items/{id}", "methods": ["GET"], "upstream": "http://upstream.test"},
            {
                "path": "/orders",
                "methods": ["POST"],
                "upstream": "http://upstream.test/api",
                "object_type": "customer",
                "object_id": "$body(customer.id)",
                "relation": "can_order",
            },
        ],
    )


class FakeServices:
    def __init__(self, verdict=True, authz_status=200):
        self.verdict = verdict
        self.authz_status = authz_status
        self.authz_requests: list[httpx.Request] = []
        self.upstream_requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "authorizer.test":
            self.authz_requests.append(request)
            return httpx.Response(
                self.authz_status,
                json={"decisions": [{"decision": "allowed", "is": self.verdict}]},
            )
        self.upstream_requests.append(request)
        return httpx.Response(200, json={"path": request.url.path}, headers={"x-upstream": "yes"})


class GatewayTests(unittest.TestCase):
    def setUp(self):
        self.services = FakeServices()
        config_loader.config = _gateway_config()
        set_http_client(httpx.AsyncClient(transport=httpx.MockTransport(self.services.handler)))
        self.client = TestClient(app)

    def tearDown(self):
        config_loader.config = None
        set_http_client(None)

    def _auth(self, **extra):
        return {"Authorization": f"Bearer {API_KEY}", **extra}

    def test_missing_credentials_is_unauthorized(self):
        response = self.client.get("/items/1")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.headers["content-type"], "application/problem+json")
        self.assertEqual(response.json()["title"], "Unauthorized")
        self.assertEqual(self.services.authz_requests, [])
        self.assertEqual(self.services.upstream_requests, [])

    def test_unknown_key_is_unauthorized(self):
        response = self.client.get("/items/1", headers={"Authorization": "Bearer " + "x" * 40})
        self.assertEqual(response.status_code, 401)

    def test_allowed_request_is_forwarded(self):
        response = self.client.get("/items/1?expand=true", headers=self._auth(**{"x-request-id": "req-1"}))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"path": "/items/1"})
        self.assertEqual(response.headers["x-upstream"], "yes")

        decision = json.loads(self.services.authz_requests[0].content)
        self.assertEqual(
            decision["resource_context"],
            {"object_type": "endpoint", "object_id": "catalog:GET:/items/{id}", "relation": "can_invoke"},
        )
        self.assertEqual(decision["identity_context"]["identity"], "user-1")

        forwarded = self.services.upstream_requests[0]
        self.assertEqual(str(forwarded.url), "http://upstream.test/items/1?expand=true")
        self.assertNotIn("authorization", forwarded.headers)
        self.assertEqual(forwarded.headers["x-request-id"], "req-1")

    def test_denied_request_is_forbidden(self):
        self.services.verdict = False
        response = self.client.get("/items/1", headers=self._auth())
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["status"], 403)
        self.assertEqual(self.services.upstream_requests, [])

    def test_authorizer_failure_is_forbidden(self):
        self.services.authz_status = 500
        response = self.client.get("/items/1", headers=self._auth())
        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.services.upstream_requests, [])

    def test_body_reference_and_body_forwarding(self):
        payload = {"customer": {"id": "cust-9"}, "items": [1, 2]}
        response = self.client.post("/orders", json=payload, headers=self._auth())
        self.assertEqual(response.status_code, 200)

        decision = json.loads(self.services.authz_requests[0].content)
        self.assertEqual(
            decision["resource_context"],
            {"object_type": "customer", "object_id": "cust-9", "relation": "can_order"},
        )
        forwarded = self.services.upstream_requests[0]
        self.assertEqual(str(forwarded.url), "http://upstream.test/api/orders")
        self.assertEqual(json.loads(forwarded.content), payload)

    def test_malformed_body_is_forbidden(self):
        response = self.client.post(
            "/orders",
            content=b"{not json",
            headers=self._auth(**{"content-type": "application/json"}),
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.services.authz_requests, [])

    def test_unmatched_path_and_method(self):
        self.assertEqual(self.client.get("/nothing", headers=self._auth()).status_code, 404)
        self.assertEqual(self.client.delete("/items/1", headers=self._auth()).status_code, 405)


class AdminEndpointTests(unittest.TestCase):
    def setUp(self):
        config_loader.config = _gateway_config()
        self.client = TestClient(app)

    def tearDown(self):
        config_loader.config = None

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")

    def test_ready(self):
        response = self.client.get("/ready")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["ready"])

    def test_not_ready_without_config(self):
        config_loader.config = None
        response = self.client.get("/ready")
        self.assertEqual(response.status_code, 503)

    def test_reload_requires_admin_key(self):
        with patch.dict(os.environ, {"REBAC_GATE_ADMIN_KEY": "admin-secret"}, clear=False):
            response = self.client.post("/admin/reload_config")
        self.assertEqual(response.status_code, 403)


if __name__ == "__main__":
    unittest.main()

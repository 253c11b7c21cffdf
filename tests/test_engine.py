import asyncio
import json
import unittest

import httpx

from rebac_gate.daemon.policy import Allow, Deny, Identity, RequestContext, authorize
from rebac_gate.daemon.policy.engine import (
    REASON_AUTHORIZER_ERROR,
    REASON_BODY_PARSE,
    REASON_NOT_AUTHORIZED,
    REASON_UNAUTHENTICATED,
    endpoint_identity,
)
from rebac_gate.daemon.utils.config_loader import PolicyConfig

AUTHZ_URL = "https://authorizer.test/api/v2/authz/is"


def _policy(**overrides) -> PolicyConfig:
    values = {
        "tenant_id": "tenant-1",
        "authorizer_api_key": "secret-key",
        "policy_name": "policy-rebac",
        "service_name": "catalog",
    }
    values.update(overrides)
    return PolicyConfig(**values)


def _ctx(identity=Identity(sub="user-1"), **kwargs) -> RequestContext:
    kwargs.setdefault("method", "GET")
    kwargs.setdefault("route_path", "/items/{id}")
    return RequestContext(identity=identity, **kwargs)


class FakeAuthorizer:
    """Records decision requests and answers with a canned response."""

    def __init__(self, status_code=200, body=None, raw=None, exc=None):
        self.status_code = status_code
        self.body = {"decisions": [{"decision": "allowed", "is": True}]} if body is None else body
        self.raw = raw
        self.exc = exc
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        if self.raw is not None:
            return httpx.Response(self.status_code, content=self.raw)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def payload(self) -> dict:
        return json.loads(self.requests[-1].content)

    def check(self, ctx, policy=None, request=None):
        async def _run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(self.handler)) as client:
                return await authorize(ctx, policy or _policy(), client, url=AUTHZ_URL, request=request)

        return asyncio.run(_run())


class AuthorizeTests(unittest.TestCase):
    def test_missing_identity_is_unauthenticated_without_remote_call(self):
        fake = FakeAuthorizer()
        outcome = fake.check(_ctx(identity=None))
        self.assertIsInstance(outcome, Deny)
        self.assertEqual(outcome.reason, REASON_UNAUTHENTICATED)
        self.assertEqual(outcome.status_code, 401)
        self.assertEqual(fake.requests, [])

    def test_default_substitution(self):
        fake = FakeAuthorizer()
        fake.check(_ctx())
        self.assertEqual(
            fake.payload["resource_context"],
            {"object_type": "endpoint", "object_id": "catalog:GET:/items/{id}", "relation": "can_invoke"},
        )

    def test_wire_payload_and_headers(self):
        fake = FakeAuthorizer()
        fake.check(_ctx())
        sent = fake.requests[0]
        self.assertEqual(sent.method, "POST")
        self.assertEqual(str(sent.url), AUTHZ_URL)
        self.assertEqual(sent.headers["content-type"], "application/json")
        self.assertEqual(sent.headers["aserto-tenant-id"], "tenant-1")
        self.assertEqual(sent.headers["authorization"], "basic secret-key")
        self.assertEqual(
            fake.payload["identity_context"],
            {"type": "IDENTITY_TYPE_SUB", "identity": "user-1"},
        )
        self.assertEqual(fake.payload["policy_context"], {"decisions": ["allowed"], "path": "rebac.check"})
        self.assertEqual(
            fake.payload["policy_instance"],
            {"name": "policy-rebac", "instance_label": "policy-rebac"},
        )

    def test_allow_returns_original_request(self):
        marker = object()
        outcome = FakeAuthorizer().check(_ctx(), request=marker)
        self.assertIsInstance(outcome, Allow)
        self.assertIs(outcome.request, marker)

    def test_id_shaped_decision_records_accepted(self):
        fake = FakeAuthorizer(body={"decisions": [{"id": "allowed", "is": True}]})
        self.assertIsInstance(fake.check(_ctx()), Allow)

    def test_negative_verdict(self):
        fake = FakeAuthorizer(body={"decisions": [{"id": "allowed", "is": False}]})
        outcome = fake.check(_ctx())
        self.assertEqual(outcome, Deny(reason=REASON_NOT_AUTHORIZED, triple=outcome.triple))
        self.assertEqual(outcome.status_code, 403)

    def test_empty_or_missing_decisions(self):
        bodies = (
            {"decisions": []},
            {},
            {"decisions": None},
            {"decisions": [{"decision": "allowed"}]},
            {"decisions": [{"decision": "allowed", "is": None}]},
        )
        for body in bodies:
            outcome = FakeAuthorizer(body=body).check(_ctx())
            self.assertIsInstance(outcome, Deny)
            self.assertEqual(outcome.reason, REASON_NOT_AUTHORIZED)

    def test_only_first_decision_consulted(self):
        body = {"decisions": [{"decision": "allowed", "is": False}, {"decision": "allowed", "is": True}]}
        self.assertIsInstance(FakeAuthorizer(body=body).check(_ctx()), Deny)

    def test_non_2xx_fails_closed(self):
        for status in (401, 404, 500, 503):
            outcome = FakeAuthorizer(status_code=status).check(_ctx())
            self.assertIsInstance(outcome, Deny)
            self.assertEqual(outcome.reason, REASON_AUTHORIZER_ERROR)

    def test_transport_error_fails_closed(self):
        fake = FakeAuthorizer(exc=httpx.ConnectError("connection refused"))
        outcome = fake.check(_ctx())
        self.assertEqual(outcome.reason, REASON_AUTHORIZER_ERROR)

    def test_malformed_response_fails_closed(self):
        for raw in (b"<html>", b"null", b'{"decisions": "yes"}'):
            outcome = FakeAuthorizer(raw=raw).check(_ctx())
            self.assertEqual(outcome.reason, REASON_AUTHORIZER_ERROR)

    def test_header_override_and_fallback(self):
        policy = _policy(object_id="$header(x-doc)", object_type="document", relation="$param(rel)")
        fake = FakeAuthorizer()
        fake.check(_ctx(headers={"X-Doc": "doc-9"}, params={"rel": "can_read"}), policy=policy)
        self.assertEqual(
            fake.payload["resource_context"],
            {"object_type": "document", "object_id": "doc-9", "relation": "can_read"},
        )

        fake = FakeAuthorizer()
        fake.check(_ctx(), policy=policy)
        self.assertEqual(
            fake.payload["resource_context"],
            {"object_type": "document", "object_id": "catalog:GET:/items/{id}", "relation": "can_invoke"},
        )

    def test_body_reference(self):
        policy = _policy(object_id="$body(a.b)")
        fake = FakeAuthorizer()
        ctx = RequestContext.from_json_body(
            {"a": {"b": "x"}}, method="POST", route_path="/items", identity=Identity(sub="user-1")
        )
        fake.check(ctx, policy=policy)
        self.assertEqual(fake.payload["resource_context"]["object_id"], "x")

    def test_malformed_body_denies_without_remote_call(self):
        async def _load() -> bytes:
            return b"{broken"

        fake = FakeAuthorizer()
        outcome = fake.check(_ctx(body_loader=_load), policy=_policy(relation="$body(rel)"))
        self.assertEqual(outcome.reason, REASON_BODY_PARSE)
        self.assertEqual(outcome.status_code, 403)
        self.assertEqual(fake.requests, [])

    def test_identical_inputs_identical_outcomes(self):
        fake = FakeAuthorizer(body={"decisions": [{"decision": "allowed", "is": False}]})
        first = fake.check(_ctx(params={"id": "1"}))
        second = fake.check(_ctx(params={"id": "1"}))
        self.assertEqual(first, second)
        self.assertEqual(json.loads(fake.requests[0].content), json.loads(fake.requests[1].content))

    def test_endpoint_identity_uppercases_method(self):
        self.assertEqual(endpoint_identity("catalog", "get", "/items/{id}"), "catalog:GET:/items/{id}")


class ApiKeyNotLoggedTests(unittest.TestCase):
    def test_deny_logs_do_not_contain_api_key(self):
        fake = FakeAuthorizer(status_code=500)
        with self.assertLogs("rebac_gate", level="DEBUG") as logs:
            fake.check(_ctx())
        joined = "\n".join(
            f"{record.getMessage()} {getattr(record, 'extra_fields', {})}" for record in logs.records
        )
        self.assertNotIn("secret-key", joined)
        self.assertIn("user-1", joined)

    def test_authorizer_span_carries_subject_and_triple(self):
        fake = FakeAuthorizer()
        with self.assertLogs("rebac_gate", level="INFO") as logs:
            fake.check(_ctx(request_id="req-7"))
        spans = [r.extra_fields for r in logs.records if r.getMessage() == "trace.span"]
        self.assertEqual(len(spans), 1)
        self.assertEqual(spans[0]["span"], "authorizer.check")
        self.assertEqual(spans[0]["request_id"], "req-7")
        self.assertEqual(spans[0]["sub"], "user-1")
        self.assertEqual(spans[0]["object_id"], "catalog:GET:/items/{id}")
        self.assertEqual(spans[0]["outcome"], "allowed")


if __name__ == "__main__":
    unittest.main()

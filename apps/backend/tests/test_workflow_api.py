import json
import sys
import unittest
from pathlib import Path

import httpx
from fastapi.testclient import TestClient

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from apiflow import main
from apiflow.connectors.http import HttpxRequestExecutor
from apiflow.simulator import FailureConfig, FailureRule, SimulatedRoute, create_simulator

WORKFLOW = {
    "id": "wf-api",
    "name": "Login then list",
    "serverUrl": "https://api.example.com",
    "steps": [
        {
            "id": "s2",
            "order": 1,
            "name": "List",
            "request": {
                "method": "GET",
                "path": "/users",
                "headers": {"Authorization": "Bearer {{token}}"},
                "queryParams": {},
            },
            "extractions": [],
        },
        {
            "id": "s1",
            "order": 0,
            "name": "Login",
            "request": {"method": "POST", "path": "/login", "headers": {}, "queryParams": {}, "body": "{}"},
            "extractions": [{"id": "e1", "name": "token", "jsonPath": "$.access_token"}],
        },
    ],
}


class WorkflowApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.executor = create_simulator(
            {
                "POST /login": SimulatedRoute(body={"access_token": "abc"}),
                "GET /users": SimulatedRoute(body=[{"id": 1}]),
            }
        )
        self._old_factory = main.executor_factory
        main.executor_factory = lambda: self.executor
        self.client = TestClient(main.app)

    def tearDown(self) -> None:
        main.executor_factory = self._old_factory

    @staticmethod
    def _read_sse(response) -> list[dict]:
        events = []
        for line in response.text.splitlines():
            if line.startswith("data: "):
                events.append(json.loads(line[6:]))
        return events

    def test_health(self):
        resp = self.client.get("/api/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "ok")

    def test_run_workflow_returns_full_execution(self):
        resp = self.client.post("/api/workflows/run", json=WORKFLOW)
        self.assertEqual(resp.status_code, 200)

        body = resp.json()
        self.assertEqual(body["status"], "completed")
        self.assertEqual([r["stepId"] for r in body["results"]], ["s1", "s2"])
        self.assertEqual(body["variables"], {"token": "abc"})
        self.assertEqual(body["results"][0]["extractedVariables"], {"token": "abc"})
        self.assertEqual(self.executor.requests[1].headers["Authorization"], "Bearer abc")

    def test_run_workflow_reports_failure(self):
        self.executor.failure_config = FailureConfig(
            rules={"POST /login": FailureRule(error_type="auth", message="denied")}
        )

        body = self.client.post("/api/workflows/run", json=WORKFLOW).json()

        self.assertEqual(body["status"], "failed")
        self.assertEqual([r["status"] for r in body["results"]], ["failure", "skipped"])
        self.assertEqual(body["results"][0]["error"], "[auth] denied")

    def test_malformed_document_is_rejected(self):
        resp = self.client.post("/api/workflows/run", json={"id": "x", "name": "no server"})
        self.assertEqual(resp.status_code, 422)

    def test_stream_emits_step_events_in_order(self):
        with self.client.stream("POST", "/api/workflows/run/stream", json=WORKFLOW) as resp:
            resp.read()
            events = self._read_sse(resp)

        self.assertEqual([e["type"] for e in events], ["step", "step", "complete"])
        self.assertEqual([e["result"]["stepId"] for e in events[:2]], ["s1", "s2"])
        self.assertEqual(events[-1]["execution"]["status"], "completed")

    def test_report_is_markdown(self):
        resp = self.client.post("/api/workflows/report", json=WORKFLOW)
        self.assertEqual(resp.status_code, 200)
        self.assertIn("# Execution Report: Login then list", resp.text)
        self.assertIn("- `token` = abc", resp.text)

    def test_execute_request_proxy(self):
        resp = self.client.post(
            "/api/execute-request", json={"method": "GET", "url": "https://api.example.com/users"}
        )
        self.assertEqual(resp.json()["success"], True)
        self.assertEqual(resp.json()["data"]["body"], [{"id": 1}])

        resp = self.client.post("/api/execute-request", json={"method": "GET", "url": "https://api.example.com/nope"})
        self.assertEqual(resp.json()["success"], False)
        self.assertIn("No simulated route", resp.json()["error"])

    def test_execute_request_with_unencodable_header_fails_cleanly(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={}))
        main.executor_factory = lambda: HttpxRequestExecutor(httpx.AsyncClient(transport=transport))

        resp = self.client.post(
            "/api/execute-request",
            json={"method": "GET", "url": "https://api.example.com/a", "headers": {"X-User": "José"}},
        )

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["success"], False)
        self.assertIn("Invalid request headers", resp.json()["error"])

    def test_import_and_export(self):
        exported = self.client.post("/api/workflows/export", json=WORKFLOW)
        self.assertEqual(exported.status_code, 200)
        self.assertNotIn('"id": "wf-api"', exported.text)

        imported = self.client.post("/api/workflows/import", json={"content": exported.text})
        self.assertEqual(imported.status_code, 200)
        self.assertEqual(imported.json()["name"], "Login then list")
        self.assertEqual(len(imported.json()["steps"]), 2)

        bad = self.client.post("/api/workflows/import", json={"content": "{"})
        self.assertEqual(bad.status_code, 400)
        self.assertIn("Invalid JSON", bad.json()["detail"])

    def test_authoring_helpers(self):
        valid = self.client.post("/api/jsonpath/validate", json={"expression": "$.a"}).json()
        self.assertEqual(valid, {"valid": True})

        too_long = self.client.post("/api/jsonpath/validate", json={"expression": "$" + "a" * 600}).json()
        self.assertFalse(too_long["valid"])
        self.assertIn("500", too_long["error"])

        preview = self.client.post("/api/jsonpath/preview", json={"body": {"a": [5]}, "jsonPath": "$.a[0]"}).json()
        self.assertEqual(preview, {"value": 5})

        refs = self.client.post(
            "/api/templates/references", json={"template": "{{a}}/{{b}}", "scope": ["a"]}
        ).json()
        self.assertEqual(refs, {"references": ["a", "b"], "missing": ["b"]})


if __name__ == "__main__":
    unittest.main()

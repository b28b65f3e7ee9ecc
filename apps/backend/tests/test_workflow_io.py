import json
import sys
import unittest
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from apiflow.config import Settings
from apiflow.workflow.io import WorkflowImportError, export_workflow, import_workflow
from apiflow.workflow.schema import WorkflowDocument


def exported(**overrides) -> str:
    data = {
        "name": "  Login chain  ",
        "serverUrl": "https://api.example.com",
        "steps": [
            {
                "id": "s1",
                "order": 0,
                "name": "Login",
                "request": {
                    "method": "post",
                    "path": "/login",
                    "headers": {"Content-Type": "application/json"},
                    "queryParams": {},
                    "body": '{"user": "admin"}',
                    "auth": {"type": "bearer", "token": "t", "extra": "dropped"},
                },
                "extractions": [
                    {"id": "e1", "name": "token", "jsonPath": "$.token"},
                    {"id": "e2", "name": "broken"},
                ],
            }
        ],
        "unexpected": "field",
    }
    data.update(overrides)
    return json.dumps(data)


class WorkflowImportTests(unittest.TestCase):
    def test_import_validates_and_strips_fields(self):
        workflow = import_workflow(exported())

        self.assertEqual(workflow.name, "Login chain")
        self.assertEqual(workflow.server_url, "https://api.example.com")
        step = workflow.steps[0]
        self.assertEqual(step.request.method, "POST")
        self.assertEqual(step.request.auth.type, "bearer")
        self.assertEqual(step.request.auth.token, "t")
        self.assertEqual([e.name for e in step.extractions], ["token"])
        self.assertNotIn("unexpected", workflow.model_dump())

    def test_import_fills_step_defaults(self):
        workflow = import_workflow(
            exported(
                steps=[{"request": {"headers": {"X": 1}, "queryParams": "nope"}}],
                sharedAuth={"type": "oauth"},
            )
        )
        step = workflow.steps[0]
        self.assertEqual(step.order, 0)
        self.assertEqual(step.name, "Step 1")
        self.assertTrue(step.id)
        self.assertEqual(step.request.method, "GET")
        self.assertEqual(step.request.path, "/")
        self.assertEqual(step.request.headers, {})
        self.assertEqual(step.request.query_params, {})
        self.assertEqual(workflow.shared_auth.type, "none")

    def test_import_rejects_invalid_payloads(self):
        cases = {
            "not json": "Invalid JSON",
            "[]": "expected an object",
            exported(name=" "): '"name"',
            exported(steps={}): '"steps" must be an array',
            exported(serverUrl=""): '"serverUrl"',
            exported(steps=["x"]): "Invalid step at index 0",
            exported(steps=[{"request": None}]): "Invalid request at step 0",
            exported(steps=[{"request": {"method": "TRACE"}}]): 'Invalid method "TRACE"',
        }
        for payload, message in cases.items():
            with self.subTest(message=message):
                with self.assertRaises(WorkflowImportError) as ctx:
                    import_workflow(payload)
                self.assertIn(message, str(ctx.exception))

    def test_import_enforces_limits(self):
        settings = Settings(max_steps=1, max_extractions=1)
        with self.assertRaises(WorkflowImportError):
            import_workflow(exported(steps=[{"request": {}}, {"request": {}}]), settings=settings)

        step = {
            "request": {},
            "extractions": [
                {"id": "a", "name": "a", "jsonPath": "$.a"},
                {"id": "b", "name": "b", "jsonPath": "$.b"},
            ],
        }
        with self.assertRaises(WorkflowImportError):
            import_workflow(exported(steps=[step]), settings=settings)


class WorkflowExportTests(unittest.TestCase):
    def test_export_drops_storage_fields_and_reimports(self):
        workflow = WorkflowDocument.model_validate(
            {
                "id": "wf-1",
                "name": "Chain",
                "serverUrl": "https://api.example.com",
                "created_at": "2026-01-01T00:00:00",
                "steps": [
                    {
                        "id": "s1",
                        "order": 0,
                        "name": "One",
                        "request": {"method": "GET", "path": "/one", "queryParams": {"page": "1"}},
                        "extractions": [{"id": "e1", "name": "v", "jsonPath": "$.v"}],
                    }
                ],
            }
        )

        text = export_workflow(workflow)
        data = json.loads(text)

        self.assertNotIn("id", data)
        self.assertNotIn("created_at", data)
        self.assertEqual(data["serverUrl"], "https://api.example.com")
        self.assertEqual(data["steps"][0]["request"]["queryParams"], {"page": "1"})
        self.assertEqual(data["steps"][0]["extractions"][0]["jsonPath"], "$.v")

        again = import_workflow(text)
        self.assertEqual(again.steps, workflow.steps)


if __name__ == "__main__":
    unittest.main()

import sys
import unittest
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from apiflow.workflow.extraction import extract_variables, preview_extraction, validate_json_path
from apiflow.workflow.schema import VariableExtraction


def extraction(name: str, path: str, ext_id: str = "e1") -> VariableExtraction:
    return VariableExtraction(id=ext_id, name=name, json_path=path)


class ExtractVariablesTests(unittest.TestCase):
    def test_extracts_top_level_value(self):
        result = extract_variables(
            {"access_token": "abc123", "expires_in": 3600},
            [extraction("token", "$.access_token")],
        )
        self.assertEqual(result.extracted, {"token": "abc123"})
        self.assertEqual(result.errors, [])

    def test_extracts_nested_and_array_values(self):
        body = {"data": {"user": {"id": 42}}, "items": [{"id": 1}, {"id": 2}]}
        result = extract_variables(
            body,
            [extraction("userId", "$.data.user.id", "e1"), extraction("firstId", "$.items[0].id", "e2")],
        )
        self.assertEqual(result.extracted, {"userId": 42, "firstId": 1})

    def test_array_root_is_allowed(self):
        result = extract_variables([{"id": "x"}], [extraction("first", "$[0].id")])
        self.assertEqual(result.extracted, {"first": "x"})

    def test_missing_path_reports_error_and_continues(self):
        result = extract_variables(
            {"foo": "bar"},
            [extraction("missing", "$.nonexistent.path", "e1"), extraction("foo", "$.foo", "e2")],
        )
        self.assertEqual(result.extracted, {"foo": "bar"})
        self.assertEqual(result.errors, ['No value found for "missing" at path: $.nonexistent.path'])

    def test_syntax_error_is_reported_not_raised(self):
        result = extract_variables({"foo": "bar"}, [extraction("bad", "$[abc]")])
        self.assertEqual(result.extracted, {})
        self.assertEqual(len(result.errors), 1)
        self.assertTrue(result.errors[0].startswith('Failed to extract "bad": '))

    def test_non_object_body_fails_every_extraction(self):
        for body in ("plain text response", None, 42, True):
            with self.subTest(body=body):
                result = extract_variables(
                    body, [extraction("val", "$.foo", "e1"), extraction("other", "$", "e2")]
                )
                self.assertEqual(result.extracted, {})
                self.assertEqual(
                    result.errors,
                    [
                        'Cannot extract "val": response body is not a JSON object',
                        'Cannot extract "other": response body is not a JSON object',
                    ],
                )

    def test_empty_extractions_is_noop(self):
        result = extract_variables("not even json", [])
        self.assertEqual(result.extracted, {})
        self.assertEqual(result.errors, [])

    def test_found_null_is_bound(self):
        result = extract_variables({"next": None}, [extraction("cursor", "$.next")])
        self.assertEqual(result.extracted, {"cursor": None})
        self.assertEqual(result.errors, [])

    def test_duplicate_names_last_write_wins(self):
        result = extract_variables(
            {"a": 1, "b": 2},
            [extraction("v", "$.a", "e1"), extraction("v", "$.b", "e2")],
        )
        self.assertEqual(result.extracted, {"v": 2})


class ValidateJsonPathTests(unittest.TestCase):
    def test_accepts_valid_expression(self):
        self.assertTrue(validate_json_path("$.data.items[0].id").valid)

    def test_rejects_empty_expression(self):
        for expression in ("", "   "):
            validation = validate_json_path(expression)
            self.assertFalse(validation.valid)
            self.assertEqual(validation.error, "JSONPath expression cannot be empty")

    def test_rejects_expression_over_length_limit(self):
        validation = validate_json_path("$." + "a" * 499)
        self.assertFalse(validation.valid)
        self.assertIn("500", validation.error)

        self.assertTrue(validate_json_path("$." + "a" * 498).valid)

    def test_custom_length_limit_is_named(self):
        validation = validate_json_path("$.abcdef", max_length=5)
        self.assertEqual(validation.error, "JSONPath expression cannot exceed 5 characters")

    def test_rejects_unparseable_expression(self):
        validation = validate_json_path("$.[")
        self.assertFalse(validation.valid)
        self.assertTrue(validation.error)


class PreviewExtractionTests(unittest.TestCase):
    def test_preview_returns_value(self):
        preview = preview_extraction({"a": {"b": 3}}, "$.a.b")
        self.assertEqual(preview.value, 3)
        self.assertIsNone(preview.error)

    def test_preview_reports_missing_value(self):
        preview = preview_extraction({"a": 1}, "$.b")
        self.assertEqual(preview.error, "No value found at path: $.b")

    def test_preview_reports_validation_error(self):
        preview = preview_extraction({"a": 1}, "")
        self.assertEqual(preview.error, "JSONPath expression cannot be empty")


if __name__ == "__main__":
    unittest.main()

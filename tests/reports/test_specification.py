"""Tests for report specifications and their YAML loader."""

from __future__ import annotations

import pytest

from reportflow.reports.errors import SpecificationError
from reportflow.reports.specification import (
    InputBinding,
    ReportSpecification,
    validate_specification,
)
from reportflow.reports.specification_loader import SpecificationLoader


VALID = {
    "inputs": [{"path": "stats.top_products", "name": "products"}],
    "prompts": [{"file": "summary.md", "name": "summary", "inputs": ["products"]}],
    "template": {"file": "report.njk", "type": "njk"},
}


class TestInputBinding:
    def test_resolves_nested_path(self):
        binding = InputBinding("stats.regions.0.name", "first")

        found, value = binding.resolve({"stats": {"regions": [{"name": "EU"}]}})

        assert found
        assert value == "EU"

    def test_missing_path(self):
        found, value = InputBinding("stats.nope", "x").resolve({"stats": {}})

        assert not found
        assert value is None

    def test_none_value_is_found(self):
        found, value = InputBinding("a", "a").resolve({"a": None})

        assert found
        assert value is None


class TestReportSpecification:
    def test_from_dict(self):
        spec = ReportSpecification.from_dict(VALID)

        assert spec.inputs[0] == InputBinding("stats.top_products", "products")
        assert spec.prompts[0].inputs == ("products",)
        assert not spec.template.is_mdx
        assert spec.to_dict() == VALID

    def test_coerce_passes_instances_through(self):
        spec = ReportSpecification.from_dict(VALID)

        assert ReportSpecification.coerce(spec) is spec

    def test_mdx_detection(self):
        spec = ReportSpecification.from_dict(
            {
                "inputs": [],
                "prompts": [{"file": "intro.mdx", "name": "intro", "inputs": []}],
                "template": {"file": "report.mdx", "type": "mdx"},
            }
        )

        assert spec.prompts[0].is_mdx
        assert spec.template.is_mdx

    def test_every_error_reported(self):
        with pytest.raises(SpecificationError) as exc_info:
            ReportSpecification.from_dict(
                {
                    "inputs": [{"path": "", "name": "x"}],
                    "prompts": [{"name": "p"}],
                    "template": {"file": "t", "type": "jinja"},
                },
                source="acme.sales:summary",
            )

        assert exc_info.value.errors == [
            "Input 0: missing or invalid path",
            "Prompt 0: missing or invalid file",
            "Prompt 0: missing or invalid inputs array",
            'Template: type must be "njk" or "mdx"',
        ]
        assert "acme.sales:summary" in str(exc_info.value)

    def test_missing_sections(self):
        errors = validate_specification({})

        assert errors == [
            "Missing or invalid inputs array",
            "Missing or invalid prompts array",
            "Missing or invalid template object",
        ]


class TestSpecificationLoader:
    def test_save_and_load_directory(self, tmp_path):
        spec = ReportSpecification.from_dict(VALID)
        SpecificationLoader.save_to_file(spec, tmp_path / "monthly.yaml")
        (tmp_path / "weekly.yml").write_text(
            "inputs: []\nprompts: []\ntemplate:\n  file: weekly.mdx\n  type: mdx\n"
        )

        specs = SpecificationLoader.load_directory(tmp_path)

        assert set(specs) == {"monthly", "weekly"}
        assert specs["monthly"] == spec
        assert specs["weekly"].template.is_mdx

    def test_load_from_plugin(self, tmp_path):
        SpecificationLoader.save_to_file(ReportSpecification.from_dict(VALID), tmp_path / "report.yaml")

        assert SpecificationLoader.load_from_plugin(tmp_path).template.file == "report.njk"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("inputs: [unclosed\n")

        with pytest.raises(SpecificationError, match="Failed to load specification"):
            SpecificationLoader.load_from_file(path)

"""Report specification model.

A specification describes one report type of a plugin:

    inputs:                      # bundle values published to prompts
      - path: samples.main
        name: records
    prompts:                     # LLM calls, run in order
      - file: summary.md
        name: summary
        inputs: [records]
    template:                    # final document template
      file: report.njk
      type: njk
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from reportflow.reports.errors import SpecificationError


class TemplateType(str, Enum):
    NJK = "njk"
    MDX = "mdx"


@dataclass(frozen=True)
class InputBinding:
    """Publishes the bundle value at dotted ``path`` as context variable ``name``."""

    path: str
    name: str

    def resolve(self, data: Mapping[str, Any]) -> tuple[bool, Any]:
        """Look up ``path`` in ``data``.

        Returns:
            ``(found, value)``.
        """
        current: Any = data
        for part in self.path.split("."):
            if isinstance(current, Mapping) and part in current:
                current = current[part]
            elif isinstance(current, (list, tuple)) and part.isdigit() and int(part) < len(current):
                current = current[int(part)]
            else:
                return False, None
        return True, current


@dataclass(frozen=True)
class PromptSpec:
    file: str
    name: str
    inputs: tuple[str, ...] = ()

    @property
    def is_mdx(self) -> bool:
        return self.file.endswith(".mdx")


@dataclass(frozen=True)
class TemplateSpec:
    file: str
    type: str = TemplateType.NJK.value

    @property
    def is_mdx(self) -> bool:
        return self.type == TemplateType.MDX.value


@dataclass(frozen=True)
class ReportSpecification:
    inputs: tuple[InputBinding, ...]
    prompts: tuple[PromptSpec, ...]
    template: TemplateSpec

    @classmethod
    def from_dict(cls, data: Any, source: str | None = None) -> "ReportSpecification":
        """Build a specification from its dict form.

        Raises:
            SpecificationError: With every violation found.
        """
        errors = validate_specification(data)
        if errors:
            raise SpecificationError(errors, source)

        return cls(
            inputs=tuple(InputBinding(i["path"], i["name"]) for i in data["inputs"]),
            prompts=tuple(
                PromptSpec(p["file"], p["name"], tuple(p["inputs"])) for p in data["prompts"]
            ),
            template=TemplateSpec(data["template"]["file"], data["template"]["type"]),
        )

    @classmethod
    def coerce(cls, value: Any, source: str | None = None) -> "ReportSpecification":
        """Accept either a specification or its dict form."""
        if isinstance(value, cls):
            return value
        return cls.from_dict(value, source)

    def to_dict(self) -> dict[str, Any]:
        return {
            "inputs": [{"path": i.path, "name": i.name} for i in self.inputs],
            "prompts": [
                {"file": p.file, "name": p.name, "inputs": list(p.inputs)}
                for p in self.prompts
            ],
            "template": {"file": self.template.file, "type": self.template.type},
        }


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def validate_specification(spec: Any) -> list[str]:
    """Collect every structural violation in a specification dict."""
    if isinstance(spec, ReportSpecification):
        spec = spec.to_dict()
    if not isinstance(spec, Mapping):
        return ["Specification must be a mapping"]

    errors: list[str] = []

    inputs = spec.get("inputs")
    if not isinstance(inputs, list):
        errors.append("Missing or invalid inputs array")
    else:
        for idx, item in enumerate(inputs):
            item = item if isinstance(item, Mapping) else {}
            if not _is_text(item.get("path")):
                errors.append(f"Input {idx}: missing or invalid path")
            if not _is_text(item.get("name")):
                errors.append(f"Input {idx}: missing or invalid name")

    prompts = spec.get("prompts")
    if not isinstance(prompts, list):
        errors.append("Missing or invalid prompts array")
    else:
        for idx, item in enumerate(prompts):
            item = item if isinstance(item, Mapping) else {}
            if not _is_text(item.get("file")):
                errors.append(f"Prompt {idx}: missing or invalid file")
            if not _is_text(item.get("name")):
                errors.append(f"Prompt {idx}: missing or invalid name")
            if not isinstance(item.get("inputs"), list):
                errors.append(f"Prompt {idx}: missing or invalid inputs array")

    template = spec.get("template")
    if not isinstance(template, Mapping):
        errors.append("Missing or invalid template object")
    else:
        if not _is_text(template.get("file")):
            errors.append("Template: missing or invalid file")
        if template.get("type") not in {t.value for t in TemplateType}:
            errors.append('Template: type must be "njk" or "mdx"')

    return errors

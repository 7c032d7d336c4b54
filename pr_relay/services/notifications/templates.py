"""JSON message templates with {{variable}} substitution."""

import copy
import json
import re
from pathlib import Path
from typing import Any

from pr_relay.core.exceptions import TemplateError
from pr_relay.core.logging import get_logger

logger = get_logger("notifications.templates")

PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")
SINGLE_PLACEHOLDER = re.compile(r"^\{\{(\w+)\}\}$")


class TemplateService:
    """Loads a JSON document of named templates and renders them."""

    def __init__(self, templates: dict[str, Any] | None = None) -> None:
        self._templates: dict[str, Any] = {}
        if templates:
            self._store(templates)

    def _store(self, document: dict[str, Any]) -> None:
        for name, template in document.items():
            if not name.startswith("_"):
                self._templates[name] = template

    def load(self, path: Path | str) -> None:
        """Load templates from a JSON file, skipping keys that start with _."""
        try:
            document = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise TemplateError(f"Failed to load templates: {e}") from e

        if not isinstance(document, dict):
            raise TemplateError(f"Failed to load templates: {path} is not a JSON object")

        self._store(document)
        logger.info(f"Loaded {len(self._templates)} templates from {path}")

    def has_template(self, name: str) -> bool:
        return name in self._templates

    def render(self, name: str, variables: dict[str, Any] | None = None) -> Any:
        """Render a template by name with variable substitution."""
        if name not in self._templates:
            raise TemplateError(f"Template not found: {name}")
        return _substitute(copy.deepcopy(self._templates[name]), variables or {})


def _substitute(node: Any, variables: dict[str, Any]) -> Any:
    if isinstance(node, str):
        # A string that is exactly one placeholder keeps the variable's type
        single = SINGLE_PLACEHOLDER.match(node)
        if single and variables.get(single.group(1)) is not None:
            return variables[single.group(1)]

        def replace(match: re.Match) -> str:
            key = match.group(1)
            if key not in variables:
                return match.group(0)
            value = variables[key]
            return "" if value is None else str(value)

        return PLACEHOLDER.sub(replace, node)

    if isinstance(node, list):
        return [_substitute(item, variables) for item in node]

    if isinstance(node, dict):
        return {
            key: _substitute(value, variables)
            for key, value in node.items()
            if not key.startswith("_")
        }

    return node

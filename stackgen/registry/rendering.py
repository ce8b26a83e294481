"""Jinja2 rendering for artifact paths and contents."""

from __future__ import annotations

import re
from typing import Any, Mapping

from jinja2 import (
    BaseLoader,
    Environment,
    PackageLoader,
    StrictUndefined,
    TemplateNotFound,
    UndefinedError,
)

from ..errors import PlanError


def snake(value: Any) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9]+", "_", str(value)).strip("_").lower()
    if cleaned and cleaned[0].isdigit():
        cleaned = f"_{cleaned}"
    return cleaned or "app"


def kebab(value: Any) -> str:
    return snake(value).strip("_").replace("_", "-") or "app"


def pascal(value: Any) -> str:
    return "".join(part.capitalize() for part in snake(value).split("_") if part) or "App"


class TemplateRenderer:
    """Renders path strings and packaged template files with strict undefineds."""

    def __init__(self, loader: BaseLoader | None = None) -> None:
        self._env = Environment(
            loader=loader or PackageLoader("stackgen", "templates"),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )
        self._env.filters["snake"] = snake
        self._env.filters["kebab"] = kebab
        self._env.filters["pascal"] = pascal

    def render_path(self, template: str, context: Mapping[str, Any]) -> str:
        try:
            return self._env.from_string(template).render(**context)
        except UndefinedError as exc:
            raise PlanError(f"Path template '{template}' references an unknown option: {exc}") from exc

    def render_file(self, name: str, context: Mapping[str, Any]) -> str:
        try:
            template = self._env.get_template(name)
        except TemplateNotFound as exc:
            raise PlanError(f"Template '{name}' is not packaged with stackgen") from exc
        try:
            return template.render(**context)
        except UndefinedError as exc:
            raise PlanError(f"Template '{name}' references an unknown option: {exc}") from exc


__all__ = ["TemplateRenderer", "kebab", "pascal", "snake"]

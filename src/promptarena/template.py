from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from jinja2 import Environment, StrictUndefined, TemplateError

JINJA_SUFFIXES = {".j2", ".jinja", ".jinja2"}


def render_prompt(content: str, variables: Mapping[str, str], suffix: str = "") -> str:
    """Render ``content`` with ``variables``; prompts without variables pass through."""
    is_jinja = suffix.lower() in JINJA_SUFFIXES
    if not variables and not is_jinja:
        return content
    if is_jinja or "{{" in content or "{%" in content:
        env = Environment(autoescape=False, undefined=StrictUndefined, keep_trailing_newline=True)
        try:
            return env.from_string(content).render(**variables)
        except TemplateError as exc:
            raise ValueError(str(exc)) from exc
    try:
        return content.format_map(dict(variables))
    except (KeyError, IndexError) as exc:
        raise ValueError(f"missing template variable {exc}") from exc


def load_prompt(path: Path, variables: Mapping[str, str]) -> str:
    return render_prompt(path.read_text(), variables, path.suffix)


def parse_variables(pairs: list[str]) -> dict[str, str]:
    variables: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Template variables must look like key=value, got {pair!r}")
        variables[key.strip()] = value
    return variables

# templating.py

import json
import os
import re
from typing import Callable, Mapping, Optional

from jinja2 import Environment, StrictUndefined, Template, TemplateError, nodes

from exceptions import TemplateCompileError, TemplateRenderError

EnvLookup = Callable[[str], Optional[str]]

ENV_VAR_PATTERN = re.compile(r"\$(?:\{(\w+)\}|(\w+))")


def to_json(value) -> str:
    """Serialize a value to compact JSON with sorted keys."""
    try:
        return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise TemplateRenderError(f"Cannot serialize {type(value).__name__} to JSON: {e}")


def _finalize(value):
    # Structured values and JSON literals print as JSON rather than Python reprs.
    if value is None or isinstance(value, (bool, dict, list)):
        return to_json(value)
    return value


def _build_environment() -> Environment:
    env = Environment(
        undefined=StrictUndefined,
        autoescape=False,
        keep_trailing_newline=True,
        finalize=_finalize,
    )
    env.filters["json"] = to_json
    env.globals = {"json": to_json}
    return env


environment = _build_environment()


def expand_env(source: str, lookup: EnvLookup) -> str:
    """
    Replace $VAR and ${VAR} references with values from `lookup`.

    Unknown variables expand to an empty string.
    """
    def replace(match):
        name = match.group(1) or match.group(2)
        return lookup(name) or ""

    return ENV_VAR_PATTERN.sub(replace, source)


def _check_names(source: str, ast: nodes.Template):
    macros = {macro.name for macro in ast.find_all(nodes.Macro)}
    for call in ast.find_all(nodes.Call):
        if isinstance(call.node, nodes.Name):
            name = call.node.name
            if name not in environment.globals and name not in macros:
                raise TemplateCompileError(source, f"unknown function {name!r}")
    for node in ast.find_all(nodes.Filter):
        if node.name not in environment.filters:
            raise TemplateCompileError(source, f"unknown filter {node.name!r}")
    for node in ast.find_all(nodes.Test):
        if node.name not in environment.tests:
            raise TemplateCompileError(source, f"unknown test {node.name!r}")


def compile_template(source: str, lookup: Optional[EnvLookup] = None) -> Template:
    """
    Compile a template source into a reusable template.

    The source first has process environment references expanded, so a hook
    file may be parameterized from the environment at load time.

    Raises:
        TemplateCompileError: invalid syntax or an unknown function/filter.
    """
    expanded = expand_env(source, lookup or os.environ.get)
    try:
        ast = environment.parse(expanded)
        _check_names(source, ast)
        return environment.from_string(ast)
    except TemplateError as e:
        # e.message, unlike str(e), leaves out the expanded source line.
        raise TemplateCompileError(source, e.message or type(e).__name__) from e


def render_template(template: Template, data: Mapping) -> str:
    try:
        return template.render(data)
    except TemplateRenderError:
        raise
    except (TemplateError, TypeError, ValueError, AttributeError, KeyError) as e:
        raise TemplateRenderError(f"Error rendering template: {e}") from e

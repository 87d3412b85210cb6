"""Setup scripts shipped with the package and their ``{{ dotted.path }}`` rendering.

Substituted values are shell-escaped: strings are quoted, numbers printed and
flat lists/maps become zsh arrays. Booleans and nulls are rejected because
their spelling depends on the shell context.
"""

import re
import shlex
from pathlib import Path

from sacloudenv.remote.errors import TemplateRenderError

TEMPLATE_DIR = Path(__file__).parent / "templates"

ROOT_SETUP_SCRIPT = "root-setup.zsh"
USER_SETUP_SCRIPT = "user-setup.zsh"
BOOTSTRAP_NOTE_SCRIPT = "bootstrap-note.sh"

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z0-9_.\-]+)\s*\}\}")


def escape_shell(value) -> str:
    if value is None:
        raise TemplateRenderError("null is not supported in shell script templates")
    if isinstance(value, bool):
        raise TemplateRenderError(
            f"boolean {value} is not supported in shell script templates", value=value
        )
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return shlex.quote(value)
    if isinstance(value, (list, tuple)):
        parts = []
        for item in value:
            if isinstance(item, (list, tuple, dict)):
                raise TemplateRenderError("nested list or map is not supported in shell script templates")
            parts.append(escape_shell(item) + " ")
        return "(" + "".join(parts) + ")"
    if isinstance(value, dict):
        parts = []
        for key, item in value.items():
            if isinstance(item, (list, tuple, dict)):
                raise TemplateRenderError("nested list or map is not supported in shell script templates")
            parts.append(f"{shlex.quote(str(key))} {escape_shell(item)} ")
        return "(" + "".join(parts) + ")"
    raise TemplateRenderError(f"unsupported value type {type(value).__name__}", value=repr(value))


def _lookup(context: dict, dotted: str):
    node = context
    for key in dotted.split("."):
        if not isinstance(node, dict) or key not in node:
            raise TemplateRenderError(f"template variable '{dotted}' is not defined", variable=dotted)
        node = node[key]
    return node


def render_template(text: str, context: dict) -> str:
    return _PLACEHOLDER.sub(lambda m: escape_shell(_lookup(context, m.group(1))), text)


def load_template(name: str) -> str:
    return (TEMPLATE_DIR / name).read_text()


def render_script(name: str, context: dict) -> bytes:
    """Render packaged template *name* against *context* (the ``server`` config)."""
    return render_template(load_template(name), context).encode()

"""Jinja2 template backend.

Templates receive one variable, ``secrets``: a mapping of leaf path to
``{key: value}``, both in path order. Referencing a missing key is an error.

Example::

    {% for path, data in secrets.items() %}{% for key, value in data.items() %}
    {{ path }}: {{ key }}={{ value }}
    {% endfor %}{% endfor %}
"""

from jinja2 import Environment, StrictUndefined, TemplateError

from ..exceptions import InternalError
from ..models import Tree
from ..projection import flatten, sorted_keys
from .options import RenderContext, RenderOptions

_environment = Environment(undefined=StrictUndefined, keep_trailing_newline=True)


def render_template(secrets: Tree, options: RenderOptions, context: RenderContext) -> str:
    flat = flatten(secrets)
    data = {
        path: {key: flat[path][key] for key in sorted_keys(flat[path])}
        for path in sorted_keys(flat)
    }
    try:
        text = _environment.from_string(options.template_source or "").render(secrets=data)
    except TemplateError as e:
        raise InternalError(f"template error: {e}", details={"template_error": type(e).__name__}) from e
    return text.rstrip() + "\n"

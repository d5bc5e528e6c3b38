"""Shell ``export`` statement backend."""

from typing import Dict

from ..models import Tree
from ..projection import flatten, join_path, sorted_keys, stringify
from .options import RenderContext, RenderOptions


def shell_quote(value: str) -> str:
    """Quote a value for use inside single quotes in a POSIX shell."""
    return "'" + value.replace("'", "'\\''") + "'"


def render_export(secrets: Tree, options: RenderOptions, context: RenderContext) -> str:
    """Render one ``export KEY='VALUE'`` line per distinct key.

    Keys seen on more than one path keep the value of the last path in
    path order.
    """
    variables: Dict[str, str] = {}
    flat = flatten(secrets)
    for path in sorted_keys(flat):
        leaf = flat[path]
        for key in sorted_keys(leaf):
            name = key
            if options.include_path:
                name = join_path(path, key).replace("/", "_")
            if options.upper:
                name = name.upper()
            variables[name] = stringify(leaf[key])

    return "".join(
        f"export {name}={shell_quote(variables[name])}\n" for name in sorted(variables)
    )

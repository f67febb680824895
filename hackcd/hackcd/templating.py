"""
Jinja2 environment used to expand the manifests shipped in hackcd/templates.

Templates are addressed by their path relative to the templates directory (e.g. "konflux/component.yaml")
and may include or import one another. On top of the Jinja2 builtins they can call:

    hyphenize(s)             turn s into a valid resource name ("1.21" -> "1-21"); also a filter
    basename(s)              last element of a slash separated path; also a filter
    indent(spaces, text)     pad every line of text, the first one included
    contains(haystack, s)    substring test
    eval(text[, data])       render text as a template, against data or the current context
"""

import logging
from dataclasses import fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import jinja2
from hackcommonlib import util

LOGGER = logging.getLogger(__name__)


def _eval(env: jinja2.Environment, template_text: str, data: Optional[Dict[str, Any]] = None) -> str:
    return env.from_string(template_text).render(data or {})


@jinja2.pass_context
def _eval_in_context(context: jinja2.runtime.Context, template_text: str, data: Optional[Any] = None) -> str:
    if data is None:
        data = context.get_all()
    return _eval(context.environment, template_text, to_template_data(data))


def to_template_data(obj: Any) -> Dict[str, Any]:
    """Render context of a dataclass (or a mapping)"""
    if is_dataclass(obj) and not isinstance(obj, type):
        data = {f.name: getattr(obj, f.name) for f in fields(obj)}
        # properties such as application_name are exposed next to the fields
        for name in dir(type(obj)):
            if isinstance(getattr(type(obj), name), property):
                data[name] = getattr(obj, name)
        return data
    return dict(obj)


def new_environment(loader: Optional[jinja2.BaseLoader] = None) -> jinja2.Environment:
    env = jinja2.Environment(
        loader=loader or jinja2.PackageLoader("hackcd", "templates"),
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["hyphenize"] = util.hyphenize
    env.filters["basename"] = util.basename
    env.globals.update(
        {
            "hyphenize": util.hyphenize,
            "basename": util.basename,
            "indent": util.indent,
            "contains": util.contains,
            "eval": _eval_in_context,
        }
    )
    return env


class TemplateRenderer:
    def __init__(self, env: Optional[jinja2.Environment] = None):
        self.env = env or new_environment()

    def render(self, template_name: str, data: Any) -> str:
        """
        :raises jinja2.TemplateNotFound: unknown template
        :raises jinja2.UndefinedError: the template references something `data` does not have
        """
        template = self.env.get_template(template_name)
        return template.render(to_template_data(data))

    def render_to_file(self, template_name: str, data: Any, path: Union[str, Path]):
        """Expand `template_name` against `data` into `path`, creating parent directories as needed."""
        path = Path(path)
        content = self.render(template_name, data)
        path.parent.mkdir(parents=True, exist_ok=True)
        LOGGER.debug("Writing %s from %s", path, template_name)
        path.write_text(content)

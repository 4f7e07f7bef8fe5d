"""Jinja2 rendering for the card preview and export overlay markup."""

from functools import lru_cache
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

# Template directory
TEMPLATE_DIR = Path(__file__).parent.parent / "templates"


@lru_cache
def get_template_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_template(template_name: str, **context: object) -> str:
    """Render a Jinja2 template.

    Args:
        template_name: Name of the template file.
        **context: Template context variables.

    Returns:
        Rendered template string.
    """
    template = get_template_env().get_template(template_name)
    return template.render(**context)

"""Template loading and rendering using Jinja2.

Templates ship inside the package under ``simplemath/templates``.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

from jinja2 import Environment, FileSystemLoader, Template

logger = logging.getLogger(__name__)


def _templates_dir() -> Path:
    return Path(__file__).resolve().parent / "templates"


@lru_cache(maxsize=1)
def _env() -> Environment:
    loader = FileSystemLoader(str(_templates_dir()))
    # Animation pages embed generated JS verbatim, so no HTML autoescaping.
    return Environment(loader=loader, autoescape=False, trim_blocks=True, lstrip_blocks=True)


def load_template(name: str) -> Template:
    return _env().get_template(name)


def render_template(name: str, context: Dict[str, Any]) -> str:
    logger.debug("Rendering template %s with keys %s", name, sorted(context))
    return load_template(name).render(**context)

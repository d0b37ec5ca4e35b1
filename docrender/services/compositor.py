"""
Template composition with Jinja2.

Templates (`<templates_dir>/<name>.html`) and fragments (any
`<partials_dir>/**/<name>.html`) are read once at startup into a
TemplateRegistry. Templates pull fragments in by file stem:

    {% include "header_corporativo" %}

Binding is pure: after startup no filesystem access happens.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Literal, Optional

from jinja2 import (
    ChainableUndefined,
    DictLoader,
    Environment,
    Template,
    TemplateError,
    select_autoescape,
)
from jinja2.utils import htmlsafe_json_dumps
from markupsafe import Markup

from docrender.core.errors import CompositionFailed, TemplateNotFound, TemplateRegistryError

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".html"
TIMESTAMP_KEY = "dataAtual"
TIMESTAMP_FORMAT = "%d/%m/%Y, %H:%M:%S"

CollisionPolicy = Literal["error", "last_wins"]


def json_filter(value: Any) -> Markup:
    """Serialize a value for embedding in a page (e.g. inside a <script>)."""
    return htmlsafe_json_dumps(value, dumps=json.dumps, ensure_ascii=False, default=str)


def scan_fragments(
    partials_dir: Path,
    collision_policy: CollisionPolicy = "error",
) -> Dict[str, str]:
    """
    Recursively read fragment files keyed by file stem.

    Files are visited in sorted path order so "last wins" is deterministic.

    Args:
        partials_dir: Root of the fragment tree
        collision_policy: "error" to reject duplicate stems, "last_wins" to overwrite

    Returns:
        Dict of fragment name -> source

    Raises:
        TemplateRegistryError: On a duplicate stem under the "error" policy
    """
    fragments: Dict[str, str] = {}
    origins: Dict[str, Path] = {}

    if not partials_dir.is_dir():
        logger.warning(f"Fragment directory not found: {partials_dir}")
        return fragments

    for path in sorted(partials_dir.rglob(f"*{TEMPLATE_SUFFIX}")):
        if not path.is_file():
            continue
        name = path.stem
        if name in origins:
            if collision_policy == "error":
                raise TemplateRegistryError(
                    f"Fragment name '{name}' is defined twice: {origins[name]} and {path}"
                )
            logger.warning(f"Fragment '{name}' from {origins[name]} overridden by {path}")

        fragments[name] = path.read_text(encoding="utf-8")
        origins[name] = path
        logger.info(f"Fragment loaded: {name} (from {path})")

    return fragments


class TemplateRegistry:
    """
    Compiled templates plus the fragment environment they render in.

    Built once per worker at startup and treated as immutable afterwards.
    Fields the request leaves out render as empty text, at any depth.
    """

    def __init__(self, templates: Dict[str, str], fragments: Dict[str, str]):
        self.environment = Environment(
            loader=DictLoader(fragments),
            undefined=ChainableUndefined,
            autoescape=select_autoescape(default=True, default_for_string=True),
        )
        self.environment.filters["json"] = json_filter
        self.fragment_names = sorted(fragments)
        self._templates: Dict[str, Template] = {}

        for name, source in templates.items():
            try:
                self._templates[name] = self.environment.from_string(source)
            except TemplateError as e:
                raise TemplateRegistryError(f"Template '{name}' failed to compile: {e}") from e

    @classmethod
    def load(
        cls,
        templates_dir: Path,
        partials_dir: Path,
        collision_policy: CollisionPolicy = "error",
    ) -> "TemplateRegistry":
        """
        Read templates and fragments from disk.

        Raises:
            TemplateRegistryError: On fragment collisions or compile errors
        """
        templates: Dict[str, str] = {}
        if templates_dir.is_dir():
            for path in sorted(templates_dir.glob(f"*{TEMPLATE_SUFFIX}")):
                templates[path.stem] = path.read_text(encoding="utf-8")
        else:
            logger.warning(f"Template directory not found: {templates_dir}")

        fragments = scan_fragments(partials_dir, collision_policy)
        registry = cls(templates, fragments)
        logger.info(
            f"Registered {len(registry.template_names)} templates and "
            f"{len(registry.fragment_names)} fragments"
        )
        return registry

    @property
    def template_names(self) -> list[str]:
        return sorted(self._templates)

    def get(self, name: str) -> Template:
        try:
            return self._templates[name]
        except KeyError:
            raise TemplateNotFound(name) from None


class TemplateCompositor:
    """Binds request data into a registered template."""

    def __init__(
        self,
        registry: TemplateRegistry,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.registry = registry
        self.clock = clock or datetime.now

    def compose(self, template_name: str, data: Dict[str, Any]) -> str:
        """
        Render a template with the given data.

        A generation timestamp is added under `dataAtual` unless the
        caller already supplied one. The input mapping is not modified.

        Raises:
            TemplateNotFound: If the template is not registered
            CompositionFailed: If the template raises while rendering
        """
        template = self.registry.get(template_name)

        context = dict(data)
        if not context.get(TIMESTAMP_KEY):
            context[TIMESTAMP_KEY] = self.clock().strftime(TIMESTAMP_FORMAT)

        try:
            return template.render(context)
        except TemplateError as e:
            raise CompositionFailed(
                f"Template '{template_name}' failed to render: {e}",
                {"template_name": template_name},
            ) from e

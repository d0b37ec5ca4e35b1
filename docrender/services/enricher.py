"""
Section enrichment for render requests.

Walks `data["secoes"]` in order and attaches generated images to QR-code
and chart sections. The input payload is never mutated: enrichment
returns a new payload plus the warnings recorded for skipped sections.

Usage:
    enricher = DataEnricher(qr_generator, chart_renderer)
    result = await enricher.enrich(request.data)

    for warning in result.warnings:
        print(f"section #{warning.index}: {warning.message}")
    compositor.compose(name, result.data)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from docrender.core.errors import EnrichmentFailed

logger = logging.getLogger(__name__)

# Payload field names
SECTIONS_KEY = "secoes"
COMPONENT_KEY = "componente"
CONTENT_KEY = "conteudo"
CONFIG_KEY = "config"
IMAGE_KEY = "imagemBase64"

# Component kinds (matched case-insensitively)
QR_COMPONENTS = {"qrcode"}
CHART_COMPONENTS = {"grafico", "chart"}


class QrCodeGenerator(Protocol):
    async def generate(self, content: str) -> str:
        """Return a PNG data URL encoding `content` as a QR code."""
        ...


class ChartRenderer(Protocol):
    async def render(self, config: Dict[str, Any]) -> str:
        """Return a PNG data URL of the chart described by `config`."""
        ...


@dataclass(frozen=True)
class EnrichmentWarning:
    """A section that was skipped because its trigger field was missing."""

    index: int
    component: str
    message: str


@dataclass
class EnrichmentResult:
    """Enriched payload plus warnings for skipped sections."""

    data: Dict[str, Any]
    warnings: List[EnrichmentWarning] = field(default_factory=list)

    @property
    def sections(self) -> List[Dict[str, Any]]:
        return self.data.get(SECTIONS_KEY, [])


def _is_blank(value: Any) -> bool:
    """Missing, null, false, zero or empty text. Empty objects and lists count as present."""
    if isinstance(value, (dict, list)):
        return False
    return not value


def component_kind(section: Any) -> Optional[str]:
    """Get the lower-cased component tag of a section, if any."""
    if not isinstance(section, dict):
        return None
    kind = section.get(COMPONENT_KEY)
    return kind.lower() if isinstance(kind, str) else None


class DataEnricher:
    """
    Attaches QR code and chart images to request sections.

    Generators are injected so tests can substitute deterministic fakes.
    Generator failures are structural content errors and are not retried.
    """

    def __init__(self, qr_generator: QrCodeGenerator, chart_renderer: ChartRenderer):
        self.qr_generator = qr_generator
        self.chart_renderer = chart_renderer

    async def enrich(self, data: Dict[str, Any]) -> EnrichmentResult:
        """
        Enrich a request payload.

        Args:
            data: Request data; sections are read from data["secoes"]

        Returns:
            EnrichmentResult with a new payload and skipped-section warnings

        Raises:
            EnrichmentFailed: If a QR or chart generator fails
        """
        sections = data.get(SECTIONS_KEY)
        if not isinstance(sections, list):
            return EnrichmentResult(data=dict(data))

        warnings: List[EnrichmentWarning] = []
        enriched: List[Any] = []

        for index, section in enumerate(sections, start=1):
            kind = component_kind(section)
            logger.debug(
                f"Processing section #{index}: componente={kind}, "
                f"keys={sorted(section) if isinstance(section, dict) else type(section).__name__}"
            )

            if kind in QR_COMPONENTS:
                section = await self._enrich_qrcode(index, section, warnings)
            elif kind in CHART_COMPONENTS:
                section = await self._enrich_chart(index, section, warnings)

            enriched.append(section)

        result = dict(data)
        result[SECTIONS_KEY] = enriched
        return EnrichmentResult(data=result, warnings=warnings)

    async def _enrich_qrcode(
        self,
        index: int,
        section: Dict[str, Any],
        warnings: List[EnrichmentWarning],
    ) -> Dict[str, Any]:
        content = section.get(CONTENT_KEY)
        if not content:
            message = f"Section #{index} is a QR code but has no '{CONTENT_KEY}'"
            logger.warning(message)
            warnings.append(EnrichmentWarning(index, "qrcode", message))
            return section

        try:
            image = await self.qr_generator.generate(str(content))
        except Exception as e:
            logger.error(f"QR code generation failed for section #{index}: {e}")
            raise EnrichmentFailed(
                f"Failed to generate QR code for section #{index}",
                {"section": index, "component": "qrcode", "reason": str(e)},
            ) from e

        logger.info(f"QR code generated for section #{index}")
        return {**section, IMAGE_KEY: image}

    async def _enrich_chart(
        self,
        index: int,
        section: Dict[str, Any],
        warnings: List[EnrichmentWarning],
    ) -> Dict[str, Any]:
        config = section.get(CONFIG_KEY)
        if _is_blank(config):
            message = f"Section #{index} is a chart but has no '{CONFIG_KEY}'"
            logger.warning(message)
            warnings.append(EnrichmentWarning(index, "chart", message))
            return section

        try:
            image = await self.chart_renderer.render(config)
        except Exception as e:
            logger.error(f"Chart generation failed for section #{index}: {e}")
            raise EnrichmentFailed(
                f"Failed to generate chart for section #{index}",
                {"section": index, "component": "chart", "reason": str(e)},
            ) from e

        logger.info(f"Chart generated for section #{index}")
        return {**section, IMAGE_KEY: image}

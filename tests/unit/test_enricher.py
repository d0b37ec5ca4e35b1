"""
Unit tests for section enrichment.
"""

import copy

import pytest

from docrender.core.errors import EnrichmentFailed
from docrender.services.enricher import IMAGE_KEY, DataEnricher
from docrender.services.generators import MatplotlibChartRenderer
from tests.conftest import FakeChartRenderer, FakeQrGenerator


@pytest.fixture
def enricher(qr_generator: FakeQrGenerator, chart_renderer: FakeChartRenderer) -> DataEnricher:
    return DataEnricher(qr_generator, chart_renderer)


CHART_CONFIG = {
    "type": "bar",
    "data": {"labels": ["Jan", "Fev"], "datasets": [{"label": "Vendas", "data": [3, 5]}]},
}


class TestEnrich:
    """Tests for DataEnricher.enrich()."""

    @pytest.mark.asyncio
    async def test_qrcode_section_gets_image(self, enricher: DataEnricher, qr_generator: FakeQrGenerator):
        data = {"secoes": [{"componente": "qrcode", "conteudo": "INV-42"}]}

        result = await enricher.enrich(data)

        assert result.sections[0][IMAGE_KEY] == "data:image/png;base64,QR-INV-42"
        assert qr_generator.calls == ["INV-42"]
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_component_match_is_case_insensitive(self, enricher: DataEnricher):
        data = {"secoes": [{"componente": "QRCode", "conteudo": "x"}, {"componente": "Grafico", "config": CHART_CONFIG}]}

        result = await enricher.enrich(data)

        assert IMAGE_KEY in result.sections[0]
        assert IMAGE_KEY in result.sections[1]

    @pytest.mark.asyncio
    async def test_chart_section_gets_image(self, enricher: DataEnricher, chart_renderer: FakeChartRenderer):
        data = {"secoes": [{"componente": "grafico", "config": CHART_CONFIG}]}

        result = await enricher.enrich(data)

        assert result.sections[0][IMAGE_KEY] == "data:image/png;base64,CHART"
        assert chart_renderer.calls == [CHART_CONFIG]

    @pytest.mark.asyncio
    async def test_qrcode_without_content_is_skipped_with_warning(self, enricher: DataEnricher, qr_generator):
        data = {"secoes": [{"componente": "qrcode"}, {"componente": "qrcode", "conteudo": ""}]}

        result = await enricher.enrich(data)

        assert all(IMAGE_KEY not in section for section in result.sections)
        assert [w.index for w in result.warnings] == [1, 2]
        assert all(w.component == "qrcode" for w in result.warnings)
        assert qr_generator.calls == []

    @pytest.mark.asyncio
    async def test_chart_without_config_is_skipped_with_warning(self, enricher: DataEnricher):
        data = {"secoes": [{"componente": "grafico"}]}

        result = await enricher.enrich(data)

        assert IMAGE_KEY not in result.sections[0]
        assert len(result.warnings) == 1
        assert "config" in result.warnings[0].message

    @pytest.mark.asyncio
    async def test_order_and_unknown_sections_preserved(self, enricher: DataEnricher):
        sections = [
            {"componente": "texto", "texto": "intro"},
            {"componente": "qrcode", "conteudo": "A"},
            "raw string section",
            {"titulo": "no component"},
            {"componente": "grafico", "config": CHART_CONFIG},
        ]

        result = await enricher.enrich({"secoes": sections})

        assert len(result.sections) == 5
        assert result.sections[0] == sections[0]
        assert result.sections[1]["conteudo"] == "A"
        assert result.sections[2] == "raw string section"
        assert result.sections[3] == sections[3]
        assert result.sections[4]["componente"] == "grafico"

    @pytest.mark.asyncio
    async def test_input_is_not_mutated(self, enricher: DataEnricher):
        data = {"cliente": "ACME", "secoes": [{"componente": "qrcode", "conteudo": "A"}]}
        original = copy.deepcopy(data)

        result = await enricher.enrich(data)

        assert data == original
        assert result.data["cliente"] == "ACME"
        assert result.data is not data

    @pytest.mark.asyncio
    async def test_payload_without_sections_passes_through(self, enricher: DataEnricher):
        result = await enricher.enrich({"cliente": "ACME", "secoes": "not a list"})

        assert result.data == {"cliente": "ACME", "secoes": "not a list"}
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_rerun_regenerates_images(self, enricher: DataEnricher, qr_generator: FakeQrGenerator):
        """Enrichment is a re-render, not a cache."""
        data = {"secoes": [{"componente": "qrcode", "conteudo": "A"}, {"componente": "texto"}]}

        first = await enricher.enrich(data)
        second = await enricher.enrich(first.data)

        assert qr_generator.calls == ["A", "A"]
        assert second.sections == first.sections

    @pytest.mark.asyncio
    async def test_qr_failure_is_fatal(self, chart_renderer: FakeChartRenderer):
        enricher = DataEnricher(FakeQrGenerator(fail=True), chart_renderer)

        with pytest.raises(EnrichmentFailed) as exc_info:
            await enricher.enrich({"secoes": [{"componente": "texto"}, {"componente": "qrcode", "conteudo": "A"}]})

        assert exc_info.value.details["section"] == 2
        assert exc_info.value.details["component"] == "qrcode"
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_chart_failure_is_fatal(self, qr_generator: FakeQrGenerator):
        enricher = DataEnricher(qr_generator, FakeChartRenderer(fail=True))

        with pytest.raises(EnrichmentFailed) as exc_info:
            await enricher.enrich({"secoes": [{"componente": "grafico", "config": {"type": "radar"}}]})

        assert "radar" in exc_info.value.details["reason"]

    @pytest.mark.asyncio
    async def test_empty_chart_config_reaches_renderer(self, enricher: DataEnricher, chart_renderer: FakeChartRenderer):
        result = await enricher.enrich({"secoes": [{"componente": "grafico", "config": {}}]})

        assert chart_renderer.calls == [{}]
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_empty_chart_config_fails_in_real_renderer(self, qr_generator: FakeQrGenerator):
        enricher = DataEnricher(qr_generator, MatplotlibChartRenderer())

        with pytest.raises(EnrichmentFailed) as exc_info:
            await enricher.enrich({"secoes": [{"componente": "grafico", "config": {}}]})

        assert exc_info.value.details["component"] == "chart"
        assert "Unsupported chart type" in exc_info.value.details["reason"]

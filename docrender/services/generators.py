"""
Image generators used by the data enricher.

- QrCodeImageGenerator: QR codes via `qrcode` + Pillow
- MatplotlibChartRenderer: Chart.js-style chart configs rendered with matplotlib

Both return embeddable `data:image/png;base64,...` URLs. Rendering is
CPU-bound, so it runs in a worker thread to keep the event loop free.
"""

import asyncio
import base64
import io
import re
from typing import Any, Dict, List, Optional, Sequence

import qrcode
from matplotlib.colors import to_rgba
from matplotlib.figure import Figure
from qrcode.constants import ERROR_CORRECT_H
from qrcode.image.pil import PilImage

PNG_DATA_URL_PREFIX = "data:image/png;base64,"
CHART_DPI = 100

_CSS_RGB = re.compile(
    r"rgba?\(\s*([\d.]+)\s*,\s*([\d.]+)\s*,\s*([\d.]+)\s*(?:,\s*([\d.]+)\s*)?\)"
)


class ChartConfigError(ValueError):
    """Raised when a chart configuration cannot be drawn."""

    pass


def to_data_url(png_bytes: bytes) -> str:
    """Encode PNG bytes as an embeddable data URL."""
    return PNG_DATA_URL_PREFIX + base64.b64encode(png_bytes).decode("ascii")


class QrCodeImageGenerator:
    """Generates high error-correction QR codes as PNG data URLs."""

    def __init__(self, width: int = 200, border: int = 1):
        self.width = width
        self.border = border

    async def generate(self, content: str) -> str:
        return await asyncio.to_thread(self._generate_sync, content)

    def _generate_sync(self, content: str) -> str:
        qr = qrcode.QRCode(
            error_correction=ERROR_CORRECT_H,
            box_size=1,
            border=self.border,
            image_factory=PilImage,
        )
        qr.add_data(content)
        qr.make(fit=True)

        # Scale modules so the image is as close to the target width as possible
        modules = qr.modules_count + 2 * self.border
        qr.box_size = max(1, self.width // modules)

        image = qr.make_image(fill_color="black", back_color="white")
        buffer = io.BytesIO()
        image.save(buffer)
        return to_data_url(buffer.getvalue())


def _to_mpl_color(value: Any) -> Optional[tuple]:
    """
    Convert a Chart.js color (hex, name, rgb()/rgba()) to a matplotlib RGBA tuple.

    Returns None for anything matplotlib cannot use, so its default applies.
    """
    if not isinstance(value, str):
        return None

    match = _CSS_RGB.fullmatch(value.strip())
    if match:
        r, g, b, a = match.groups()
        return (float(r) / 255, float(g) / 255, float(b) / 255, float(a) if a else 1.0)

    try:
        return to_rgba(value)
    except ValueError:
        return None


def _colors(value: Any, count: int) -> Optional[List[tuple]]:
    """Expand a single color or a list of colors to `count` entries."""
    if isinstance(value, list):
        converted = [_to_mpl_color(v) for v in value]
        if not converted or any(c is None for c in converted):
            return None
        return [converted[i % len(converted)] for i in range(count)]
    color = _to_mpl_color(value)
    return [color] * count if color else None


def _numbers(values: Sequence[Any]) -> List[float]:
    try:
        return [float(v) for v in values]
    except (TypeError, ValueError) as e:
        raise ChartConfigError(f"Dataset values must be numeric: {e}") from e


def _chart_title(options: Dict[str, Any]) -> Optional[str]:
    plugins = options.get("plugins") or {}
    title = plugins.get("title") or options.get("title") or {}
    if isinstance(title, dict):
        text = title.get("text")
        if isinstance(text, list):
            return " ".join(str(t) for t in text)
        return str(text) if text else None
    return None


class MatplotlibChartRenderer:
    """
    Draws Chart.js-style configs with matplotlib at a fixed pixel size.

    Supported types: bar, line, pie, doughnut.
    """

    SUPPORTED_TYPES = ("bar", "line", "pie", "doughnut")

    def __init__(self, width: int = 800, height: int = 400):
        self.width = width
        self.height = height

    async def render(self, config: Dict[str, Any]) -> str:
        return await asyncio.to_thread(self._render_sync, config)

    def _render_sync(self, config: Dict[str, Any]) -> str:
        if not isinstance(config, dict):
            raise ChartConfigError("Chart config must be an object")

        chart_type = str(config.get("type", "")).lower()
        if chart_type not in self.SUPPORTED_TYPES:
            raise ChartConfigError(f"Unsupported chart type: {chart_type or '<missing>'}")

        data = config.get("data") or {}
        labels = [str(label) for label in data.get("labels") or []]
        datasets = data.get("datasets") or []
        if not datasets:
            raise ChartConfigError("Chart config has no datasets")

        fig = Figure(figsize=(self.width / CHART_DPI, self.height / CHART_DPI), dpi=CHART_DPI)
        ax = fig.add_subplot()

        if chart_type in ("pie", "doughnut"):
            self._draw_pie(ax, chart_type, labels, datasets[0])
        elif chart_type == "bar":
            self._draw_bars(ax, labels, datasets)
        else:
            self._draw_lines(ax, labels, datasets)

        title = _chart_title(config.get("options") or {})
        if title:
            ax.set_title(title)

        fig.tight_layout()
        buffer = io.BytesIO()
        fig.savefig(buffer, format="png", dpi=CHART_DPI)
        return to_data_url(buffer.getvalue())

    def _draw_pie(self, ax, chart_type: str, labels: List[str], dataset: Dict[str, Any]) -> None:
        values = _numbers(dataset.get("data") or [])
        wedgeprops = {"width": 0.4} if chart_type == "doughnut" else None
        ax.pie(
            values,
            labels=labels[: len(values)] or None,
            colors=_colors(dataset.get("backgroundColor"), len(values)),
            wedgeprops=wedgeprops,
        )
        ax.set_aspect("equal")

    def _draw_bars(self, ax, labels: List[str], datasets: List[Dict[str, Any]]) -> None:
        group_width = 0.8
        bar_width = group_width / len(datasets)
        for index, dataset in enumerate(datasets):
            values = _numbers(dataset.get("data") or [])
            offset = -group_width / 2 + bar_width * (index + 0.5)
            positions = [i + offset for i in range(len(values))]
            ax.bar(
                positions,
                values,
                width=bar_width,
                label=dataset.get("label"),
                color=_colors(dataset.get("backgroundColor"), len(values)),
                edgecolor=_colors(dataset.get("borderColor"), len(values)),
            )
        count = max(len(labels), max(len(d.get("data") or []) for d in datasets))
        ax.set_xticks(list(range(count)))
        ax.set_xticklabels(labels[:count] + [""] * (count - len(labels)))
        self._legend(ax, datasets)

    def _draw_lines(self, ax, labels: List[str], datasets: List[Dict[str, Any]]) -> None:
        for dataset in datasets:
            values = _numbers(dataset.get("data") or [])
            color = _to_mpl_color(dataset.get("borderColor"))
            ax.plot(
                list(range(len(values))),
                values,
                marker="o",
                label=dataset.get("label"),
                color=color,
            )
        if labels:
            ax.set_xticks(list(range(len(labels))))
            ax.set_xticklabels(labels)
        self._legend(ax, datasets)

    @staticmethod
    def _legend(ax, datasets: List[Dict[str, Any]]) -> None:
        if any(d.get("label") for d in datasets):
            ax.legend()

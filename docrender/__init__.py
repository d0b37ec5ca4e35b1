"""DocRender: idempotent template-to-PDF rendering service."""

__version__ = "0.1.0"

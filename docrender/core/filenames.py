"""
Download filename handling.

Builds the attachment filename for rendered documents from the request's
output name (or template name), restricted to a safe character set.
"""

import re
from typing import Optional

DOCUMENT_EXTENSION = ".pdf"
DEFAULT_BASENAME = "documento"

# Anything outside this set is collapsed into a single underscore
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]+")


def build_download_name(output_name: Optional[str], template_name: Optional[str]) -> str:
    """
    Build a sanitized, lower-cased download filename.

    Args:
        output_name: Filename requested by the client, if any
        template_name: Template name used as fallback

    Returns:
        str: Filename ending in .pdf

    Example:
        >>> build_download_name("Nota Fiscal #42", "invoice")
        'nota_fiscal_42.pdf'
        >>> build_download_name(None, "invoice")
        'invoice.pdf'
        >>> build_download_name("Report.PDF", "invoice")
        'report.pdf'
    """
    base = str(output_name or template_name or DEFAULT_BASENAME)
    sanitized = _UNSAFE_CHARS.sub("_", base).lower()

    if not sanitized.strip("._"):
        sanitized = DEFAULT_BASENAME

    if sanitized.endswith(DOCUMENT_EXTENSION):
        return sanitized
    return f"{sanitized}{DOCUMENT_EXTENSION}"

"""
Snapshot CSS and print templates.

The stylesheet is injected into the rendered page before capture. It hides
page chrome (navigation, ads, sidebars, comments, footers) and applies the
reader's font and theme preferences.
"""

import html

from ..models import StylingOptions

DEFAULT_MAX_WIDTH = "800px"

THEMES = {
    "dark": ("#1a1a1a", "#e0e0e0"),
    "sepia": ("#f4ecd8", "#5c4a2f"),
}

CLUTTER_SELECTORS = [
    "nav", ".navigation", ".navbar", ".header-nav",
    "aside", ".sidebar", ".ad", ".advertisement",
    ".social-share", ".comments", "footer",
]


def build_snapshot_css(styling: StylingOptions | None = None) -> str:
    """Stylesheet for PDF and HTML captures."""
    styling = styling or StylingOptions()

    text_rules = []
    if styling.font_size:
        text_rules.append(f"font-size: {styling.font_size} !important;")
    if styling.font_family:
        text_rules.append(f"font-family: {styling.font_family} !important;")
    if styling.line_height:
        text_rules.append(f"line-height: {styling.line_height} !important;")

    body_rules = [
        f"max-width: {styling.max_width or DEFAULT_MAX_WIDTH};",
        "margin: 0 auto;",
        "padding: 2rem;",
    ]
    if styling.theme in THEMES:
        background, color = THEMES[styling.theme]
        body_rules.append(f"background: {background}; color: {color};")

    parts = []
    if text_rules:
        parts.append("* { " + " ".join(text_rules) + " }")
    parts.append("body { " + " ".join(body_rules) + " }")
    parts.append(", ".join(CLUTTER_SELECTORS) + " { display: none !important; }")
    parts.append(
        "article, .article, .content, main { "
        "max-width: 100% !important; margin: 0 !important; padding: 0 !important; }"
    )
    return "\n".join(parts)


def pdf_header_template(title: str) -> str:
    return (
        '<div style="font-size: 10px; padding: 5px; width: 100%; text-align: center;">'
        f"{html.escape(title)}"
        "</div>"
    )


def pdf_footer_template() -> str:
    return (
        '<div style="font-size: 10px; padding: 5px; width: 100%; text-align: center;">'
        '<span class="pageNumber"></span> / <span class="totalPages"></span>'
        "</div>"
    )

"""
HTML sanitizer for untrusted display strings.

Mumble text messages and welcome banners are HTML fragments. Only their
visible text is shown on the console/log; active content is dropped.
"""

from __future__ import annotations

from bs4 import BeautifulSoup


_ACTIVE_TAGS = ("script", "style", "iframe", "object", "embed", "noscript")


class HtmlSanitizer:
    """Strips markup and active content, keeping readable text."""

    def sanitize(self, text: str) -> str:
        if not text:
            return ""

        soup = BeautifulSoup(text, "html.parser")
        for tag in soup(_ACTIVE_TAGS):
            tag.decompose()

        for br in soup.find_all("br"):
            br.replace_with("\n")

        # Collapse runs of whitespace per line, drop empty lines
        lines = (" ".join(line.split()) for line in soup.get_text().splitlines())
        return "\n".join(line for line in lines if line)

"""Response-to-markup conversion strategies."""

from __future__ import annotations

import re
from collections.abc import Sequence
from urllib.parse import quote

from bs4 import BeautifulSoup, Tag

from .errors import UNSUPPORTED_URL, ContentRejected
from .models import ProviderResponse, ResponseConverter

IFRAMELY_SCRIPT = "//if-cdn.com/embed.js"
FAVICON_SERVICE = "https://www.google.com/s2/favicons?domain="
SCRIPT_SRC_RE = re.compile(r"<script[^>]*?src=\"([^\"]*)\"", re.IGNORECASE)
PROVIDER_HOST_RE = re.compile(r"//(?:www\.)?(.*?)(?:/|$)")


class OEmbedConverter:
    """Default converter for ``photo``, ``video`` and ``rich`` oEmbed responses."""

    def convert(self, url: str, response: ProviderResponse) -> str | None:
        kind = response.get("type")
        if kind == "photo":
            source = response.get("url")
            if not isinstance(source, str) or not source:
                return None
            soup = BeautifulSoup("", "html.parser")
            image = soup.new_tag(
                "img",
                attrs={
                    "src": source,
                    "alt": str(response.get("title") or ""),
                    "style": "max-width:100%;height:auto",
                },
            )
            return str(image)
        if kind in ("video", "rich"):
            html = response.get("html")
            if not isinstance(html, str):
                return None
            # Embedded frames must stay out of the host page's tab order.
            return html.replace("<iframe", '<iframe tabindex="-1"')
        return None


class CardPreviewConverter:
    """Static preview card for Iframely responses that rely on Iframely's loader script."""

    def convert(self, url: str, response: ProviderResponse) -> str | None:
        match = SCRIPT_SRC_RE.search(str(response.get("html") or ""))
        if match is None or match.group(1) != IFRAMELY_SCRIPT:
            return None

        soup = BeautifulSoup("", "html.parser")
        thumbnail_url = response.get("thumbnail_url")
        caption = self._caption(soup, response)

        if not thumbnail_url:
            if caption is None:
                return None
            caption.name = "div"
            caption["class"] = ["embedkit-container", "embedkit-caption"]
            return str(caption)

        thumbnail_class = ["embedkit-thumbnail"]
        # Iframely only sets an inline height on compact cards.
        if 'style="height' in str(response.get("html") or ""):
            thumbnail_class.append("embedkit-compact")
        figure = soup.new_tag("figure", attrs={"class": "embedkit-container"})
        figure.append(
            soup.new_tag("img", attrs={"class": " ".join(thumbnail_class), "src": str(thumbnail_url)})
        )
        if caption is not None:
            figure.append(caption)
        return str(figure)

    def _caption(self, soup: BeautifulSoup, response: ProviderResponse) -> Tag | None:
        caption = soup.new_tag("figcaption", attrs={"class": "embedkit-caption"})
        for key, css_class in (("title", "embedkit-title"), ("description", "embedkit-description")):
            value = response.get(key)
            if value:
                paragraph = soup.new_tag("p", attrs={"class": css_class})
                paragraph.string = str(value)
                caption.append(paragraph)

        provider_name = response.get("provider_name") or _provider_from_url(response.get("url"))
        if provider_name:
            paragraph = soup.new_tag("p", attrs={"class": "embedkit-provider"})
            paragraph.append(
                soup.new_tag(
                    "img",
                    attrs={
                        "class": "embedkit-favicon",
                        "src": FAVICON_SERVICE + quote(str(response.get("url") or ""), safe=""),
                        "onerror": "this.style.display='none'",
                    },
                )
            )
            paragraph.append(str(provider_name))
            caption.append(paragraph)

        return caption if caption.contents else None


def _provider_from_url(url: object) -> str | None:
    match = PROVIDER_HOST_RE.search(str(url or ""))
    if match is None:
        return None
    return match.group(1) or None


def convert_response(
    converters: Sequence[ResponseConverter], url: str, response: ProviderResponse
) -> str:
    """Run converters in order; the first markup wins.

    Raises ContentRejected when a converter rejects the response or none accepts it.
    """
    for converter in converters:
        content = converter.convert(url, response)
        if content is not None:
            return content
    raise ContentRejected(UNSUPPORTED_URL)

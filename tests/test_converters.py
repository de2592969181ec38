import pytest
from bs4 import BeautifulSoup

from embedkit.converters import CardPreviewConverter, OEmbedConverter, convert_response
from embedkit.errors import UNSUPPORTED_URL, ContentRejected


def test_photo_becomes_image_with_alt_text() -> None:
    content = OEmbedConverter().convert(
        "https://x/page", {"type": "photo", "url": "https://x/img.png", "title": "T"}
    )
    assert content is not None
    image = BeautifulSoup(content, "html.parser").find("img")
    assert image["src"] == "https://x/img.png"
    assert image["alt"] == "T"


def test_photo_attributes_are_escaped() -> None:
    title = 'Quote " and <tag>'
    content = OEmbedConverter().convert(
        "https://x/page", {"type": "photo", "url": "https://x/a.png?a=1&b=2", "title": title}
    )
    image = BeautifulSoup(content or "", "html.parser").find("img")
    assert image["alt"] == title
    assert image["src"] == "https://x/a.png?a=1&b=2"


def test_rich_iframes_lose_focusability_without_mutating_response() -> None:
    html = '<div><iframe src="https://r.example/1"></iframe></div>'
    response = {"type": "rich", "html": html}

    content = OEmbedConverter().convert("https://r.example/p", response)

    assert content is not None
    assert '<iframe tabindex="-1" src="https://r.example/1">' in content
    assert response["html"] == html


def test_other_types_are_unsupported() -> None:
    response = {"type": "link", "title": "Just a link"}
    assert OEmbedConverter().convert("https://l.example", response) is None
    with pytest.raises(ContentRejected) as info:
        convert_response([OEmbedConverter()], "https://l.example", response)
    assert info.value.kind == UNSUPPORTED_URL


def test_converter_chain_prefers_first_answer_and_honors_rejections() -> None:
    class Declines:
        def convert(self, url: str, response: dict) -> str | None:
            return None

    class Rejects:
        def convert(self, url: str, response: dict) -> str | None:
            raise ContentRejected("{url} is not allowed here.")

    video = {"type": "video", "html": "<iframe></iframe>"}
    assert convert_response([Declines(), OEmbedConverter()], "u", video) == '<iframe tabindex="-1"></iframe>'
    with pytest.raises(ContentRejected) as info:
        convert_response([Rejects(), OEmbedConverter()], "u", video)
    assert info.value.kind == "{url} is not allowed here."


def test_card_preview_for_iframely_script_embeds() -> None:
    response = {
        "type": "rich",
        "url": "https://www.news.example.com/story/1",
        "title": "Story",
        "description": "Details",
        "thumbnail_url": "https://cdn.example/thumb.jpg",
        "html": '<div class="iframely"><script async src="//if-cdn.com/embed.js"></script></div>',
    }

    content = CardPreviewConverter().convert("https://www.news.example.com/story/1", response)

    soup = BeautifulSoup(content or "", "html.parser")
    assert soup.find("figure") is not None
    assert soup.find("img", class_="embedkit-thumbnail")["src"] == "https://cdn.example/thumb.jpg"
    assert soup.find("p", class_="embedkit-title").get_text() == "Story"
    assert soup.find("p", class_="embedkit-provider").get_text() == "news.example.com"


def test_card_preview_declines_other_embeds() -> None:
    response = {"type": "rich", "html": '<script src="https://platform.example/widgets.js"></script>'}
    assert CardPreviewConverter().convert("u", response) is None

import asyncio
import logging

from fakes import jsonp_answer

from embedkit.config import EmbedConfig
from embedkit.coordinator import EmbedDefinition
from embedkit.pipeline import resolve_records, run_pipeline

VIDEO_URL = "https://vid.example/1"
VIDEO = {
    "type": "video",
    "title": "Launch",
    "provider_name": "VidSite",
    "html": '<iframe src="//vid.example/embed/1"></iframe>',
}


def test_resolve_records_keeps_input_order(make_session, loop: asyncio.AbstractEventLoop) -> None:
    session = make_session(jsonp_answer({VIDEO_URL: VIDEO}))
    definition = EmbedDefinition(session)
    urls = ["ftp://files.example/a", VIDEO_URL, "https://missing.example/"]

    rows = loop.run_until_complete(
        resolve_records(urls, definition=definition, logger=logging.getLogger("test"))
    )

    assert [row["url"] for row in rows] == urls
    assert [row["status"] for row in rows] == ["invalid", "ok", "error"]
    assert rows[0]["error"] == "The URL ftp://files.example/a is not supported by Media Embed."
    assert rows[1]["type"] == "video"
    assert rows[1]["provider_name"] == "VidSite"
    assert rows[1]["title"] == "Launch"
    assert rows[1]["content"] == '<iframe tabindex="-1" src="//vid.example/embed/1"></iframe>'
    assert rows[2]["error"] == "Failed to fetch content for https://missing.example/."
    assert session.notifier.messages == [
        ("Failed to fetch content for https://missing.example/.", "warning")
    ]


def test_run_pipeline_writes_rows(monkeypatch) -> None:
    captured: dict[str, object] = {}

    async def fake_resolve_records(urls, *, definition, logger):
        _ = (definition, logger)
        return [{"url": url, "status": "ok"} for url in urls]

    def fake_write_rows(path: str, rows: list[dict[str, str]]) -> None:
        captured["path"] = path
        captured["rows"] = rows

    monkeypatch.setattr("embedkit.pipeline.resolve_records", fake_resolve_records)
    monkeypatch.setattr("embedkit.pipeline.write_rows", fake_write_rows)

    output = run_pipeline(
        EmbedConfig(show_progress=False),
        [VIDEO_URL],
        output="out.csv",
        logger=logging.getLogger("test"),
    )
    assert output == "out.csv"
    assert captured["path"] == "out.csv"
    assert captured["rows"] == [{"url": VIDEO_URL, "status": "ok"}]

from pathlib import Path

from embedkit.io_csv import CSV_FIELDS, write_rows


def test_write_rows_creates_csv_with_schema(tmp_path: Path) -> None:
    output = tmp_path / "out.csv"
    write_rows(
        str(output),
        [
            {
                "url": "https://vid.example/1",
                "status": "ok",
                "type": "video",
                "provider_name": "VidSite",
                "title": "Launch, part 1",
                "content": '<iframe tabindex="-1" src="//vid.example/embed/1"></iframe>',
                "error": "",
            }
        ],
    )
    text = output.read_text(encoding="utf-8")
    assert text.splitlines()[0] == ",".join(CSV_FIELDS)
    assert '"Launch, part 1"' in text


def test_write_rows_fills_missing_columns_and_creates_directories(tmp_path: Path) -> None:
    output = tmp_path / "nested" / "out.csv"
    count = write_rows(str(output), [{"url": "ftp://x.example/", "status": "invalid", "extra": "x"}])

    assert count == 1
    lines = output.read_text(encoding="utf-8").splitlines()
    assert lines[1] == "ftp://x.example/,invalid,,,,,"

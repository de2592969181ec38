import asyncio

from embedkit.caches import FrameContentCache, ResponseCache
from embedkit.surface import HostDocument, Surface, capture, install_content


def _surface(host: HostDocument) -> tuple[Surface, object]:
    element = host.create_element()
    surface = host.append_surface(element).result()
    install_content(surface, "<p>rendered</p>")
    return surface, element


def test_response_cache_get_and_set() -> None:
    cache = ResponseCache()
    response = {"type": "video", "html": "<iframe></iframe>"}
    assert cache.get("https://vid.example/1") is None

    cache.set("https://vid.example/1", response)

    assert cache.get("https://vid.example/1") is response
    assert "https://vid.example/1" in cache
    assert len(cache) == 1


def test_capture_is_only_reusable_once_its_surface_is_detached(
    loop: asyncio.AbstractEventLoop,
) -> None:
    host = HostDocument(loop=loop)
    cache = FrameContentCache()
    surface, element = _surface(host)
    captured = capture(surface)
    cache.push("u", captured)

    assert cache.pop_detached("u") is None
    assert cache.count("u") == 1

    host.remove_element(element)  # type: ignore[arg-type]

    assert cache.pop_detached("u") is captured
    assert cache.count("u") == 0
    assert cache.pop_detached("u") is None


def test_pop_skips_attached_entries(loop: asyncio.AbstractEventLoop) -> None:
    host = HostDocument(loop=loop)
    cache = FrameContentCache()
    attached, _ = _surface(host)
    detached, detached_element = _surface(host)
    cache.push("u", capture(attached))
    cache.push("u", capture(detached))
    host.remove_element(detached_element)  # type: ignore[arg-type]

    restored = cache.pop_detached("u")

    assert restored is not None
    assert restored.surface_id == detached.id
    assert cache.count("u") == 1


def test_push_drops_oldest_entries_past_the_cap(loop: asyncio.AbstractEventLoop) -> None:
    host = HostDocument(loop=loop)
    cache = FrameContentCache(max_entries_per_url=2)
    surfaces = [_surface(host) for _ in range(3)]
    for surface, _ in surfaces:
        cache.push("u", capture(surface))

    assert cache.count("u") == 2
    for _, element in surfaces:
        host.remove_element(element)  # type: ignore[arg-type]

    first = cache.pop_detached("u")
    assert first is not None
    assert first.surface_id == surfaces[1][0].id
    assert len(cache) == 1

"""Isolated rendering surfaces: creation, content installation, resize, capture and restore."""

from __future__ import annotations

import asyncio
import itertools
import logging
import re
from collections.abc import Callable

from bs4 import BeautifulSoup, Tag

from .caches import CapturedSubtree
from .config import DEFAULT_FRAME_HEIGHT
from .models import HeightProbe

BLANK_DOCUMENT = "<!DOCTYPE html><html><head></head><body></body></html>"
SURFACE_ID_ATTR = "data-embedkit-surface"
RESET_STYLE_ATTR = "data-embedkit-reset"
LAYOUT_RESET_CSS = (
    "html, body {"
    "height: 100%;"
    "}"
    "body {"
    "position: relative;"
    "display: block;"
    "margin: 0;"
    "background: none transparent;"
    "overflow: hidden;"
    "}"
    "object, embed, iframe {"
    "margin: 0;"
    "padding: 0;"
    "background: white;"
    "color: white;"
    "}"
)
STYLE_HEIGHT_RE = re.compile(r"(?:^|;)\s*height\s*:\s*(\d+)(?:px)?\s*(?:;|$)", re.IGNORECASE)

LOADING = "loading"
POPULATED = "populated"
DETACHED = "detached"


class SurfaceScheduler:
    """Repeating timers owned by one surface; closing the surface discards them."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._ids = itertools.count(1)
        self._handles: dict[int, asyncio.TimerHandle] = {}
        self.closed = False

    def set_interval(self, callback: Callable[[], None], seconds: float) -> int:
        if self.closed:
            return 0
        timer_id = next(self._ids)

        def _tick() -> None:
            if timer_id not in self._handles:
                return
            callback()
            if timer_id in self._handles:
                self._handles[timer_id] = self._loop.call_later(seconds, _tick)

        self._handles[timer_id] = self._loop.call_later(seconds, _tick)
        return timer_id

    def clear_interval(self, timer_id: int) -> None:
        handle = self._handles.pop(timer_id, None)
        if handle is not None:
            handle.cancel()

    def close(self) -> None:
        self.closed = True
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

    def __len__(self) -> int:
        return len(self._handles)


class Surface:
    """One isolated sub-document hosted by a frame element of the live document."""

    def __init__(
        self,
        host: HostDocument,
        surface_id: int,
        frame_element: Tag,
        *,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self.host = host
        self.id = surface_id
        self.frame_element = frame_element
        self.document = BeautifulSoup(BLANK_DOCUMENT, "html.parser")
        self.scheduler = SurfaceScheduler(loop)
        self.ready: asyncio.Future[Surface] = loop.create_future()
        self.state = LOADING
        self.loaded_scripts: list[str] = []
        self.resize_timer: int | None = None

    @property
    def document_element(self) -> Tag:
        return self.document.find("html")

    @property
    def head(self) -> Tag | None:
        return self.document.find("head")

    @property
    def body(self) -> Tag | None:
        return self.document.find("body")

    @property
    def height(self) -> int:
        return parse_height(self.frame_element.get("height"))

    def set_height(self, value: int) -> None:
        self.frame_element["height"] = str(value)

    def has_source(self) -> bool:
        return self.frame_element.has_attr("src")

    def has_content(self) -> bool:
        body = self.body
        return body is not None and body.find(True) is not None

    def append_script(self, parent: Tag, src: str) -> Tag:
        """Insert a fresh script element; only fresh elements load their source."""
        script = self.document.new_tag("script", attrs={"src": src})
        parent.append(script)
        self.loaded_scripts.append(src)
        return script

    def mark_ready(self) -> None:
        if self.ready.done():
            return
        self.state = POPULATED
        self.ready.set_result(self)

    def teardown(self) -> None:
        self.scheduler.close()
        self.state = DETACHED
        if not self.ready.done():
            self.ready.cancel()


class HostDocument:
    """The live document that embed widgets and their surfaces are attached to."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        frame_height: int = DEFAULT_FRAME_HEIGHT,
        async_ready: bool = False,
        logger: logging.Logger | None = None,
    ) -> None:
        self.soup = BeautifulSoup(BLANK_DOCUMENT, "html.parser")
        self._loop = loop
        self._frame_height = frame_height
        self._async_ready = async_ready
        self._logger = logger or logging.getLogger("embedkit")
        self._ids = itertools.count(1)
        self._surfaces: dict[int, Surface] = {}

    @property
    def body(self) -> Tag:
        return self.soup.find("body")

    def create_element(self, name: str = "div", attrs: dict[str, str] | None = None) -> Tag:
        element = self.soup.new_tag(name, attrs=attrs or {})
        self.body.append(element)
        return element

    def contains(self, node: Tag) -> bool:
        return any(parent is self.soup for parent in node.parents)

    def surface_for(self, element: Tag) -> Surface | None:
        frame = element.find("iframe", attrs={SURFACE_ID_ATTR: True})
        if frame is None:
            return None
        return self._surfaces.get(int(frame[SURFACE_ID_ATTR]))

    def append_surface(self, element: Tag) -> asyncio.Future[Surface]:
        """Return a future for the element's surface, creating the surface on first use.

        The future may already be resolved; callers must still go through it.
        """
        surface = self.surface_for(element)
        if surface is not None:
            return surface.ready

        surface_id = next(self._ids)
        frame = self.soup.new_tag(
            "iframe",
            attrs={
                "width": "100%",
                "height": str(self._frame_height),
                "frameborder": "0",
                SURFACE_ID_ATTR: str(surface_id),
            },
        )
        element.clear()
        element.append(frame)
        surface = Surface(self, surface_id, frame, loop=self._loop)
        self._surfaces[surface_id] = surface
        self._logger.debug("Created surface %s.", surface_id)

        if self._async_ready:
            self._loop.call_soon(surface.mark_ready)
        else:
            surface.mark_ready()
        return surface.ready

    def is_attached(self, surface_id: int) -> bool:
        surface = self._surfaces.get(surface_id)
        return surface is not None and self.contains(surface.frame_element)

    def remove_element(self, element: Tag) -> None:
        element.extract()
        self.release_detached()

    def release_detached(self) -> int:
        """Tear down every registered surface whose frame left the document."""
        released = 0
        for surface_id, surface in list(self._surfaces.items()):
            if self.contains(surface.frame_element):
                continue
            surface.teardown()
            del self._surfaces[surface_id]
            released += 1
            self._logger.debug("Released detached surface %s.", surface_id)
        return released

    def __len__(self) -> int:
        return len(self._surfaces)


def parse_height(value: object) -> int:
    """Parse ``300`` or ``300px``; anything else (percentages, junk) counts as 0."""
    text = str(value or "").strip().lower()
    if text.endswith("px"):
        text = text[:-2].strip()
    return int(text) if text.isdigit() else 0


def install_content(surface: Surface, content: str) -> Tag:
    """Replace the surface content with ``content`` and return its container.

    Scripts are stripped from the markup; the first script source found is
    appended again after the container so provider widgets can render.
    """
    fragment = BeautifulSoup(content or "", "html.parser")
    first_script = fragment.find("script", src=True)
    script_src = str(first_script["src"]) if first_script is not None else None
    for script in fragment.find_all("script"):
        script.decompose()

    document = surface.document
    head = surface.head
    for old_style in head.find_all("style", attrs={RESET_STYLE_ATTR: True}):
        old_style.decompose()
    style = document.new_tag("style", attrs={RESET_STYLE_ATTR: "true"})
    style.string = LAYOUT_RESET_CSS
    head.append(style)

    body = surface.body
    body.clear()
    container = document.new_tag("div")
    for node in list(fragment.contents):
        container.append(node.extract())
    body.append(container)

    if script_src:
        surface.append_script(body, script_src)
    return container


class AttributeHeightProbe:
    """Estimates rendered heights from ``height`` attributes and inline styles."""

    def content_height(self, container: Tag) -> int:
        return max((_declared_height(node) for node in [container, *container.find_all(True)]), default=0)

    def document_height(self, surface: Surface) -> int:
        body = surface.body
        content = self.content_height(body) if body is not None else 0
        return max(surface.height, content)


def _declared_height(node: Tag) -> int:
    height = parse_height(node.get("height"))
    match = STYLE_HEIGHT_RE.search(str(node.get("style") or ""))
    if match:
        height = max(height, int(match.group(1)))
    return height


def track_height(
    surface: Surface,
    probe: HeightProbe,
    interval: float,
    on_resize: Callable[[int], None] | None = None,
) -> int | None:
    """Size the frame to its content now and keep polling while the surface lives.

    Replaces any resize polling started by an earlier install on the same surface.
    """
    if surface.resize_timer is not None:
        surface.scheduler.clear_interval(surface.resize_timer)
        surface.resize_timer = None
    body = surface.body
    container = body.find("div") if body is not None else None
    if container is None:
        return None
    last_height: int | None = None

    def resize() -> None:
        content = probe.content_height(container)
        document = probe.document_height(surface)
        height = content if 0 < content < document else document
        surface.set_height(height)
        if on_resize is not None:
            on_resize(height)

    def poll() -> None:
        nonlocal last_height
        height = probe.content_height(container)
        if height != last_height:
            last_height = height
            resize()

    resize()
    surface.resize_timer = surface.scheduler.set_interval(poll, interval)
    return surface.resize_timer


def capture(surface: Surface) -> CapturedSubtree:
    """Keep the live subtree of ``surface`` by reference for a later restore."""
    return CapturedSubtree(surface_id=surface.id, root=surface.document_element, host=surface.host)


def restore(surface: Surface, captured: CapturedSubtree) -> None:
    """Move a captured subtree into ``surface`` and re-create its scripts."""
    root = surface.document_element
    root.clear()
    for child in list(captured.root.contents):
        root.append(child.extract())

    # Moved script elements never run again; replace them with fresh ones.
    for script in root.find_all("script"):
        parent = script.parent
        src = script.get("src")
        script.decompose()
        if src:
            surface.append_script(parent, str(src))

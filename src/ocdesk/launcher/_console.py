"""Console-backed view and browser-backed host.

These are the host shell and UI used when the launcher runs from the
terminal: progress and errors are printed with rich, and the backend UI is
opened in the default web browser.
"""

import webbrowser
from typing import TYPE_CHECKING, final

import anyio.to_thread
from rich.console import Console
from rich.panel import Panel
from rich.style import Style
from rich.text import Text

from ocdesk.config import DEFAULT_ZOOM_LEVEL

if TYPE_CHECKING:
    from ocdesk.supervisor import StartupFailure

TOTAL_STEPS = 4


@final
class ConsoleView:
    """Prints loading steps, overlays, and the error screen to a console.

    The last state shown is kept on the instance so callers can inspect it.
    """

    __slots__ = ("_console", "advisories", "error", "overlay", "step", "zoom")

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(stderr=True)
        self.step: int = 0
        self.overlay: str | None = None
        self.error: "StartupFailure | None" = None
        self.advisories: list[str] = []
        self.zoom: float = DEFAULT_ZOOM_LEVEL

    async def show_step(self, step: int, message: str) -> None:
        self.step = step
        text = Text()
        _ = text.append(f"[{step}/{TOTAL_STEPS}]", style=Style(color="cyan", bold=True))
        _ = text.append(f" {message}")
        self._console.print(text)

    async def show_overlay(self, message: str) -> None:
        self.overlay = message
        self._console.print(Text(message, style=Style(color="yellow", bold=True)))

    async def hide_overlay(self) -> None:
        self.overlay = None

    async def show_error(self, failure: "StartupFailure") -> None:
        self.error = failure
        body = Text(failure.message)
        if failure.log:
            _ = body.append("\n\n")
            _ = body.append(failure.details, style=Style(dim=True))
        self._console.print(
            Panel(
                body,
                title=failure.title,
                border_style="red",
                subtitle="retry or quit",
            )
        )

    async def show_advisory(self, message: str) -> None:
        self.advisories.append(message)
        self._console.print(Panel(message, title="Warning", border_style="yellow"))

    async def apply_zoom(self, level: float) -> None:
        self.zoom = level
        self._console.print(Text(f"Zoom {level:.0%}", style=Style(dim=True)))


@final
class BrowserHost:
    """Host shell that opens the backend UI in the default browser.

    There is no real window: sizes and fullscreen are tracked in memory,
    and exiting only records that the application should stop.
    """

    __slots__ = (
        "_console",
        "_open_browser",
        "closed",
        "exited",
        "fullscreen",
        "size",
        "url",
    )

    def __init__(
        self,
        *,
        open_browser: bool = True,
        console: Console | None = None,
        size: tuple[int, int] | None = None,
    ) -> None:
        self._open_browser = open_browser
        self._console = console or Console(stderr=True)
        self.size = size
        self.url: str | None = None
        self.fullscreen = False
        self.exited = False
        self.closed = False

    async def show(self) -> None:
        pass

    async def focus(self) -> None:
        if self.url is not None and self._open_browser:
            _ = await anyio.to_thread.run_sync(webbrowser.open, self.url)

    async def get_size(self) -> tuple[int, int] | None:
        return self.size

    async def set_size(self, width: int, height: int) -> None:
        self.size = (width, height)

    async def toggle_fullscreen(self) -> None:
        self.fullscreen = not self.fullscreen

    async def load_url(self, url: str) -> None:
        self.url = url
        self._console.print(Text(f"Backend available at {url}", style="green"))
        if self._open_browser:
            _ = await anyio.to_thread.run_sync(webbrowser.open, url)

    async def exit_app(self) -> None:
        self.exited = True

    async def close_window(self) -> None:
        self.closed = True

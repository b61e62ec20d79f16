"""Console output sink for backend output."""

from typing import Literal, final

from rich.console import Console
from rich.style import Style
from rich.text import Text


@final
class ConsoleOutputSink:
    """Output sink that prints backend lines as `[name:pid] line`.

    stderr lines are dimmed red; stdout lines keep the default style.
    """

    __slots__ = ("_console", "_prefix_style", "_stderr_style", "_stdout_style")

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(stderr=True)
        self._prefix_style = Style(color="blue", bold=True)
        self._stdout_style = Style()
        self._stderr_style = Style(color="red", dim=True)

    async def write_line(
        self,
        source: str,
        pid: int | None,
        stream: Literal["stdout", "stderr"],
        line: str,
    ) -> None:
        prefix = f"[{source}:{pid}]" if pid is not None else f"[{source}]"
        style = self._stderr_style if stream == "stderr" else self._stdout_style

        text = Text()
        _ = text.append(prefix, style=self._prefix_style)
        _ = text.append(" ")
        _ = text.append(line, style=style)
        self._console.print(text)

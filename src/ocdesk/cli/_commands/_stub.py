# pyright: reportUnusedCallResult=false
"""Stub backend command for local development."""

import os
from typing import Annotated

from cyclopts import Parameter


def stub(
    *,
    host: Annotated[str, Parameter(help="Bind socket to this host.")] = "127.0.0.1",
    port: Annotated[
        int | None,
        Parameter(help="Bind socket to this port. Defaults to $PORT, then 1504."),
    ] = None,
    log_level: Annotated[str, Parameter(help="Uvicorn log level.")] = "warning",
) -> None:
    """Serve the stub backend with uvicorn.

    The stub speaks the backend contract (identity header, version and
    health endpoints), so `ocdesk launch --command "ocdesk stub"` works
    without the real backend installed.
    """
    import uvicorn

    from ocdesk.config import DEFAULT_PREFERRED_PORT

    if port is None:
        port = int(os.environ.get("PORT", DEFAULT_PREFERRED_PORT))

    print(f"Serving stub backend on {host}:{port}")
    uvicorn.run("ocdesk.stub:app", host=host, port=port, log_level=log_level)

"""Stub OpenChamber backend for development and tests."""

from ._app import IDENTITY_HEADER, STUB_VERSION, app, create_app

__all__ = ["IDENTITY_HEADER", "STUB_VERSION", "app", "create_app"]

import pytest

from ocdesk.launcher import KeyAction, resolve_key


class TestResolveKey:
    @pytest.mark.parametrize("platform", ["linux", "darwin", "win32"])
    def test_f11_needs_no_modifier(self, platform: str) -> None:
        assert resolve_key("F11", platform=platform) is KeyAction.TOGGLE_FULLSCREEN

    @pytest.mark.parametrize(
        ("key", "action"),
        [
            ("+", KeyAction.ZOOM_IN),
            ("=", KeyAction.ZOOM_IN),
            ("-", KeyAction.ZOOM_OUT),
            ("_", KeyAction.ZOOM_OUT),
            ("0", KeyAction.ZOOM_RESET),
        ],
    )
    def test_ctrl_zoom_keys(self, key: str, action: KeyAction) -> None:
        assert resolve_key(key, ctrl=True, platform="linux") is action
        assert resolve_key(key, ctrl=True, platform="win32") is action

    def test_cmd_on_macos(self) -> None:
        assert resolve_key("+", meta=True, platform="darwin") is KeyAction.ZOOM_IN
        assert resolve_key("+", ctrl=True, platform="darwin") is None

    def test_meta_ignored_elsewhere(self) -> None:
        assert resolve_key("+", meta=True, platform="linux") is None

    def test_without_modifier(self) -> None:
        assert resolve_key("+", platform="linux") is None

    def test_unbound_key(self) -> None:
        assert resolve_key("a", ctrl=True, platform="linux") is None

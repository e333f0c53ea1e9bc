"""Unit tests for auth/tokens.py — TokenPair parsing and TokenStore refresh."""

import threading
from unittest.mock import MagicMock

import pytest

from friendly_uploader.auth.tokens import TokenPair, TokenStore
from friendly_uploader.errors import MalformedResponseError


class TestTokenPair:
    def test_from_token_response_reads_all_fields(self) -> None:
        pair = TokenPair.from_token_response(
            {
                "token_type": "bearer",
                "expires_in": "3600",
                "scope": "onedrive.readwrite",
                "access_token": "a",
                "refresh_token": "r",
                "user_id": "u",
            }
        )
        assert pair.access_token == "a"
        assert pair.refresh_token == "r"
        assert pair.expires_in == 3600
        assert pair.user_id == "u"

    def test_optional_fields_default_to_none(self) -> None:
        pair = TokenPair.from_token_response({"access_token": "a", "refresh_token": "r"})
        assert pair.expires_in is None
        assert pair.token_type is None

    @pytest.mark.parametrize("missing", ["access_token", "refresh_token"])
    def test_raises_when_a_token_is_missing(self, missing: str) -> None:
        body = {"access_token": "a", "refresh_token": "r"}
        del body[missing]
        with pytest.raises(MalformedResponseError, match=missing):
            TokenPair.from_token_response(body)

    def test_repr_hides_tokens(self) -> None:
        pair = TokenPair("secret-access", "secret-refresh")
        assert "secret" not in repr(pair)

    def test_is_immutable(self) -> None:
        pair = TokenPair("a", "r")
        with pytest.raises(AttributeError):
            pair.access_token = "b"  # type: ignore[misc]


class TestTokenStore:
    def test_exposes_current_pair(self) -> None:
        store = TokenStore(TokenPair("a", "r"))
        assert store.access_token == "a"
        assert store.refresh_token == "r"

    def test_replace_swaps_whole_pair_and_notifies(self) -> None:
        store = TokenStore(TokenPair("a", "r"))
        listener = MagicMock()
        store.subscribe(listener)

        store.replace(TokenPair("a2", "r2"))

        assert store.pair == TokenPair("a2", "r2")
        listener.assert_called_once_with(TokenPair("a2", "r2"))

    def test_refresh_uses_stored_refresh_token(self) -> None:
        store = TokenStore(TokenPair("a", "r"))
        refresher = MagicMock(return_value=TokenPair("a2", "r2"))

        result = store.refresh(refresher, stale_access_token="a")

        refresher.assert_called_once_with("r")
        assert result == TokenPair("a2", "r2")
        assert store.pair == result

    def test_refresh_is_skipped_when_pair_already_rotated(self) -> None:
        store = TokenStore(TokenPair("a2", "r2"))
        refresher = MagicMock()

        result = store.refresh(refresher, stale_access_token="a1")

        refresher.assert_not_called()
        assert result == TokenPair("a2", "r2")

    def test_refresh_failure_leaves_pair_untouched(self) -> None:
        store = TokenStore(TokenPair("a", "r"))
        refresher = MagicMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            store.refresh(refresher, stale_access_token="a")

        assert store.pair == TokenPair("a", "r")

    def test_failing_listener_does_not_undo_replace(self) -> None:
        store = TokenStore(TokenPair("a", "r"))
        later = MagicMock()
        store.subscribe(MagicMock(side_effect=PermissionError("read-only")))
        store.subscribe(later)

        store.replace(TokenPair("a2", "r2"))

        assert store.pair == TokenPair("a2", "r2")
        later.assert_called_once_with(TokenPair("a2", "r2"))

    def test_concurrent_callers_share_one_refresh(self) -> None:
        store = TokenStore(TokenPair("a", "r"))
        started = threading.Event()
        release = threading.Event()
        calls: list[str] = []

        def slow_refresher(refresh_token: str) -> TokenPair:
            calls.append(refresh_token)
            started.set()
            release.wait(timeout=5)
            return TokenPair("a2", "r2")

        results: list[TokenPair] = []
        first = threading.Thread(
            target=lambda: results.append(store.refresh(slow_refresher, "a"))
        )
        second = threading.Thread(
            target=lambda: results.append(store.refresh(slow_refresher, "a"))
        )
        first.start()
        started.wait(timeout=5)
        second.start()
        release.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert calls == ["r"]
        assert results == [TokenPair("a2", "r2"), TokenPair("a2", "r2")]

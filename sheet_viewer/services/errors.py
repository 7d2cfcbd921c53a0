from __future__ import annotations

"""Error taxonomy for the viewer core.

- ValidationError: ローカル入力エラー。操作をブロックし状態は変えない
- ConfigurationError: 必須列 (role) がヘッダに存在しない。操作全体を中止
- RemoteError: gateway 失敗 / success=false。送信前状態へ戻して通知
- StaleResponseError: 古いリクエストの応答。通知せず破棄
"""

__all__ = [
    "ViewerError",
    "ValidationError",
    "ConfigurationError",
    "RemoteError",
    "StaleResponseError",
]


class ViewerError(Exception):
    """Base exception for viewer errors."""
    pass


class ValidationError(ViewerError):
    pass


class ConfigurationError(ViewerError):
    pass


class RemoteError(ViewerError):
    pass


class StaleResponseError(ViewerError):
    """Raised when a response token is not the latest issued one."""

    def __init__(self, token: int, latest: int) -> None:
        super().__init__(f"stale response token={token} latest={latest}")
        self.token = token
        self.latest = latest

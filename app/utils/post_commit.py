"""Ordered side effects run after the authoritative write committed"""
import logging
from typing import Any, Awaitable, Callable, List, Tuple

logger = logging.getLogger(__name__)


class PostCommitHooks:
    """
    Collects side effects (audit, notifications, file cleanup, event publishing)
    and runs them in order once the transaction has committed.

    Every hook is isolated: an exception is logged and the next hook still runs.
    Nothing here can turn a committed operation into a failed one.
    """

    def __init__(self):
        self._hooks: List[Tuple[str, Callable[..., Awaitable[Any]], tuple, dict]] = []

    def add(self, name: str, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> "PostCommitHooks":
        self._hooks.append((name, func, args, kwargs))
        return self

    def __len__(self) -> int:
        return len(self._hooks)

    @property
    def names(self) -> List[str]:
        return [name for name, _, _, _ in self._hooks]

    async def run(self) -> List[str]:
        """Run all hooks, returning the names of those that failed"""
        failed = []
        for name, func, args, kwargs in self._hooks:
            try:
                await func(*args, **kwargs)
            except Exception:
                logger.exception(f"Post-commit hook '{name}' failed")
                failed.append(name)
        self._hooks.clear()
        return failed

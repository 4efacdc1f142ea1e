from __future__ import annotations

import logging
from typing import Any, Callable, List, Literal, Optional

logger = logging.getLogger("proxyconf.hooks")
logger.addHandler(logging.NullHandler())

# called as hook(new_config, previous_config); previous is None on first load
ReloadHook = Callable[[Any, Optional[Any]], None]
FailureMode = Literal["ignore", "log", "raise"]


class HookBus:
    """Ordered reload hooks sharing one failure policy."""

    def __init__(self, failure_mode: FailureMode = "log") -> None:
        if failure_mode not in ("ignore", "log", "raise"):
            raise ValueError("failure_mode must be one of 'ignore', 'log', 'raise'")
        self._failure_mode = failure_mode
        self._hooks: List[ReloadHook] = []

    @property
    def failure_mode(self) -> FailureMode:
        return self._failure_mode

    def register(self, func: ReloadHook) -> None:
        if not callable(func):
            raise TypeError("Reload hook must be callable")
        if func in self._hooks:
            raise ValueError(f"Reload hook {func!r} is already registered")
        self._hooks.append(func)

    def unregister(self, func: ReloadHook) -> bool:
        """Remove ``func``; returns False when it was not registered."""
        try:
            self._hooks.remove(func)
        except ValueError:
            return False
        return True

    def run(self, config: Any, previous: Optional[Any] = None) -> int:
        """
        Call every hook in registration order and return how many failed.

        With failure mode ``raise`` the first failure propagates and later
        hooks are not called.
        """
        failed = 0
        for hook in list(self._hooks):
            try:
                hook(config, previous)
            except Exception as exc:
                if self._failure_mode == "raise":
                    raise
                failed += 1
                if self._failure_mode == "log":
                    logger.error("Reload hook %r failed: %s", hook, exc)
                else:
                    logger.debug("Reload hook %r failed but ignored: %s", hook, exc)
        return failed

    def clear(self) -> None:
        self._hooks.clear()

    def __len__(self) -> int:
        return len(self._hooks)

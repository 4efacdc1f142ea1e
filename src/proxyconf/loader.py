"""
Top-level entry points: convert a document with a builder, load a proxy
configuration file, and keep a reloadable snapshot of one.
"""

from __future__ import annotations

import datetime
import logging
import threading
from pathlib import Path
from typing import Any, Generic, Optional, TypeVar, Union

from proxyconf.builders.root import ProxyConfig, build_proxy_config
from proxyconf.capabilities import CapabilityRegistry
from proxyconf.context import ConversionContext
from proxyconf.exceptions import ConfigError, ConversionError
from proxyconf.hooks import FailureMode, HookBus, ReloadHook
from proxyconf.node import DocNode, load_document
from proxyconf.utils import _checksum_of_source
from proxyconf.value.protocol import ConverterProtocol

logger = logging.getLogger("proxyconf.loader")
logger.addHandler(logging.NullHandler())

T = TypeVar("T")

__all__ = ["convert", "load_proxy_config", "ConfigLoader"]


def convert(
    node: DocNode,
    builder: ConverterProtocol,
    *,
    capabilities: Optional[CapabilityRegistry] = None,
    lookup_dir: Optional[Union[str, Path]] = None,
) -> Any:
    """
    Run ``builder`` over ``node`` in a fresh conversion context.

    Returns the built object or raises the first ConversionError, whose
    ``path`` is the key path of the failing node (empty for the root).
    """
    ctx = ConversionContext(capabilities, lookup_dir)
    logger.debug("Converting %s with %r", node.location, ctx.capabilities)
    try:
        result = builder(node, ctx)
    except ConversionError as exc:
        exc.attach_path(())
        logger.debug("Conversion failed: %s", exc)
        raise
    logger.debug("Conversion of %s finished", node.location)
    return result


def _read(path: Path) -> str:
    with path.open("r", encoding="utf-8") as f:
        return f.read()


def load_proxy_config(
    path: Union[str, Path], *, capabilities: Optional[CapabilityRegistry] = None
) -> ProxyConfig:
    """Parse and convert one proxy configuration file; relative paths resolve from its directory."""
    p = Path(path)
    node = load_document(_read(p), source=str(p))
    return convert(node, build_proxy_config, capabilities=capabilities, lookup_dir=p.parent)


class ConfigLoader(Generic[T]):
    """
    Holds the current configuration built from one file and swaps it on reload.

    A reload builds an entirely new tree; the previous one is replaced only
    when the new one converted without error, so a broken edit on disk
    never takes down a running configuration.
    """

    def __init__(
        self,
        path: Union[str, Path],
        capabilities: Optional[CapabilityRegistry] = None,
        *,
        builder: ConverterProtocol = build_proxy_config,
        hook_failure_mode: FailureMode = "log",
    ) -> None:
        self.__lock = threading.RLock()
        self._path = Path(path)
        self._capabilities = capabilities
        self._builder = builder
        self._hooks = HookBus(hook_failure_mode)
        self._current: Optional[T] = None
        self._fingerprint: Optional[str] = None
        self._loaded_at: Optional[datetime.datetime] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def current(self) -> T:
        with self.__lock:
            if self._current is None:
                raise ConfigError(f"Configuration {self._path} has not been loaded")
            return self._current

    @property
    def fingerprint(self) -> Optional[str]:
        """sha256 of the source text the current configuration was built from."""
        with self.__lock:
            return self._fingerprint

    @property
    def loaded_at(self) -> Optional[datetime.datetime]:
        with self.__lock:
            return self._loaded_at

    def register_reload_hook(self, func: ReloadHook) -> None:
        """Register ``func(new, previous)``, called after each configuration is installed."""
        with self.__lock:
            self._hooks.register(func)

    def _build(self, text: str) -> T:
        node = load_document(text, source=str(self._path))
        return convert(
            node,
            self._builder,
            capabilities=self._capabilities,
            lookup_dir=self._path.parent,
        )

    def _install(self, config: T, fingerprint: str) -> None:
        previous = self._current
        self._current = config
        self._fingerprint = fingerprint
        self._loaded_at = datetime.datetime.now(tz=datetime.timezone.utc)
        failed = self._hooks.run(config, previous)
        if failed:
            logger.warning("%d reload hook(s) failed for %s", failed, self._path)

    def load(self) -> T:
        with self.__lock:
            text = _read(self._path)
            config = self._build(text)
            self._install(config, _checksum_of_source(text))
            logger.info("Configuration loaded from %s fingerprint=%s", self._path, self._fingerprint)
            return config

    def reload(self, force: bool = False) -> T:
        """
        Rebuild from disk. Unchanged source text is not rebuilt unless ``force``.

        On failure the error is logged and re-raised and the previous
        configuration stays current.
        """
        with self.__lock:
            try:
                text = _read(self._path)
                fingerprint = _checksum_of_source(text)
                if not force and self._current is not None and fingerprint == self._fingerprint:
                    logger.debug("Configuration %s unchanged, reload skipped", self._path)
                    return self._current
                config = self._build(text)
            except (ConfigError, OSError) as exc:
                logger.error("Reload of %s failed, keeping previous configuration: %s", self._path, exc)
                raise
            self._install(config, fingerprint)
            logger.info("Configuration reloaded from %s fingerprint=%s", self._path, fingerprint)
            return config

    def __repr__(self) -> str:
        with self.__lock:
            return f"<ConfigLoader path={self._path} fingerprint={self._fingerprint}>"

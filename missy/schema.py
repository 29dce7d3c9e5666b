"""
Missy Schema — registry of models and types bound to one storage driver.

The schema owns the driver connection: it connects and disconnects it,
reconnects it after an unexpected disconnect, and makes model verbs either
fail or wait while it is down (see SchemaSettings).

Usage:
    schema = Schema("memory", {"query_when_connected": True})
    User = schema.define("User", {"id": int, "login": str}, {"pk": "id"})

    await schema.connect()
    ...
    await schema.disconnect()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from .config import SchemaSettings
from .drivers import Driver, create_driver
from .faults import ConfigurationFault, DriverContractFault, DriverFault, TypeHandlerFault
from .models.base import Model
from .types import HANDLER_METHODS, STD_TYPES, TypeHandler

logger = logging.getLogger("missy.schema")

__all__ = ["Schema"]


class Schema:
    """
    Models, types and the driver.

    Args:
        driver: A Driver instance, or a registered driver spec: a name
            ("memory", "memory://test") or a list of a name followed by
            the driver arguments
        settings: SchemaSettings, a dict of them, or None

    Attributes:
        driver: The bound driver
        settings: SchemaSettings
        types: Type handlers by type name
        models: Models by name
    """

    def __init__(self, driver: Any, settings: Any = None):
        if isinstance(driver, (str, list, tuple)):
            driver = create_driver(driver)
        if not isinstance(driver, Driver):
            raise DriverContractFault(driver, "drivers must subclass missy.drivers.Driver")
        for attr in ("client", "connected"):
            if not hasattr(driver, attr):
                raise DriverContractFault(driver, f"missing attribute '{attr}'")

        self.driver: Driver = driver
        self.settings = SchemaSettings.prepare(settings)
        self.types: Dict[str, TypeHandler] = {}
        self.models: Dict[str, Model] = {}

        self._disconnecting = False
        self._reconnect_task: Optional[asyncio.Task] = None

        for name, handler_cls in STD_TYPES.items():
            self.register_type(name, handler_cls)

        self.driver.on("disconnect", self._on_disconnect)
        self.driver.bind_schema(self)

    def __repr__(self) -> str:
        return f"<Schema driver={self.driver} models={list(self.models)}>"

    # ── Types ────────────────────────────────────────────────────────

    def register_type(self, name: str, factory: Callable[..., Any]) -> Schema:
        """
        Register a type handler under a name.

        The factory is called as ``factory(schema, name)`` right away; the
        product must provide callable ``norm``, ``load`` and ``save``.

        Raises:
            TypeHandlerFault: the factory is not callable, fails, or
                produces an incomplete handler
        """
        if not callable(factory):
            raise TypeHandlerFault(name, "is not callable")

        try:
            handler = factory(self, name)
        except Exception as exc:
            raise TypeHandlerFault(name, f"failed: {exc}") from exc

        missing = [m for m in HANDLER_METHODS if not callable(getattr(handler, m, None))]
        if missing:
            raise TypeHandlerFault(
                name,
                f"lacks methods: {', '.join(missing)}",
                metadata={"missing": missing},
            )

        self.types[name] = handler
        logger.debug(f"Registered type '{name}': {handler!r}")
        return self

    # ── Models ───────────────────────────────────────────────────────

    def define(self, name: str, fields: Optional[Dict[str, Any]] = None, options: Any = None) -> Model:
        """Define a model and register it."""
        model = Model(self, name, fields, options)
        self.register_model(model)
        return model

    def register_model(self, model: Model) -> Model:
        if not isinstance(model, Model):
            raise ConfigurationFault(f"Not a model: {model!r}")
        existing = self.models.get(model.name)
        if existing is not None and existing is not model:
            raise ConfigurationFault(
                f"Model already defined: {model.name}",
                metadata={"model": model.name},
            )
        self.models[model.name] = model
        logger.debug(f"Registered model '{model.name}' ({len(model.fields)} fields)")
        return model

    def get_model(self, name: str) -> Optional[Model]:
        return self.models.get(name)

    # ── Connection ───────────────────────────────────────────────────

    async def connect(self) -> Any:
        """Connect the driver; returns its client."""
        self._disconnecting = False
        return await self.driver.connect()

    async def disconnect(self) -> None:
        """Disconnect the driver and stop reconnecting."""
        self._disconnecting = True
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self.driver.connected:
            await self.driver.disconnect()

    def get_client(self) -> Any:
        """The driver client handle."""
        if not self.driver.connected:
            raise DriverFault(self.driver, "Not connected")
        return self.driver.client

    async def ensure_connected(self) -> None:
        """
        Called before every driver call.

        Raises:
            DriverFault: not connected and ``query_when_connected`` is off
        """
        if self.driver.connected:
            return
        if not self.settings.query_when_connected:
            raise DriverFault(self.driver, "Not connected")
        logger.debug("Waiting for the driver to connect")
        await self.driver.wait_for("connect")

    # ── Reconnection ─────────────────────────────────────────────────

    def _on_disconnect(self, *args: Any) -> None:
        self.driver.connected = False
        if self._disconnecting or not self.settings.reconnect:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return

        logger.warning(f"Driver '{self.driver}' disconnected, reconnecting")
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect())

    async def _reconnect(self) -> None:
        step = self.settings.reconnect_step
        delay = 0.0
        attempt = 0
        while not self._disconnecting:
            attempt += 1
            try:
                await self.driver.connect()
            except Exception as exc:
                delay = min(delay + step, self.settings.reconnect_max_delay)
                logger.warning(
                    f"Reconnect attempt {attempt} failed: {exc}; retrying in {delay:.2f}s"
                )
                await asyncio.sleep(delay)
                continue
            logger.info(f"Driver '{self.driver}' reconnected after {attempt} attempt(s)")
            return

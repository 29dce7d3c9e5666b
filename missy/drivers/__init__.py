"""
Missy drivers — storage backends and the driver registry.

Drivers registered here can be instantiated by name:

    Schema("memory")
    Schema(["memory://test", {"option": 1}])
"""

import logging
import re
from typing import Any, Dict, Type

from ..faults import DriverContractFault, DriverNotRegisteredFault
from .base import Driver
from .memory import MemoryDriver

logger = logging.getLogger("missy.drivers")

# name -> Driver subclass
DRIVERS: Dict[str, Type[Driver]] = {}

_DRIVER_NAME = re.compile(r"^[^:]+")


def register_driver(name: str, driver_cls: Type[Driver]) -> Type[Driver]:
    """Register a driver class under a name."""
    if not (isinstance(driver_cls, type) and issubclass(driver_cls, Driver)):
        raise DriverContractFault(driver_cls, "drivers must subclass missy.drivers.Driver")
    DRIVERS[name] = driver_cls
    logger.debug(f"Registered driver '{name}': {driver_cls.__name__}")
    return driver_cls


def create_driver(spec: Any) -> Driver:
    """
    Instantiate a registered driver.

    Args:
        spec: A string whose scheme prefix names the driver ("memory",
            "memory://x"), or a list: that string followed by positional
            arguments; a trailing dict is passed as keyword arguments
    """
    args = list(spec) if isinstance(spec, (list, tuple)) else [spec]
    if not args or not isinstance(args[0], str):
        raise DriverNotRegisteredFault(repr(spec))

    match = _DRIVER_NAME.match(args[0])
    name = match.group(0) if match else args[0]
    driver_cls = DRIVERS.get(name)
    if driver_cls is None:
        raise DriverNotRegisteredFault(name)

    kwargs = args.pop() if len(args) > 1 and isinstance(args[-1], dict) else {}
    return driver_cls(*args, **kwargs)


register_driver("memory", MemoryDriver)

__all__ = [
    "Driver",
    "MemoryDriver",
    "DRIVERS",
    "register_driver",
    "create_driver",
]

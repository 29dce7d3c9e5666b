"""
Missy Faults - Core types.

Defines:
- Fault base class (structured fault objects)
- FaultDomain (explicit fault domains)
- Severity levels
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


# ============================================================================
# Severity & Domain
# ============================================================================

class Severity(str, Enum):
    """
    Fault severity levels.

    FATAL faults are configuration problems: the application has to be
    fixed and restarted. Everything else surfaces to the verb's caller.
    """
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class FaultDomain:
    """
    Fault domains (taxonomy).

    One domain per error kind the mapping layer can produce.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.value = name
        self.description = description

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain(name='{self.name}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(self.name)


FaultDomain.CONFIG = FaultDomain("config", "Schema, model, type or driver configuration")
FaultDomain.MODEL = FaultDomain("model", "Invalid verb arguments and relation consistency")
FaultDomain.CONVERSION = FaultDomain("conversion", "Type handler coercion failures")
FaultDomain.ENTITY = FaultDomain("entity", "Entity existence conditions")
FaultDomain.DRIVER = FaultDomain("driver", "Storage backend failures")


DOMAIN_DEFAULTS = {
    FaultDomain.CONFIG: {"severity": Severity.FATAL, "retryable": False},
    FaultDomain.MODEL: {"severity": Severity.ERROR, "retryable": False},
    FaultDomain.CONVERSION: {"severity": Severity.ERROR, "retryable": False},
    FaultDomain.ENTITY: {"severity": Severity.WARN, "retryable": False},
    FaultDomain.DRIVER: {"severity": Severity.ERROR, "retryable": False},
}


# ============================================================================
# Fault - Base Class
# ============================================================================

class Fault(Exception):
    """
    Base fault class - structured, typed fault object.

    Attributes:
        code: Stable machine-readable identifier (e.g., "ENTITY_EXISTS")
        message: Human-readable summary
        severity: Fault severity
        domain: Fault domain
        retryable: Whether the caller may retry the operation
        metadata: Structured context (model, field, operator, entity, ...)

    Example:
        ```python
        raise Fault(
            code="ENTITY_NOT_FOUND",
            message="User: entity not found",
            domain=FaultDomain.ENTITY,
            metadata={"model": "User", "entity": {"id": 1}},
        )
        ```
    """

    def __init__(
        self,
        code: str | None = None,
        message: str | None = None,
        *,
        domain: FaultDomain | None = None,
        severity: Optional[Severity] = None,
        retryable: Optional[bool] = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        self.code = code if code is not None else getattr(self, "code", None)
        self.message = message if message is not None else getattr(self, "message", None)
        self.domain = domain if domain is not None else getattr(self, "domain", None)

        if self.code is None or self.message is None or self.domain is None:
            raise TypeError(f"{self.__class__.__name__} missing required code, message, or domain")

        super().__init__(self.message)

        defaults = DOMAIN_DEFAULTS.get(self.domain, {"severity": Severity.ERROR, "retryable": False})
        self.severity = severity or defaults["severity"]
        self.retryable = retryable if retryable is not None else defaults["retryable"]
        self.metadata = metadata or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(code={self.code!r}, domain={self.domain.value}, "
            f"severity={self.severity.value})"
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize fault to dictionary.

        Returns:
            Dictionary representation suitable for logging/serialization
        """
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "metadata": self.metadata,
        }

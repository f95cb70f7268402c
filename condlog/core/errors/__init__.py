"""
Error code system for conditional request logging.

CondlogError is the base exception for all structured errors raised by the
buffering service. Every code lives in registry.yaml; the status channel uses
the same codes for non-fatal diagnostics.

Usage:
    from condlog.core.errors import ConfigurationError
    raise ConfigurationError("CLB-CFG-001", detail="no sink configured")
"""

from __future__ import annotations

import re

CODE_PATTERN = re.compile(r"^CLB-[A-Z]{2,6}-\d{3}$")


class CondlogError(Exception):
    """Structured error tied to the error registry.

    Args:
        code: Registry error code, e.g. "CLB-CFG-001".
        detail: Human-readable detail for diagnostics.
        context: Arbitrary key-value context for structured logging.
    """

    def __init__(
        self,
        code: str,
        detail: str | None = None,
        context: dict | None = None,
    ) -> None:
        if not CODE_PATTERN.match(code):
            raise ValueError(f"Invalid error code format: {code!r}")
        self.code = code
        self.detail = detail
        self.context = context or {}
        super().__init__(f"{code}: {detail}" if detail else code)


class ConfigurationError(CondlogError):
    """Raised when the buffering service cannot be activated."""

"""Litestar-Inertia exception classes."""

__all__ = [
    "LitestarInertiaError",
    "PropConfigurationError",
]


class LitestarInertiaError(Exception):
    """Base exception for Litestar-Inertia related errors."""


class PropConfigurationError(LitestarInertiaError, ValueError):
    """Raised when a prop is built with an invalid or unsupported configuration."""

    def __init__(self, message: str, *, kind: "str | None" = None) -> None:
        """Initialize the exception.

        Args:
            message: Description of the problem.
            kind: The kind of prop that rejected the configuration, if known.
        """
        super().__init__(f"{message} (prop kind: {kind})" if kind is not None else message)
        self.kind = kind

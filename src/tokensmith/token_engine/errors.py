"""Exceptions raised by the token engine.

Resolution failures and compliance outcomes are reported as values (see
``schema.ResolutionError`` and ``schema.ComplianceResult``); the exceptions
below are raised for rejected edits, before any mutation happens.
"""


class TokenEngineError(Exception):
    """Base exception for token engine operations."""
    pass


class InvalidTokenPath(TokenEngineError, ValueError):
    """A token path is empty or malformed."""
    pass


class InvalidColorFormat(TokenEngineError, ValueError):
    """An edit value is not a valid hex color."""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid hex color: {value!r}")


class InvalidStep(TokenEngineError, ValueError):
    """A cascade target is not one of the 12 canonical scale steps."""

    def __init__(self, step):
        self.step = step
        super().__init__(f"Invalid scale step: {step!r}")


class UnknownScaleFamily(TokenEngineError, KeyError):
    """No color scale is registered under the given alias or key."""

    def __init__(self, family):
        self.family = family
        super().__init__(f"Unknown color scale: {family!r}")

    def __str__(self) -> str:
        return self.args[0]


class DocumentError(TokenEngineError, ValueError):
    """A token document could not be imported."""
    pass

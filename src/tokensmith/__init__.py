"""tokensmith - design tokens with reference resolution, color cascades and contrast compliance."""

__version__ = "0.1.0"

from .token_engine import (
    TokenEngine,
    TokenStore,
    NamingScheme,
    ComplianceStatus,
)

__all__ = ["TokenEngine", "TokenStore", "NamingScheme", "ComplianceStatus", "__version__"]

"""tokensmith token engine package.

This package provides the design-token engine: a token store with reference
resolution and an override layer, variable name mapping for color scales,
the color cascade engine, and the contrast compliance watcher.
"""

from .engine import TokenEngine
from .store import TokenStore, parse_path
from .resolver import ReferenceResolver
from .naming import VariableNameMapper
from .cascade import CascadeEngine, CascadeEndpoints, cascade_steps, generate_scale, family_name_for
from .compliance import ComplianceWatcher
from .document import PersistencePort, MemoryPersistence, load_document, dump_document
from .schema import (
    # Core models
    Token,
    TokenReference,
    TokenChange,
    ResolvedValue,
    ResolutionError,
    ColorScale,
    CascadeResult,
    SynthesizedScale,
    CompliancePair,
    ComplianceResult,
    AppliedFix,

    # Enums
    TokenKind,
    ErrorKind,
    NamingScheme,
    ComplianceStatus,
    PairState,

    # Constants
    STEP_LABELS,
)
from .errors import (
    TokenEngineError,
    InvalidTokenPath,
    InvalidColorFormat,
    InvalidStep,
    UnknownScaleFamily,
    DocumentError,
)
from .utils import (
    hex_to_rgb,
    rgb_to_hex,
    normalize_hex,
    calculate_contrast_ratio,
    meets_wcag_contrast,
    pick_on_tone,
    fallback_hue_name,
)

__all__ = [
    # Main classes
    "TokenEngine",
    "TokenStore",
    "ReferenceResolver",
    "VariableNameMapper",
    "CascadeEngine",
    "CascadeEndpoints",
    "ComplianceWatcher",
    "PersistencePort",
    "MemoryPersistence",

    # Functions
    "parse_path",
    "cascade_steps",
    "generate_scale",
    "family_name_for",
    "load_document",
    "dump_document",

    # Schema models
    "Token",
    "TokenReference",
    "TokenChange",
    "ResolvedValue",
    "ResolutionError",
    "ColorScale",
    "CascadeResult",
    "SynthesizedScale",
    "CompliancePair",
    "ComplianceResult",
    "AppliedFix",

    # Enums
    "TokenKind",
    "ErrorKind",
    "NamingScheme",
    "ComplianceStatus",
    "PairState",
    "STEP_LABELS",

    # Errors
    "TokenEngineError",
    "InvalidTokenPath",
    "InvalidColorFormat",
    "InvalidStep",
    "UnknownScaleFamily",
    "DocumentError",

    # Utilities
    "hex_to_rgb",
    "rgb_to_hex",
    "normalize_hex",
    "calculate_contrast_ratio",
    "meets_wcag_contrast",
    "pick_on_tone",
    "fallback_hue_name",
]

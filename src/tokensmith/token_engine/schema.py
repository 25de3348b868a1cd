"""Schema definitions for the tokensmith token engine.

This module defines the Pydantic models and enums shared by the token store,
reference resolver, cascade engine and compliance watcher: tokens and their
paths, resolution outcomes, color scales, compliance pairs and results, and
change notifications.
"""

from typing import Dict, Optional, List, Union, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum
import re


TokenPath = Tuple[str, ...]
RawValue = Union[str, int, float]

STEP_LABELS: Tuple[str, ...] = (
    "000", "050", "100", "200", "300", "400",
    "500", "600", "700", "800", "900", "1000",
)
STEP_INDEX: Dict[str, int] = {label: index for index, label in enumerate(STEP_LABELS)}

SCALE_KEY_PATTERN = re.compile(r'^scale-(\d+)$')


class TokenKind(str, Enum):
    """Kinds of token values"""
    COLOR = "color"
    DIMENSION = "dimension"
    NUMBER = "number"
    STRING = "string"


class ErrorKind(str, Enum):
    """Recoverable resolution failures"""
    UNRESOLVED_REFERENCE = "unresolved_reference"
    CYCLE_DETECTED = "cycle_detected"


class NamingScheme(str, Enum):
    """External naming conventions for color-family tokens"""
    ALIAS = "alias"
    SCALE_INDEX = "scale_index"


class ComplianceStatus(str, Enum):
    """Outcome of evaluating a compliance pair"""
    PASS = "pass"
    VIOLATION = "violation"
    UNSATISFIABLE = "unsatisfiable"
    UNRESOLVED = "unresolved"


class PairState(str, Enum):
    """Watcher state for a single compliance pair"""
    IDLE = "idle"
    SCANNING = "scanning"
    PASS = "pass"
    VIOLATION = "violation"
    FIXING = "fixing"
    UNSATISFIABLE = "unsatisfiable"


def path_to_str(path: TokenPath) -> str:
    """Join a token path into its dotted text form."""
    return ".".join(path)


class TokenReference(BaseModel):
    """Symbolic pointer at another token's path"""
    model_config = ConfigDict(frozen=True)

    target: TokenPath

    def __str__(self) -> str:
        return "{" + path_to_str(self.target) + "}"


class Token(BaseModel):
    """A named, typed design value"""
    model_config = ConfigDict(frozen=True)

    path: TokenPath
    kind: TokenKind = TokenKind.STRING
    raw: RawValue

    @field_validator('path')
    @classmethod
    def validate_path(cls, v):
        if not v or any(not segment for segment in v):
            raise ValueError("Token path must contain non-empty segments")
        return v


class ResolvedValue(BaseModel):
    """Successful resolution of a token path"""
    model_config = ConfigDict(frozen=True)

    path: TokenPath
    value: RawValue
    kind: TokenKind
    chain: Tuple[TokenPath, ...] = ()
    dependencies: frozenset = Field(default_factory=frozenset)

    @property
    def ok(self) -> bool:
        return True


class ResolutionError(BaseModel):
    """Resolution failure, returned as a value rather than raised"""
    model_config = ConfigDict(frozen=True)

    path: TokenPath
    error: ErrorKind
    message: str = ""
    chain: Tuple[TokenPath, ...] = ()
    dependencies: frozenset = Field(default_factory=frozenset)

    @property
    def ok(self) -> bool:
        return False


Resolution = Union[ResolvedValue, ResolutionError]


class TokenChange(BaseModel):
    """Change notification emitted by the token store"""
    model_config = ConfigDict(frozen=True)

    path: TokenPath
    old_value: Optional[RawValue] = None
    new_value: Optional[RawValue] = None
    revision: int = 0


class ColorScale(BaseModel):
    """A 12-step color family registered in the store"""

    key: str = Field(..., description="Stable scale identifier, e.g. scale-01")
    alias: str = Field(..., description="Human-readable family name")

    @field_validator('key')
    @classmethod
    def validate_key(cls, v):
        if not SCALE_KEY_PATTERN.match(v):
            raise ValueError(f"Invalid scale key: {v}")
        return v

    def step_path(self, step: str) -> TokenPath:
        return ("colors", self.key, step)

    def step_paths(self) -> List[TokenPath]:
        return [self.step_path(step) for step in STEP_LABELS]


class CascadeResult(BaseModel):
    """Scale state after a cascade edit"""

    family: str
    scale_key: str
    edited_step: str
    steps: Dict[str, Optional[str]] = Field(default_factory=dict)
    written: List[str] = Field(default_factory=list)


class SynthesizedScale(BaseModel):
    """A new scale generated from a seed color"""

    family_alias: str
    scale_key: Optional[str] = None
    seed: str
    steps: Dict[str, str] = Field(default_factory=dict)

    def hex_values(self) -> List[str]:
        return [self.steps[label] for label in STEP_LABELS]


class CompliancePair(BaseModel):
    """Foreground/background pair subject to a minimum contrast ratio"""
    model_config = ConfigDict(frozen=True)

    foreground: TokenPath
    background: TokenPath
    minimum_ratio: float = 4.5
    opacity: float = 1.0

    @field_validator('minimum_ratio')
    @classmethod
    def validate_ratio(cls, v):
        if v < 1.0 or v > 21.0:
            raise ValueError(f"Contrast ratio must be between 1 and 21, got {v}")
        return v

    @field_validator('opacity')
    @classmethod
    def validate_opacity(cls, v):
        if v < 0.0 or v > 1.0:
            raise ValueError(f"Opacity must be between 0 and 1, got {v}")
        return v

    @property
    def key(self) -> Tuple[TokenPath, TokenPath]:
        return (self.foreground, self.background)


class AppliedFix(BaseModel):
    """A corrective write made by the compliance watcher"""

    path: TokenPath
    value: str
    hex: str


class ComplianceResult(BaseModel):
    """Evaluation of a compliance pair"""

    pair: CompliancePair
    ratio: Optional[float] = None
    status: ComplianceStatus
    applied_fix: Optional[AppliedFix] = None
    foreground_hex: Optional[str] = None
    background_hex: Optional[str] = None
    superseded: bool = False
    message: str = ""

    @property
    def compliant(self) -> bool:
        return self.status == ComplianceStatus.PASS

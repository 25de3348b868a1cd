"""Color cascade engine for 12-step color scales.

Editing one step of a scale regenerates its neighbours by hue-preserving HSV
interpolation: steps below the edited one blend toward a near-white,
low-saturation endpoint at ``000``, steps above blend toward a near-black
endpoint at ``1000``. A brand-new scale is synthesized the same way from a
seed placed at step ``500``.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, TYPE_CHECKING
import logging

from .schema import (
    STEP_LABELS,
    STEP_INDEX,
    SCALE_KEY_PATTERN,
    TokenKind,
    CascadeResult,
    SynthesizedScale,
)
from .utils import (
    clamp,
    lerp,
    normalize_hex,
    normalize_step,
    hex_to_hsv,
    hsv_to_hex,
    fallback_hue_name,
    to_kebab_case,
    to_title_case,
)

if TYPE_CHECKING:
    from .store import TokenStore
    from ..config import ConfigModel

logger = logging.getLogger(__name__)

SEED_STEP = "500"
LAST_INDEX = len(STEP_LABELS) - 1

NameProvider = Callable[[str], Optional[str]]


@dataclass(frozen=True)
class CascadeEndpoints:
    """Interpolation endpoints for the ends of a scale."""

    light_saturation: float = 0.02
    light_value: float = 0.98
    dark_saturation_factor: float = 1.2
    dark_value_factor: float = 0.08
    dark_value_floor: float = 0.03

    @classmethod
    def from_config(cls, config: 'ConfigModel') -> 'CascadeEndpoints':
        return cls(
            light_saturation=config.light_end_saturation,
            light_value=config.light_end_value,
            dark_saturation_factor=config.dark_saturation_factor,
            dark_value_factor=config.dark_value_factor,
            dark_value_floor=config.dark_value_floor,
        )


def cascade_steps(hex_color: str, step, cascade_down: bool, cascade_up: bool,
                  endpoints: Optional[CascadeEndpoints] = None) -> Dict[str, str]:
    """Compute the values a cascade edit writes.

    Args:
        hex_color: New color of the edited step
        step: Edited step (``500``, ``'050'``...)
        cascade_down: Regenerate the lighter steps below the edited one
        cascade_up: Regenerate the darker steps above the edited one
        endpoints: Interpolation endpoints

    Returns:
        Mapping of step label to hex for every step written, including the
        edited step itself

    Raises:
        InvalidColorFormat: If hex_color is not a valid hex color
        InvalidStep: If step is not a canonical step
    """
    endpoints = endpoints or CascadeEndpoints()
    edited_hex = normalize_hex(hex_color)
    label = normalize_step(step)
    start = STEP_INDEX[label]
    h, s, v = hex_to_hsv(edited_hex)

    written = {label: edited_hex}

    if cascade_down and start > 0:
        for i in range(start - 1, -1, -1):
            t = i / start
            step_s = clamp(lerp(endpoints.light_saturation, s, t))
            step_v = clamp(lerp(endpoints.light_value, v, t))
            written[STEP_LABELS[i]] = hsv_to_hex(h, step_s, step_v)

    if cascade_up and start < LAST_INDEX:
        end_s = clamp(s * endpoints.dark_saturation_factor)
        end_v = clamp(max(endpoints.dark_value_floor, v * endpoints.dark_value_factor))
        span = LAST_INDEX - start
        for i in range(start + 1, LAST_INDEX + 1):
            t = (i - start) / span
            step_s = clamp(lerp(s, end_s, t))
            step_v = clamp(lerp(v, end_v, t))
            written[STEP_LABELS[i]] = hsv_to_hex(h, step_s, step_v)

    return written


def generate_scale(seed_hex: str, endpoints: Optional[CascadeEndpoints] = None) -> Dict[str, str]:
    """Generate all 12 steps of a scale from a seed placed at step 500."""
    written = cascade_steps(seed_hex, SEED_STEP, True, True, endpoints)
    return {label: written[label] for label in STEP_LABELS}


def family_name_for(seed_hex: str, name_provider: Optional[NameProvider] = None) -> str:
    """Human-readable family name for a seed color.

    Tries the naming provider first; falls back to hue-bucket naming when
    the provider is missing, fails, or returns nothing usable.
    """
    if name_provider is not None:
        try:
            label = name_provider(seed_hex)
        except Exception as e:
            logger.warning(f"Color naming provider failed for {seed_hex}: {e}")
            label = None
        if label and label.strip() and not label.strip().startswith('#'):
            return to_title_case(label.strip())
    return fallback_hue_name(seed_hex)


class CascadeEngine:
    """Applies cascade edits and synthesizes scales in a TokenStore."""

    def __init__(self, store: 'TokenStore', endpoints: Optional[CascadeEndpoints] = None,
                 name_provider: Optional[NameProvider] = None):
        self.store = store
        self.endpoints = endpoints or CascadeEndpoints()
        self.name_provider = name_provider

    def apply_cascade(self, family: str, step, hex_color: str,
                      cascade_down: bool = True, cascade_up: bool = True) -> CascadeResult:
        """Write an edited step and regenerate its neighbours.

        The edited step is written unconditionally; steps outside the
        requested directions are left untouched. All writes form one tick.

        Raises:
            InvalidColorFormat: If hex_color is not a valid hex color
            InvalidStep: If step is not a canonical step
            UnknownScaleFamily: If no scale is registered under family
        """
        scale = self.store.get_scale(family)
        written = cascade_steps(hex_color, step, cascade_down, cascade_up, self.endpoints)
        label = normalize_step(step)

        with self.store.batch():
            for step_label in STEP_LABELS:
                if step_label in written:
                    self.store.set_token(scale.step_path(step_label), written[step_label], TokenKind.COLOR)

        logger.debug(
            f"Cascade on {scale.alias}/{label} -> {written[label]} "
            f"(down={cascade_down}, up={cascade_up}) wrote {len(written)} steps"
        )

        return CascadeResult(
            family=scale.alias,
            scale_key=scale.key,
            edited_step=label,
            steps=self.store.scale_values(scale.key),
            written=[step_label for step_label in STEP_LABELS if step_label in written],
        )

    def synthesize_scale(self, seed_hex: str, name: Optional[str] = None,
                         register: bool = True) -> SynthesizedScale:
        """Create a full 12-step family from one seed color.

        Args:
            seed_hex: Seed color, placed at step 500
            name: Optional family alias; derived from the seed if omitted
            register: Store the scale atomically in the token store

        Raises:
            InvalidColorFormat: If seed_hex is not a valid hex color
        """
        seed = normalize_hex(seed_hex)
        steps = generate_scale(seed, self.endpoints)
        alias = self._unique_alias(to_kebab_case(name or family_name_for(seed, self.name_provider)))

        scale_key = None
        if register:
            scale = self.store.register_scale(alias, steps)
            scale_key = scale.key
            logger.info(f"Synthesized scale '{alias}' ({scale_key}) from {seed}")

        return SynthesizedScale(family_alias=alias, scale_key=scale_key, seed=seed, steps=steps)

    def delete_scale(self, family: str):
        """Remove a scale's 12 steps and its alias together."""
        return self.store.delete_scale(family)

    def scale_steps(self, family: str) -> List[str]:
        """Current hex values of a scale, lightest first."""
        values = self.store.scale_values(family)
        return [values[label] for label in STEP_LABELS]

    def _unique_alias(self, alias: str) -> str:
        alias = alias or "color"
        if not self.store.alias_in_use(alias) and self.store.find_scale(alias) is None:
            return alias

        suffix = 2
        while True:
            candidate = f"{alias}-{suffix}"
            if SCALE_KEY_PATTERN.match(candidate):
                candidate = f"{alias}{suffix}"
            if not self.store.alias_in_use(candidate) and self.store.find_scale(candidate) is None:
                return candidate
            suffix += 1

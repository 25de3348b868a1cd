"""Utility functions for token engine operations.

This module provides hex/RGB/HSV color conversion, WCAG luminance and
contrast calculation, opacity blending, black/white on-tone selection,
fallback color naming, and value-kind inference for the token engine.
"""

import re
import colorsys
from typing import Tuple, Optional, Dict, Any, List

from .schema import TokenKind, STEP_INDEX
from .errors import InvalidColorFormat, InvalidStep


HEX_COLOR_PATTERN = re.compile(r'^#?([0-9A-Fa-f]{3}|[0-9A-Fa-f]{6})$')
DIMENSION_PATTERN = re.compile(r'^-?\d+(\.\d+)?(px|rem|em|%|vh|vw|pt|ch|ms|s)$')

AA_RATIO = 4.5
AAA_RATIO = 7.0

BLACK = "#000000"
WHITE = "#ffffff"


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def lerp(a: float, b: float, t: float) -> float:
    """Linear interpolation between a and b."""
    return a + (b - a) * t


def is_hex_color(value: Any) -> bool:
    """Check whether a value is a 3- or 6-digit hex color string."""
    return isinstance(value, str) and bool(HEX_COLOR_PATTERN.match(value.strip()))


def normalize_hex(hex_color: str) -> str:
    """Normalize a hex color to lowercase ``#rrggbb`` form.

    Args:
        hex_color: Hex color string (e.g., '#FF0000', 'FF0000' or '#f00')

    Returns:
        Normalized hex color string

    Raises:
        InvalidColorFormat: If hex_color is not a valid hex color
    """
    if not isinstance(hex_color, str):
        raise InvalidColorFormat(hex_color)

    match = HEX_COLOR_PATTERN.match(hex_color.strip())
    if not match:
        raise InvalidColorFormat(hex_color)

    digits = match.group(1).lower()
    if len(digits) == 3:
        digits = ''.join(ch * 2 for ch in digits)
    return f"#{digits}"


def hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    """Convert hex color to RGB tuple.

    Args:
        hex_color: Hex color string (e.g., '#FF0000' or 'FF0000')

    Returns:
        RGB tuple (r, g, b) with values 0-255

    Raises:
        InvalidColorFormat: If hex_color is not a valid hex color
    """
    digits = normalize_hex(hex_color)[1:]
    return (int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))


def rgb_to_hex(r: float, g: float, b: float) -> str:
    """Convert RGB values to hex color string.

    Channels are rounded and clamped to 0-255.
    """
    def channel(value: float) -> int:
        return int(clamp(round(value), 0, 255))

    return f"#{channel(r):02x}{channel(g):02x}{channel(b):02x}"


def hex_to_hsv(hex_color: str) -> Tuple[float, float, float]:
    """Convert hex color to HSV.

    Returns:
        Tuple (h, s, v) with hue in degrees [0, 360) and s, v in [0, 1]
    """
    r, g, b = hex_to_rgb(hex_color)
    h, s, v = colorsys.rgb_to_hsv(r / 255.0, g / 255.0, b / 255.0)
    return (h * 360.0, s, v)


def hsv_to_hex(h: float, s: float, v: float) -> str:
    """Convert HSV (hue in degrees) to hex color string.

    Hue is taken modulo 360; saturation and value are clamped to [0, 1].
    """
    hue = (h % 360.0) / 360.0
    r, g, b = colorsys.hsv_to_rgb(hue, clamp(s), clamp(v))
    return rgb_to_hex(r * 255.0, g * 255.0, b * 255.0)


def calculate_luminance(r: int, g: int, b: int) -> float:
    """Calculate relative luminance of an RGB color.

    Uses the WCAG formula for luminance calculation.

    Args:
        r, g, b: RGB values 0-255

    Returns:
        Relative luminance 0.0-1.0
    """
    def gamma_correct(value: int) -> float:
        normalized = value / 255.0
        if normalized <= 0.03928:
            return normalized / 12.92
        return ((normalized + 0.055) / 1.055) ** 2.4

    return 0.2126 * gamma_correct(r) + 0.7152 * gamma_correct(g) + 0.0722 * gamma_correct(b)


def hex_luminance(hex_color: str) -> float:
    """Relative luminance of a hex color."""
    return calculate_luminance(*hex_to_rgb(hex_color))


def calculate_contrast_ratio(color1: str, color2: str) -> float:
    """Calculate WCAG contrast ratio between two colors.

    Args:
        color1, color2: Hex color strings

    Returns:
        Contrast ratio 1.0-21.0 (higher is more contrast)

    Raises:
        InvalidColorFormat: If either color cannot be parsed
    """
    lum1 = hex_luminance(color1)
    lum2 = hex_luminance(color2)

    # Ensure lighter color is in numerator
    if lum1 < lum2:
        lum1, lum2 = lum2, lum1

    return (lum1 + 0.05) / (lum2 + 0.05)


def meets_wcag_contrast(fg_color: str, bg_color: str, level: str = 'AA') -> bool:
    """Check if color combination meets WCAG contrast requirements.

    Args:
        fg_color: Foreground hex color
        bg_color: Background hex color
        level: 'AA' (4.5:1) or 'AAA' (7:1)

    Returns:
        True if contrast meets requirements
    """
    ratio = calculate_contrast_ratio(fg_color, bg_color)
    if level == 'AAA':
        return ratio >= AAA_RATIO
    return ratio >= AA_RATIO


def blend_over(fg_color: str, bg_color: str, opacity: float = 1.0) -> str:
    """Composite a foreground color over a background at the given opacity."""
    alpha = clamp(opacity)
    fr, fg, fb = hex_to_rgb(fg_color)
    br, bgc, bb = hex_to_rgb(bg_color)
    return rgb_to_hex(
        alpha * fr + (1 - alpha) * br,
        alpha * fg + (1 - alpha) * bgc,
        alpha * fb + (1 - alpha) * bb,
    )


def pick_on_tone(tone_hex: str, minimum_ratio: float = AA_RATIO) -> str:
    """Choose black or white text for a tone color.

    Prefers whichever of black/white meets the minimum ratio; when both do,
    or neither does, the one with higher contrast wins.
    """
    black_ratio = calculate_contrast_ratio(tone_hex, BLACK)
    white_ratio = calculate_contrast_ratio(tone_hex, WHITE)

    if black_ratio >= minimum_ratio and white_ratio < minimum_ratio:
        return BLACK
    if white_ratio >= minimum_ratio and black_ratio < minimum_ratio:
        return WHITE
    return BLACK if black_ratio >= white_ratio else WHITE


def fallback_hue_name(hex_color: str) -> str:
    """Name a color by its hue bucket.

    Used when no naming provider is available.
    """
    h, s, v = hex_to_hsv(hex_color)
    if s < 0.05:
        if v > 0.9:
            return 'White'
        if v < 0.1:
            return 'Black'
        return 'Gray'

    hue = h % 360.0
    if hue >= 345 or hue < 15:
        return 'Red'
    if hue < 45:
        return 'Orange'
    if hue < 65:
        return 'Yellow'
    if hue < 170:
        return 'Green'
    if hue < 200:
        return 'Cyan'
    if hue < 255:
        return 'Blue'
    if hue < 290:
        return 'Indigo'
    if hue < 330:
        return 'Violet'
    return 'Magenta'


def to_title_case(label: str) -> str:
    """Convert 'light_sky-blue' style labels to 'Light Sky Blue'."""
    words = re.split(r'[-_/\s]+', label or '')
    return ' '.join(word[:1].upper() + word[1:].lower() for word in words if word)


def to_kebab_case(label: str) -> str:
    """Convert a label to kebab-case."""
    kebab = re.sub(r'[^a-z0-9]+', '-', (label or '').lower())
    return kebab.strip('-')


def normalize_step(step: Any) -> str:
    """Normalize a scale step (``500``, ``'050'``, ``50``) to its label.

    Raises:
        InvalidStep: If step is not one of the 12 canonical steps
    """
    if isinstance(step, bool):
        raise InvalidStep(step)
    if isinstance(step, str):
        if step in STEP_INDEX:
            return step
        if not step.strip().isdigit():
            raise InvalidStep(step)
        step_number = int(step.strip())
    elif isinstance(step, int):
        step_number = step
    else:
        raise InvalidStep(step)

    label = str(step_number).zfill(3)
    if label not in STEP_INDEX:
        raise InvalidStep(step)
    return label


def infer_kind(value: Any) -> 'TokenKind':
    """Infer the token kind of a literal value."""
    if isinstance(value, bool):
        return TokenKind.STRING
    if isinstance(value, (int, float)):
        return TokenKind.NUMBER
    if isinstance(value, str):
        stripped = value.strip()
        if is_hex_color(stripped) and stripped.startswith('#'):
            return TokenKind.COLOR
        if DIMENSION_PATTERN.match(stripped):
            return TokenKind.DIMENSION
    return TokenKind.STRING


def deep_merge_dict(base: Dict[Any, Any], overlay: Dict[Any, Any]) -> Dict[Any, Any]:
    """Deep merge two dictionaries, with overlay taking precedence.

    Args:
        base: Base dictionary
        overlay: Overlay dictionary (takes precedence)

    Returns:
        New merged dictionary
    """
    result = base.copy()

    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge_dict(result[key], value)
        else:
            result[key] = value

    return result


def validate_color_accessibility(pairs: List[Tuple[str, str, str, str]],
                                 minimum_ratio: float = AA_RATIO) -> List[str]:
    """Validate color accessibility for labelled color pairs.

    Args:
        pairs: Tuples of (fg_label, fg_hex, bg_label, bg_hex)
        minimum_ratio: Required contrast ratio

    Returns:
        List of accessibility warnings
    """
    warnings = []

    for fg_label, fg_color, bg_label, bg_color in pairs:
        try:
            ratio = calculate_contrast_ratio(fg_color, bg_color)
        except InvalidColorFormat:
            warnings.append(f"Invalid color format in {fg_label} or {bg_label}")
            continue
        if ratio < minimum_ratio:
            warnings.append(
                f"Low contrast between {fg_label} and {bg_label}: "
                f"{ratio:.1f}:1 (recommended {minimum_ratio:g}:1+)"
            )

    return warnings


def format_ratio(ratio: Optional[float]) -> str:
    """Format a contrast ratio for display."""
    if ratio is None:
        return "n/a"
    return f"{ratio:.2f}:1"

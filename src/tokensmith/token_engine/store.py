"""Token store for the tokensmith token engine.

The TokenStore is the single owner of mutable token state: base token
definitions, the override layer, registered color scales and their aliases,
per-path revisions, and the change-notification channel. Writes grouped in
``batch()`` form one tick; tick listeners receive every change of the tick
at once when the outermost batch closes.
"""

from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union
import logging

from .schema import (
    Token,
    TokenKind,
    TokenPath,
    TokenChange,
    RawValue,
    Resolution,
    ColorScale,
    STEP_LABELS,
    STEP_INDEX,
    SCALE_KEY_PATTERN,
    path_to_str,
)
from .errors import InvalidTokenPath, InvalidStep, UnknownScaleFamily
from .resolver import ReferenceResolver, split_path, is_reference, parse_reference
from .utils import infer_kind, normalize_hex, normalize_step

logger = logging.getLogger(__name__)

PathLike = Union[str, TokenPath, List[str]]
ChangeCallback = Callable[[TokenChange], None]
FlushCallback = Callable[[List[TokenChange]], None]

COLOR_ROOTS = ("colors", "color")


def parse_path(path: PathLike) -> TokenPath:
    """Convert a path-like value into a TokenPath.

    Strings are split on '.' or '/'; sequences are taken segment by segment.

    Raises:
        InvalidTokenPath: If the path is empty or has empty segments
    """
    if isinstance(path, str):
        segments = split_path(path)
    elif isinstance(path, (tuple, list)):
        segments = tuple(str(segment).strip() for segment in path)
    else:
        raise InvalidTokenPath(f"Invalid token path: {path!r}")

    if not segments or any(not segment for segment in segments):
        raise InvalidTokenPath(f"Invalid token path: {path!r}")
    return segments


class TokenStore:
    """Owner of the token definition graph and its override layer."""

    def __init__(self):
        self._tokens: Dict[TokenPath, Token] = {}
        self._overrides: Dict[TokenPath, RawValue] = {}
        self._revisions: Dict[TokenPath, int] = {}

        # Color scales (scale key -> scale, alias -> scale key)
        self._scales: Dict[str, ColorScale] = {}
        self._aliases: Dict[str, str] = {}

        # Change notification
        self._path_subscribers: Dict[TokenPath, List[ChangeCallback]] = {}
        self._subscribers: List[ChangeCallback] = []
        self._flush_listeners: List[FlushCallback] = []
        self._batch_depth = 0
        self._pending: List[TokenChange] = []

        self.resolver = ReferenceResolver(self)

    # Reads

    def canonical_path(self, path: PathLike) -> TokenPath:
        """Map alias-form and legacy color paths onto canonical scale paths.

        ``colors.<alias>.<step>`` and ``color.<family>.<step>`` become
        ``colors.<scale-key>.<step>``. Alias lookup takes precedence over
        scale-key lookup.
        """
        segments = parse_path(path)
        if len(segments) != 3 or segments[0] not in COLOR_ROOTS:
            return segments

        _, family, step = segments
        scale_key = self._aliases.get(family)
        if scale_key is None and family in self._scales:
            scale_key = family
        if scale_key is None:
            return segments

        try:
            step = normalize_step(step)
        except InvalidStep:
            return segments
        return ("colors", scale_key, step)

    def get_token(self, path: PathLike) -> Optional[Token]:
        return self._tokens.get(self.canonical_path(path))

    def has_token(self, path: PathLike) -> bool:
        canonical = self.canonical_path(path)
        return canonical in self._tokens or canonical in self._overrides

    def raw_value(self, path: PathLike) -> Optional[RawValue]:
        """Effective raw value at path (override first, then base)."""
        canonical = self.canonical_path(path)
        if canonical in self._overrides:
            return self._overrides[canonical]
        token = self._tokens.get(canonical)
        return token.raw if token is not None else None

    def effective_kind(self, path: PathLike) -> TokenKind:
        """Kind of the effective literal at path."""
        canonical = self.canonical_path(path)
        if canonical in self._overrides:
            return infer_kind(self._overrides[canonical])
        token = self._tokens.get(canonical)
        if token is None:
            return TokenKind.STRING
        return token.kind

    def get_override(self, path: PathLike) -> Optional[RawValue]:
        return self._overrides.get(self.canonical_path(path))

    def overrides(self) -> Dict[TokenPath, RawValue]:
        return dict(self._overrides)

    def tokens(self) -> List[Token]:
        return [self._tokens[path] for path in sorted(self._tokens)]

    def paths(self) -> List[TokenPath]:
        return sorted(set(self._tokens) | set(self._overrides))

    def revision(self, path: PathLike) -> int:
        """Number of writes made to path so far."""
        return self._revisions.get(self.canonical_path(path), 0)

    def resolve(self, path: PathLike) -> Resolution:
        """Resolve a token path; errors are returned, not raised."""
        return self.resolver.resolve(self.canonical_path(path))

    # Writes

    def set_token(self, path: PathLike, raw: RawValue, kind: Optional[TokenKind] = None) -> Token:
        """Write a literal or reference at path.

        Clears any override at the path and invalidates every cached
        resolution whose chain passes through it.
        """
        canonical = self.canonical_path(path)
        if kind is None:
            kind = self._kind_for(canonical, raw)

        old_value = self.raw_value(canonical)
        token = Token(path=canonical, kind=kind, raw=raw)
        self._tokens[canonical] = token
        self._overrides.pop(canonical, None)

        self._record_change(canonical, old_value, raw)
        return token

    def set_override(self, path: PathLike, value: RawValue) -> None:
        """Shadow the base definition at path with a literal value."""
        if is_reference(value):
            raise ValueError(f"Overrides must be literal values, got {value!r}")

        canonical = self.canonical_path(path)
        old_value = self.raw_value(canonical)
        self._overrides[canonical] = value
        self._record_change(canonical, old_value, value)

    def clear_override(self, path: PathLike) -> bool:
        """Remove the override at path, restoring the base definition."""
        canonical = self.canonical_path(path)
        if canonical not in self._overrides:
            return False

        old_value = self._overrides.pop(canonical)
        self._record_change(canonical, old_value, self.raw_value(canonical))
        return True

    def delete_token(self, path: PathLike) -> bool:
        """Delete the token and any override at path."""
        canonical = self.canonical_path(path)
        if self._scale_step(canonical) is not None:
            raise ValueError(
                f"Cannot delete scale step {path_to_str(canonical)}; delete the whole scale"
            )
        return self._remove(canonical)

    def _remove(self, canonical: TokenPath) -> bool:
        if canonical not in self._tokens and canonical not in self._overrides:
            return False

        old_value = self.raw_value(canonical)
        self._tokens.pop(canonical, None)
        self._overrides.pop(canonical, None)
        self._record_change(canonical, old_value, None)
        return True

    def _kind_for(self, canonical: TokenPath, raw: RawValue) -> TokenKind:
        if not is_reference(raw):
            return infer_kind(raw)
        existing = self._tokens.get(canonical)
        return existing.kind if existing is not None else TokenKind.STRING

    # Batching and notification

    @contextmanager
    def batch(self) -> Iterator['TokenStore']:
        """Group writes into one tick.

        Change callbacks still fire per write; flush listeners fire once
        with every change of the tick when the outermost batch exits.
        """
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0:
                self._flush()

    @property
    def in_batch(self) -> bool:
        return self._batch_depth > 0

    def on_change(self, path: PathLike, callback: ChangeCallback) -> Callable[[], None]:
        """Subscribe to changes of a single token path.

        Returns:
            Callable that removes the subscription
        """
        canonical = self.canonical_path(path)
        self._path_subscribers.setdefault(canonical, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._path_subscribers.get(canonical, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        """Subscribe to every change."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def on_flush(self, callback: FlushCallback) -> Callable[[], None]:
        """Subscribe to tick flushes (all changes of one batch)."""
        self._flush_listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._flush_listeners:
                self._flush_listeners.remove(callback)

        return unsubscribe

    def _record_change(self, canonical: TokenPath, old_value, new_value) -> None:
        self.resolver.invalidate(canonical)
        revision = self._revisions.get(canonical, 0) + 1
        self._revisions[canonical] = revision

        change = TokenChange(
            path=canonical,
            old_value=old_value,
            new_value=new_value,
            revision=revision,
        )
        logger.debug(f"Token {path_to_str(canonical)} changed: {old_value!r} -> {new_value!r}")

        for callback in list(self._path_subscribers.get(canonical, [])):
            callback(change)
        for callback in list(self._subscribers):
            callback(change)

        self._pending.append(change)
        if self._batch_depth == 0:
            self._flush()

    def _flush(self) -> None:
        if not self._pending:
            return
        changes, self._pending = self._pending, []
        for listener in list(self._flush_listeners):
            listener(changes)

    # Color scales

    def scales(self) -> List[ColorScale]:
        return [self._scales[key] for key in sorted(self._scales)]

    def find_scale(self, family: str) -> Optional[ColorScale]:
        """Look up a scale by alias first, then by scale key."""
        scale_key = self._aliases.get(family)
        if scale_key is not None:
            return self._scales[scale_key]
        return self._scales.get(family)

    def get_scale(self, family: str) -> ColorScale:
        scale = self.find_scale(family)
        if scale is None:
            raise UnknownScaleFamily(family)
        return scale

    def next_scale_key(self) -> str:
        numbers = [int(SCALE_KEY_PATTERN.match(key).group(1)) for key in self._scales]
        return f"scale-{(max(numbers) + 1 if numbers else 1):02d}"

    def alias_in_use(self, alias: str) -> bool:
        return alias in self._aliases

    def register_scale(self, alias: str, steps: Dict[str, str],
                       key: Optional[str] = None) -> ColorScale:
        """Create a color scale atomically from all 12 step values.

        A step value is a hex color or a single reference such as
        ``{brand.primary}``.

        Raises:
            ValueError: If the alias or key is taken or steps are incomplete
            InvalidColorFormat: If a step value is not a hex color
        """
        if not alias:
            raise ValueError("Scale alias must not be empty")
        if alias in self._aliases or alias in self._scales:
            raise ValueError(f"Scale alias '{alias}' already in use")

        normalized = {
            normalize_step(step): value if parse_reference(value) is not None else normalize_hex(value)
            for step, value in steps.items()
        }
        missing = [step for step in STEP_LABELS if step not in normalized]
        if missing:
            raise ValueError(f"Scale '{alias}' is missing steps: {', '.join(missing)}")

        scale = ColorScale(key=key or self.next_scale_key(), alias=alias)
        if scale.key in self._scales or scale.key in self._aliases:
            raise ValueError(f"Scale key '{scale.key}' already in use")
        # Alias lookup wins over key lookup, so a key-shaped alias would hijack another scale
        if SCALE_KEY_PATTERN.match(alias) and alias != scale.key:
            raise ValueError(f"Scale alias '{alias}' looks like a scale key")

        self._scales[scale.key] = scale
        self._aliases[alias] = scale.key
        # Alias paths may have been cached as unresolved
        self.resolver.invalidate_all()

        with self.batch():
            for step in STEP_LABELS:
                self.set_token(scale.step_path(step), normalized[step], TokenKind.COLOR)

        logger.debug(f"Registered scale {scale.key} as '{alias}'")
        return scale

    def delete_scale(self, family: str) -> ColorScale:
        """Remove all 12 steps of a scale and its alias together."""
        scale = self.get_scale(family)

        with self.batch():
            for path in scale.step_paths():
                self._remove(path)
            del self._scales[scale.key]
            self._aliases.pop(scale.alias, None)
            self.resolver.invalidate_all()

        logger.debug(f"Deleted scale {scale.key} ('{scale.alias}')")
        return scale

    def scale_values(self, family: str) -> Dict[str, str]:
        """Current effective hex value of every step of a scale."""
        scale = self.get_scale(family)
        values = {}
        for step in STEP_LABELS:
            result = self.resolve(scale.step_path(step))
            values[step] = result.value if result.ok else None
        return values

    def scale_step_for(self, path: PathLike) -> Optional[Tuple[ColorScale, str]]:
        """Scale and step label for a canonical scale-step path, if any."""
        return self._scale_step(self.canonical_path(path))

    def _scale_step(self, canonical: TokenPath) -> Optional[Tuple[ColorScale, str]]:
        if len(canonical) != 3 or canonical[0] != "colors":
            return None
        scale = self._scales.get(canonical[1])
        if scale is None or canonical[2] not in STEP_INDEX:
            return None
        return scale, canonical[2]

"""Token document import/export and the persistence port.

Token documents are nested mappings whose leaves carry ``$value`` (and
optionally ``$type``). Color scales live under ``colors.<scale-key>`` with an
``alias`` entry; the legacy ``color.<family>`` layout is read as a scale
aliased by family name. The host decides where documents are stored by
implementing ``PersistencePort``.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING
import copy
import logging

from .schema import (
    TokenKind,
    TokenPath,
    RawValue,
    CompliancePair,
    STEP_LABELS,
    SCALE_KEY_PATTERN,
    path_to_str,
)
from .errors import DocumentError, InvalidColorFormat, InvalidStep, InvalidTokenPath
from .store import parse_path
from .resolver import is_reference, parse_reference
from .utils import AA_RATIO, normalize_hex, normalize_step

if TYPE_CHECKING:
    from .store import TokenStore
    from .compliance import ComplianceWatcher

logger = logging.getLogger(__name__)

VALUE_KEY = "$value"
TYPE_KEY = "$type"
ALIAS_KEY = "alias"


class PersistencePort(ABC):
    """Storage for token documents, implemented by the host."""

    @abstractmethod
    def load(self) -> Optional[Dict[str, Any]]:
        """Return the stored document, or None if nothing is stored."""
        pass

    @abstractmethod
    def save(self, document: Dict[str, Any]) -> None:
        """Store a document."""
        pass


class MemoryPersistence(PersistencePort):
    """In-memory persistence, mostly useful for tests and previews."""

    def __init__(self, document: Optional[Dict[str, Any]] = None):
        self._document = copy.deepcopy(document) if document is not None else None

    def load(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._document) if self._document is not None else None

    def save(self, document: Dict[str, Any]) -> None:
        self._document = copy.deepcopy(document)


def _scale_label(key: Any) -> Optional[str]:
    try:
        return normalize_step(key)
    except InvalidStep:
        return None


def _is_scale_group(group: Dict[Any, Any]) -> bool:
    keys = [key for key in group if key != ALIAS_KEY]
    return bool(keys) and all(_scale_label(key) is not None for key in keys)


def _leaf_value(node: Any) -> Tuple[RawValue, Optional[TokenKind]]:
    kind = None
    if isinstance(node, dict):
        if VALUE_KEY not in node:
            raise DocumentError(f"Token entry has no {VALUE_KEY}: {node!r}")
        value = node[VALUE_KEY]
        if node.get(TYPE_KEY):
            try:
                kind = TokenKind(node[TYPE_KEY])
            except ValueError:
                raise DocumentError(f"Unknown token type: {node[TYPE_KEY]!r}")
    else:
        value = node

    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise DocumentError(f"Token values must be strings or numbers, got {value!r}")
    return value, kind


def _scale_steps(path: TokenPath, group: Dict[Any, Any]) -> Dict[str, str]:
    steps = {}
    for key, leaf in group.items():
        if key == ALIAS_KEY:
            continue
        label = _scale_label(key)
        value = _leaf_value(leaf)[0]
        if parse_reference(value) is not None:
            steps[label] = value
            continue
        try:
            steps[label] = normalize_hex(value)
        except InvalidColorFormat as e:
            raise DocumentError(f"Scale {path_to_str(path)} step {label}: {e}") from e

    missing = [step for step in STEP_LABELS if step not in steps]
    if missing:
        raise DocumentError(f"Scale {path_to_str(path)} is missing steps: {', '.join(missing)}")
    return steps


def _collect(node: Any, prefix: TokenPath, tokens: List[Tuple[TokenPath, RawValue, Optional[TokenKind]]],
             scales: List[Tuple[str, Optional[str], Dict[str, str]]]) -> None:
    if not isinstance(node, dict):
        if prefix:
            value, _ = _leaf_value(node)
            tokens.append((prefix, value, None))
        return

    if prefix and (VALUE_KEY in node or TYPE_KEY in node):
        value, kind = _leaf_value(node)
        tokens.append((prefix, value, kind))

    for key, child in node.items():
        key = str(key)
        if key.startswith("$"):
            continue
        path = prefix + (key,)

        if prefix in (("colors",), ("color",)) and isinstance(child, dict) and _is_scale_group(child):
            steps = _scale_steps(path, child)
            scale_key = key if SCALE_KEY_PATTERN.match(key) else None
            scales.append((str(child.get(ALIAS_KEY) or key), scale_key, steps))
            continue

        _collect(child, path, tokens, scales)


def load_document(store: 'TokenStore', document: Dict[str, Any],
                  watcher: Optional['ComplianceWatcher'] = None) -> Dict[str, int]:
    """Import a token document into the store.

    The whole document is validated before anything is written; all writes
    then form a single tick.

    Returns:
        Counts of imported tokens, scales, overrides and compliance pairs

    Raises:
        DocumentError: If the document is malformed
    """
    if not isinstance(document, dict):
        raise DocumentError("Token document must be a mapping")

    root = document.get("tokens", document)
    if not isinstance(root, dict):
        raise DocumentError("'tokens' must be a mapping")

    tokens: List[Tuple[TokenPath, RawValue, Optional[TokenKind]]] = []
    scales: List[Tuple[str, Optional[str], Dict[str, str]]] = []
    body = {key: value for key, value in root.items() if key not in ("overrides", "compliance")}
    _collect(body, (), tokens, scales)

    overrides = document.get("overrides") or {}
    if not isinstance(overrides, dict):
        raise DocumentError("'overrides' must be a mapping of path to literal value")

    pairs = document.get("compliance") or []
    if not isinstance(pairs, list):
        raise DocumentError("'compliance' must be a list")

    try:
        parsed_pairs = [
            (parse_path(entry["foreground"]), parse_path(entry["background"]),
             entry.get("minimum_ratio"), entry.get("opacity", 1.0))
            for entry in pairs
        ]
        parsed_overrides = [(parse_path(path), value) for path, value in overrides.items()]
    except (KeyError, TypeError, InvalidTokenPath) as e:
        raise DocumentError(f"Invalid compliance or override entry: {e}") from e

    default_ratio = watcher.default_minimum_ratio if watcher is not None else AA_RATIO
    for foreground, background, minimum_ratio, opacity in parsed_pairs:
        try:
            CompliancePair(
                foreground=foreground,
                background=background,
                minimum_ratio=minimum_ratio if minimum_ratio is not None else default_ratio,
                opacity=opacity,
            )
        except ValueError as e:
            raise DocumentError(f"Invalid compliance pair: {e}") from e

    # Scales with explicit keys register before those given generated keys
    scales.sort(key=lambda scale: scale[1] is None)
    seen = set()
    for alias, key, _ in scales:
        names = {alias, key} - {None}
        if names & seen or any(store.find_scale(name) is not None for name in names):
            raise DocumentError(f"Scale '{alias}' is already registered")
        if SCALE_KEY_PATTERN.match(alias) and alias != key:
            raise DocumentError(f"Scale alias '{alias}' looks like a scale key")
        seen |= names
    for path, value in parsed_overrides:
        _leaf_value(value)
        if is_reference(value):
            raise DocumentError(f"Override at {path_to_str(path)} must be a literal, got {value!r}")

    with store.batch():
        for alias, key, steps in scales:
            store.register_scale(alias, steps, key=key)
        for path, value, kind in tokens:
            store.set_token(path, value, kind)
        for path, value in parsed_overrides:
            store.set_override(path, value)

    if watcher is not None:
        try:
            for foreground, background, minimum_ratio, opacity in parsed_pairs:
                watcher.register_pair(foreground, background, minimum_ratio, opacity)
        except ValueError as e:
            raise DocumentError(f"Invalid compliance pair: {e}") from e

    summary = {
        "tokens": len(tokens),
        "scales": len(scales),
        "overrides": len(parsed_overrides),
        "pairs": len(parsed_pairs) if watcher is not None else 0,
    }
    logger.debug(f"Imported token document: {summary}")
    return summary


def dump_document(store: 'TokenStore', watcher: Optional['ComplianceWatcher'] = None) -> Dict[str, Any]:
    """Export the store (and registered pairs) as a token document."""
    tree: Dict[str, Any] = {}

    scale_paths = set()
    for scale in store.scales():
        group: Dict[str, Any] = {ALIAS_KEY: scale.alias}
        for step in STEP_LABELS:
            token = store.get_token(scale.step_path(step))
            if token is not None:
                group[step] = {VALUE_KEY: token.raw}
            scale_paths.add(scale.step_path(step))
        tree.setdefault("colors", {})[scale.key] = group

    for token in store.tokens():
        if token.path in scale_paths:
            continue
        node = tree
        for segment in token.path:
            node = node.setdefault(segment, {})
        node[VALUE_KEY] = token.raw
        node[TYPE_KEY] = token.kind.value

    document: Dict[str, Any] = {"tokens": tree}

    overrides = store.overrides()
    if overrides:
        document["overrides"] = {path_to_str(path): value for path, value in sorted(overrides.items())}

    if watcher is not None and watcher.pairs():
        document["compliance"] = [
            {
                "foreground": path_to_str(pair.foreground),
                "background": path_to_str(pair.background),
                "minimum_ratio": pair.minimum_ratio,
                "opacity": pair.opacity,
            }
            for pair in watcher.pairs()
        ]

    return document

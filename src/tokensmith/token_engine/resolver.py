"""Reference resolution for the token graph.

Token values may point at other tokens with ``{segment.segment}`` syntax,
either as the whole value (a chained reference) or embedded in a larger
string. The ReferenceResolver walks those chains to a terminal literal,
reporting cycles and missing targets as ``ResolutionError`` values, and
memoises results with per-dependency invalidation.
"""

import re
from typing import Dict, List, Optional, Set, TYPE_CHECKING
import logging

from .schema import (
    TokenPath,
    TokenReference,
    TokenKind,
    ErrorKind,
    ResolvedValue,
    ResolutionError,
    Resolution,
    path_to_str,
)

if TYPE_CHECKING:
    from .store import TokenStore

logger = logging.getLogger(__name__)

REFERENCE_PATTERN = re.compile(r'\{([^{}]+)\}')


def split_path(text: str) -> TokenPath:
    """Split a dotted or slashed path string into segments."""
    return tuple(segment.strip() for segment in re.split(r'[./]', text) if segment.strip())


def parse_reference(raw) -> Optional[TokenReference]:
    """Parse a raw value that is exactly one reference, e.g. ``{a.b.c}``."""
    if not isinstance(raw, str):
        return None
    stripped = raw.strip()
    match = REFERENCE_PATTERN.fullmatch(stripped)
    if not match:
        return None
    target = split_path(match.group(1))
    return TokenReference(target=target) if target else None


def find_references(raw) -> List[TokenReference]:
    """Find every reference embedded in a raw string value."""
    if not isinstance(raw, str):
        return []
    references = []
    for match in REFERENCE_PATTERN.finditer(raw):
        target = split_path(match.group(1))
        if target:
            references.append(TokenReference(target=target))
    return references


def is_reference(raw) -> bool:
    """Check whether a raw value contains reference syntax."""
    return bool(find_references(raw))


class ReferenceResolver:
    """Resolves token paths against a TokenStore with memoisation."""

    def __init__(self, store: 'TokenStore'):
        self._store = store

        # Resolution cache (canonical path -> result)
        self._cache: Dict[TokenPath, Resolution] = {}
        # Reverse index (dependency path -> cached paths whose walk touched it)
        self._dependents: Dict[TokenPath, Set[TokenPath]] = {}

    def resolve(self, path: TokenPath) -> Resolution:
        """Resolve a token path to a terminal literal or an error value."""
        canonical = self._store.canonical_path(path)

        cached = self._cache.get(canonical)
        if cached is not None:
            return cached

        deps: Set[TokenPath] = set()
        result = self._walk(canonical, [], deps)
        result = result.model_copy(update={'path': canonical, 'dependencies': frozenset(deps)})

        self._cache[canonical] = result
        for dep in deps:
            self._dependents.setdefault(dep, set()).add(canonical)

        if not result.ok:
            logger.debug(f"Resolution of {path_to_str(canonical)} failed: {result.message}")
        return result

    def invalidate(self, path: TokenPath) -> None:
        """Drop every cached resolution whose chain passed through path."""
        for dependent in self._dependents.pop(path, set()):
            self._cache.pop(dependent, None)
        self._cache.pop(path, None)

    def invalidate_all(self) -> None:
        """Drop every cached resolution."""
        self._cache.clear()
        self._dependents.clear()

    def is_cached(self, path: TokenPath) -> bool:
        return self._store.canonical_path(path) in self._cache

    def _walk(self, path: TokenPath, visiting: List[TokenPath], deps: Set[TokenPath]) -> Resolution:
        deps.add(path)

        if path in visiting:
            chain = tuple(visiting) + (path,)
            cycle = " -> ".join(path_to_str(p) for p in chain)
            return ResolutionError(
                path=path,
                error=ErrorKind.CYCLE_DETECTED,
                message=f"Reference cycle detected: {cycle}",
                chain=chain,
            )

        raw = self._store.raw_value(path)
        if raw is None:
            if visiting:
                message = (f"Reference from {path_to_str(visiting[-1])} "
                           f"to undefined token {path_to_str(path)}")
            else:
                message = f"Token {path_to_str(path)} is not defined"
            return ResolutionError(
                path=path,
                error=ErrorKind.UNRESOLVED_REFERENCE,
                message=message,
                chain=tuple(visiting) + (path,),
            )

        visiting.append(path)
        try:
            reference = parse_reference(raw)
            if reference is not None:
                target = self._store.canonical_path(reference.target)
                result = self._walk(target, visiting, deps)
                if not result.ok:
                    # Error chains already run from the root of the walk
                    return result.model_copy(update={'path': path})
                return result.model_copy(update={'path': path, 'chain': (path,) + result.chain})

            embedded = find_references(raw)
            if embedded:
                return self._interpolate(path, raw, visiting, deps)

            return ResolvedValue(
                path=path,
                value=raw,
                kind=self._store.effective_kind(path),
                chain=(path,),
            )
        finally:
            visiting.pop()

    def _interpolate(self, path: TokenPath, raw: str, visiting: List[TokenPath],
                     deps: Set[TokenPath]) -> Resolution:
        """Substitute each embedded reference with its resolved literal."""
        failure: Optional[ResolutionError] = None

        def substitute(match):
            nonlocal failure
            segments = split_path(match.group(1))
            if not segments:
                # Blank braces are text, not a reference
                return match.group(0)
            target = self._store.canonical_path(segments)
            result = self._walk(target, visiting, deps)
            if not result.ok:
                if failure is None:
                    failure = result
                return match.group(0)
            return str(result.value)

        value = REFERENCE_PATTERN.sub(substitute, raw)
        if failure is not None:
            return failure.model_copy(update={'path': path})

        token = self._store.get_token(path)
        kind = token.kind if token is not None else TokenKind.STRING
        return ResolvedValue(path=path, value=value, kind=kind, chain=(path,))

"""Variable name mapping between token paths and external names.

Color-scale tokens carry two co-existing external names: the alias form
(``colors/cornflower/100``) and the scale-index form
(``colors/scale-01/100``). Both point at the same canonical token; lookups
try the alias form first and fall back to the scale-index form.
"""

from typing import Dict, List, Optional, TYPE_CHECKING
import re

from .schema import TokenPath, NamingScheme
from .errors import InvalidTokenPath

if TYPE_CHECKING:
    from .store import TokenStore, PathLike

DEFAULT_CSS_PREFIX = "--tokens"


class VariableNameMapper:
    """Bidirectional mapping between token paths and external names."""

    def __init__(self, store: 'TokenStore', css_prefix: str = DEFAULT_CSS_PREFIX,
                 default_scheme: NamingScheme = NamingScheme.ALIAS):
        self.store = store
        self.css_prefix = css_prefix.rstrip('-')
        self.default_scheme = NamingScheme(default_scheme)

    def to_external_name(self, path: 'PathLike', scheme: Optional[NamingScheme] = None) -> str:
        """Project a token path to its ``/``-joined external name."""
        return "/".join(self._segments(path, scheme))

    def to_css_var(self, path: 'PathLike', scheme: Optional[NamingScheme] = None) -> str:
        """Project a token path to a CSS custom property name."""
        segments = [self._css_segment(segment) for segment in self._segments(path, scheme)]
        return f"{self.css_prefix}-{'-'.join(segments)}"

    def external_names(self, path: 'PathLike') -> List[str]:
        """Every external name that refers to the token at path."""
        names = []
        for scheme in (NamingScheme.ALIAS, NamingScheme.SCALE_INDEX):
            name = self.to_external_name(path, scheme)
            if name not in names:
                names.append(name)
        return names

    def from_external_name(self, name: str) -> Optional[TokenPath]:
        """Map an external name back to a canonical token path.

        Accepts ``/``-joined names and CSS custom property names. Returns
        None when the name does not identify a defined token.
        """
        if not name or not isinstance(name, str):
            return None

        name = name.strip()
        if name.startswith("var(") and name.endswith(")"):
            name = name[4:-1].strip()

        if name.startswith("--"):
            return self._from_css_var(name)

        try:
            path = self.store.canonical_path(name)
        except InvalidTokenPath:
            return None
        return path if self.store.has_token(path) else None

    def _segments(self, path: 'PathLike', scheme: Optional[NamingScheme]) -> TokenPath:
        scheme = NamingScheme(scheme) if scheme is not None else self.default_scheme
        canonical = self.store.canonical_path(path)

        scale_step = self.store.scale_step_for(canonical)
        if scale_step is None:
            return canonical

        scale, step = scale_step
        family = scale.alias if scheme == NamingScheme.ALIAS else scale.key
        return ("colors", family, step)

    def _from_css_var(self, name: str) -> Optional[TokenPath]:
        prefix = f"{self.css_prefix}-"
        if not name.startswith(prefix):
            return None

        # CSS names flatten segments with '-', which segments may also
        # contain, so match against the names of known tokens.
        index = self._css_index()
        return index.get(name)

    def _css_index(self) -> Dict[str, TokenPath]:
        index: Dict[str, TokenPath] = {}
        paths = self.store.paths()

        # Alias names first so they win over scale-index names
        for scheme in (NamingScheme.ALIAS, NamingScheme.SCALE_INDEX):
            for path in paths:
                index.setdefault(self.to_css_var(path, scheme), path)
        return index

    @staticmethod
    def _css_segment(segment: str) -> str:
        return re.sub(r'[^A-Za-z0-9_-]+', '-', segment).strip('-').lower() or '_'

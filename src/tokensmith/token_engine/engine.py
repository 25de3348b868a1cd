"""Public facade of the token engine.

``TokenEngine`` wires the token store, name mapper, cascade engine and
compliance watcher together and exposes the operations hosts call.
"""

from typing import Any, Callable, Dict, List, Optional
import logging

from .schema import (
    TokenKind,
    TokenChange,
    RawValue,
    Resolution,
    NamingScheme,
    CascadeResult,
    SynthesizedScale,
    ColorScale,
    CompliancePair,
    ComplianceResult,
    path_to_str,
)
from .store import TokenStore, PathLike
from .naming import VariableNameMapper, DEFAULT_CSS_PREFIX
from .cascade import CascadeEngine, CascadeEndpoints, NameProvider
from .compliance import ComplianceWatcher
from .document import PersistencePort, load_document, dump_document
from .utils import AA_RATIO

logger = logging.getLogger(__name__)


class TokenEngine:
    """Design-token engine: store, resolution, cascades and compliance."""

    def __init__(self, endpoints: Optional[CascadeEndpoints] = None,
                 minimum_ratio: float = AA_RATIO,
                 auto_scan: bool = True,
                 auto_fix: bool = True,
                 on_tone_fallback: bool = True,
                 max_fix_passes: int = 8,
                 css_prefix: str = DEFAULT_CSS_PREFIX,
                 naming_scheme: NamingScheme = NamingScheme.ALIAS,
                 name_provider: Optional[NameProvider] = None,
                 persistence: Optional[PersistencePort] = None):
        """Initialize the token engine.

        Args:
            endpoints: Cascade interpolation endpoints
            minimum_ratio: Default minimum contrast ratio for new pairs
            auto_scan: Re-check affected pairs after every write batch
            auto_fix: Rewrite violating foregrounds
            on_tone_fallback: Use black/white for foregrounds outside any scale
            max_fix_passes: Cap on follow-up evaluation passes per tick
            css_prefix: Prefix of exported CSS custom properties
            naming_scheme: Default external naming scheme for color scales
            name_provider: Optional hex -> family name lookup
            persistence: Optional document storage used by load/save
        """
        self.store = TokenStore()
        self.names = VariableNameMapper(self.store, css_prefix, naming_scheme)
        self.cascade = CascadeEngine(self.store, endpoints, name_provider)
        self.watcher = ComplianceWatcher(
            self.store,
            minimum_ratio=minimum_ratio,
            auto_fix=auto_fix,
            on_tone_fallback=on_tone_fallback,
            auto_scan=auto_scan,
            max_passes=max_fix_passes,
        )
        self.persistence = persistence

        logger.debug(f"TokenEngine initialized (auto_scan={auto_scan}, auto_fix={auto_fix})")

    @classmethod
    def from_config(cls, config, name_provider: Optional[NameProvider] = None,
                    persistence: Optional[PersistencePort] = None) -> 'TokenEngine':
        """Create a token engine from a ConfigModel.

        Args:
            config: tokensmith configuration
            name_provider: Optional hex -> family name lookup
            persistence: Optional document storage

        Returns:
            TokenEngine instance
        """
        return cls(
            endpoints=CascadeEndpoints.from_config(config),
            minimum_ratio=config.minimum_contrast_ratio,
            auto_scan=config.auto_scan,
            auto_fix=config.auto_fix,
            on_tone_fallback=config.on_tone_fallback,
            max_fix_passes=config.max_fix_passes,
            css_prefix=config.css_var_prefix,
            naming_scheme=config.naming_scheme,
            name_provider=name_provider,
            persistence=persistence,
        )

    # Tokens

    def resolve(self, path: PathLike) -> Resolution:
        return self.store.resolve(path)

    def set_token(self, path: PathLike, raw: RawValue, kind: Optional[TokenKind] = None):
        return self.store.set_token(path, raw, kind)

    def set_override(self, path: PathLike, value: RawValue) -> None:
        self.store.set_override(path, value)

    def clear_override(self, path: PathLike) -> bool:
        return self.store.clear_override(path)

    def delete_token(self, path: PathLike) -> bool:
        return self.store.delete_token(path)

    def batch(self):
        """Group writes into one tick (see ``TokenStore.batch``)."""
        return self.store.batch()

    def on_change(self, path: PathLike, callback: Callable[[TokenChange], None]) -> Callable[[], None]:
        return self.store.on_change(path, callback)

    # Color scales

    def apply_cascade(self, family: str, step, hex_color: str,
                      cascade_down: bool = True, cascade_up: bool = True) -> CascadeResult:
        return self.cascade.apply_cascade(family, step, hex_color, cascade_down, cascade_up)

    def synthesize_scale(self, seed_hex: str, name: Optional[str] = None) -> SynthesizedScale:
        return self.cascade.synthesize_scale(seed_hex, name)

    def delete_scale(self, family: str) -> ColorScale:
        return self.cascade.delete_scale(family)

    def scales(self) -> List[ColorScale]:
        return self.store.scales()

    # Compliance

    def register_compliance_pair(self, foreground: PathLike, background: PathLike,
                                 minimum_ratio: Optional[float] = None,
                                 opacity: float = 1.0) -> CompliancePair:
        return self.watcher.register_pair(foreground, background, minimum_ratio, opacity)

    def unregister_compliance_pair(self, foreground: PathLike, background: PathLike) -> bool:
        return self.watcher.unregister_pair(foreground, background)

    def run_compliance_scan(self) -> List[ComplianceResult]:
        return self.watcher.run_compliance_scan()

    # Export and persistence

    def export_variables(self, scheme: Optional[NamingScheme] = None) -> Dict[str, Any]:
        """Resolved value of every token keyed by CSS custom property name.

        Tokens that fail to resolve are left out and logged.
        """
        variables = {}
        for path in self.store.paths():
            result = self.store.resolve(path)
            if not result.ok:
                logger.warning(f"Skipping {path_to_str(path)} in export: {result.message}")
                continue
            variables[self.names.to_css_var(path, scheme)] = result.value
        return variables

    def load_document(self, document: Dict[str, Any]) -> Dict[str, int]:
        return load_document(self.store, document, self.watcher)

    def dump_document(self) -> Dict[str, Any]:
        return dump_document(self.store, self.watcher)

    def load(self) -> bool:
        """Load the stored document through the persistence port.

        Returns:
            False when nothing is stored
        """
        if self.persistence is None:
            raise RuntimeError("No persistence port configured")

        document = self.persistence.load()
        if document is None:
            logger.debug("Persistence port returned no document")
            return False
        self.load_document(document)
        return True

    def save(self) -> None:
        """Save the current tokens through the persistence port."""
        if self.persistence is None:
            raise RuntimeError("No persistence port configured")
        self.persistence.save(self.dump_document())
        logger.debug("Token document saved")

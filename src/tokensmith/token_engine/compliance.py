"""Contrast compliance watcher for foreground/background token pairs.

The watcher keeps registered pairs above their minimum WCAG contrast ratio.
It evaluates pairs on demand (``run_compliance_scan``) and, when attached to
a store tick, after every batch of writes that touches a pair's resolution
chain. Violations are fixed by walking the foreground's color scale one step
at a time toward higher contrast; pairs that cannot be satisfied are
reported as unsatisfiable with the best shade left in place.

Fixes are planned for every violating pair before any is applied. A planned
fix whose inputs changed in the meantime is discarded as superseded, and no
pair is fixed twice within one tick.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple, TYPE_CHECKING
import logging

from .schema import (
    TokenKind,
    TokenPath,
    TokenChange,
    CompliancePair,
    ComplianceResult,
    ComplianceStatus,
    AppliedFix,
    PairState,
    STEP_LABELS,
    STEP_INDEX,
    path_to_str,
)
from .errors import InvalidColorFormat
from .utils import (
    AA_RATIO,
    BLACK,
    WHITE,
    blend_over,
    calculate_contrast_ratio,
    hex_luminance,
    is_hex_color,
    normalize_hex,
    pick_on_tone,
)

if TYPE_CHECKING:
    from .store import TokenStore, PathLike

logger = logging.getLogger(__name__)

PairKey = Tuple[TokenPath, TokenPath]
ReportCallback = Callable[[List[ComplianceResult]], None]


@dataclass
class _Candidate:
    value: str
    hex: str
    ratio: float


@dataclass
class _FixPlan:
    key: PairKey
    pair: CompliancePair
    target: TokenPath
    candidate: _Candidate
    satisfied: bool
    foreground_hex: str
    background_hex: str
    revisions: Dict[TokenPath, int] = field(default_factory=dict)


class ComplianceWatcher:
    """Keeps registered contrast pairs compliant."""

    def __init__(self, store: 'TokenStore', minimum_ratio: float = AA_RATIO,
                 auto_fix: bool = True, on_tone_fallback: bool = True,
                 auto_scan: bool = True, max_passes: int = 8):
        self.store = store
        self.default_minimum_ratio = minimum_ratio
        self.auto_fix = auto_fix
        self.on_tone_fallback = on_tone_fallback
        self.max_passes = max_passes

        self._pairs: Dict[PairKey, CompliancePair] = {}
        self._states: Dict[PairKey, PairState] = {}
        self._results: Dict[PairKey, ComplianceResult] = {}
        self._dependencies: Dict[PairKey, frozenset] = {}
        self._last_compliant: Dict[PairKey, Tuple[str, str, float]] = {}
        self._report_listeners: List[ReportCallback] = []

        self._processing = False
        self._queued: List[TokenChange] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

        if auto_scan:
            self.attach()

    # Registration

    def register_pair(self, foreground: 'PathLike', background: 'PathLike',
                      minimum_ratio: Optional[float] = None, opacity: float = 1.0) -> CompliancePair:
        """Register (or replace) a foreground/background pair."""
        pair = CompliancePair(
            foreground=self.store.canonical_path(foreground),
            background=self.store.canonical_path(background),
            minimum_ratio=minimum_ratio if minimum_ratio is not None else self.default_minimum_ratio,
            opacity=opacity,
        )
        self._pairs[pair.key] = pair
        self._states[pair.key] = PairState.IDLE
        self._results.pop(pair.key, None)
        self._dependencies.pop(pair.key, None)

        logger.debug(
            f"Registered compliance pair {path_to_str(pair.foreground)} on "
            f"{path_to_str(pair.background)} (min {pair.minimum_ratio:g}:1)"
        )
        return pair

    def unregister_pair(self, foreground: 'PathLike', background: 'PathLike') -> bool:
        key = (self.store.canonical_path(foreground), self.store.canonical_path(background))
        if key not in self._pairs:
            return False
        for registry in (self._pairs, self._states, self._results,
                         self._dependencies, self._last_compliant):
            registry.pop(key, None)
        return True

    def pairs(self) -> List[CompliancePair]:
        return list(self._pairs.values())

    def state(self, pair: CompliancePair) -> PairState:
        return self._states.get(pair.key, PairState.IDLE)

    def last_result(self, pair: CompliancePair) -> Optional[ComplianceResult]:
        return self._results.get(pair.key)

    def last_compliant(self, pair: CompliancePair) -> Optional[Tuple[str, str, float]]:
        """Last (foreground hex, background hex, ratio) seen passing."""
        return self._last_compliant.get(pair.key)

    def on_report(self, callback: ReportCallback) -> Callable[[], None]:
        """Subscribe to results of automatic scans."""
        self._report_listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._report_listeners:
                self._report_listeners.remove(callback)

        return unsubscribe

    # Triggers

    def attach(self) -> None:
        """Scan affected pairs after every store tick."""
        if self._unsubscribe is None:
            self._unsubscribe = self.store.on_flush(self._on_flush)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def run_compliance_scan(self) -> List[ComplianceResult]:
        """Evaluate (and fix, when enabled) every registered pair."""
        if self._processing:
            logger.debug("Compliance scan requested during a scan; returning last results")
            return [self._results[key] for key in self._pairs if key in self._results]

        results = self._process(list(self._pairs))
        return [results[key] for key in self._pairs if key in results]

    def evaluate(self, pair: CompliancePair) -> ComplianceResult:
        """Evaluate one pair without attempting a fix."""
        result, _ = self._evaluate(pair.key, allow_fix=False)
        return result

    def _on_flush(self, changes: List[TokenChange]) -> None:
        if self._processing:
            # Writes made while fixing; picked up by the follow-up pass
            self._queued.extend(changes)
            return

        dirty = self._dirty_pairs(changes)
        if not dirty:
            return

        results = self._process(dirty)
        report = [results[key] for key in self._pairs if key in results]
        for listener in list(self._report_listeners):
            listener(report)

    def _dirty_pairs(self, changes: List[TokenChange]) -> List[PairKey]:
        changed = {change.path for change in changes}
        dirty = []
        for key in self._pairs:
            deps = self._dependencies.get(key)
            if deps is None or deps & changed or set(key) & changed:
                dirty.append(key)
        return dirty

    # Processing

    def _process(self, keys: List[PairKey]) -> Dict[PairKey, ComplianceResult]:
        self._processing = True
        fixed: Set[PairKey] = set()
        results: Dict[PairKey, ComplianceResult] = {}

        # Follow-up passes need the fix writes even when the watcher is detached
        listening = None
        if self._unsubscribe is None:
            listening = self.store.on_flush(self._on_flush)

        try:
            pending = keys
            passes = 0
            while pending and passes < self.max_passes:
                passes += 1
                plans = []

                for key in pending:
                    if key not in self._pairs:
                        continue
                    result, plan = self._evaluate(key, allow_fix=key not in fixed)
                    if plan is not None:
                        plans.append(plan)
                        continue
                    if key in fixed and result.status == ComplianceStatus.VIOLATION:
                        result = self._blocked(result)
                    results[key] = self._merge_follow_up(results.get(key), result)
                    self._record(key, results[key])

                with self.store.batch():
                    for plan in plans:
                        result = self._apply(plan)
                        if result.applied_fix is not None:
                            fixed.add(plan.key)
                        results[plan.key] = result
                        self._record(plan.key, result)

                queued, self._queued = self._queued, []
                pending = self._dirty_pairs(queued) if queued else []

            if pending:
                logger.warning(
                    f"Compliance processing stopped after {passes} passes with "
                    f"{len(pending)} pairs still pending"
                )
        finally:
            if listening is not None:
                listening()
            self._processing = False
            self._queued = []

        return results

    def _blocked(self, result: ComplianceResult) -> ComplianceResult:
        """A pair already fixed this tick that violates again is not fixed twice."""
        pair = result.pair
        logger.warning(
            f"Contrast pair {path_to_str(pair.foreground)} on {path_to_str(pair.background)} "
            f"violates again after a fix this tick ({result.ratio:.2f}:1, min {pair.minimum_ratio:g}:1)"
        )
        return result.model_copy(update={
            'status': ComplianceStatus.UNSATISFIABLE,
            'message': (f"Conflicting pairs; {result.ratio:.2f}:1 is below "
                        f"{pair.minimum_ratio:g}:1 after this pair was already fixed"),
        })

    def _merge_follow_up(self, previous: Optional[ComplianceResult],
                         result: ComplianceResult) -> ComplianceResult:
        """Keep fix details when a fixed pair is re-evaluated in the same tick."""
        if previous is None or previous.applied_fix is None:
            return result
        if (result.foreground_hex == previous.foreground_hex
                and result.background_hex == previous.background_hex):
            return previous
        if result.status in (ComplianceStatus.PASS, ComplianceStatus.UNSATISFIABLE):
            return result.model_copy(update={'applied_fix': previous.applied_fix})
        return result

    def _record(self, key: PairKey, result: ComplianceResult) -> None:
        self._results[key] = result
        state = {
            ComplianceStatus.PASS: PairState.PASS,
            ComplianceStatus.VIOLATION: PairState.VIOLATION,
            ComplianceStatus.UNSATISFIABLE: PairState.UNSATISFIABLE,
            ComplianceStatus.UNRESOLVED: PairState.IDLE,
        }[result.status]
        self._states[key] = state

        if result.status == ComplianceStatus.PASS and result.foreground_hex and result.background_hex:
            self._last_compliant[key] = (result.foreground_hex, result.background_hex, result.ratio)

    def _evaluate(self, key: PairKey, allow_fix: bool) -> Tuple[ComplianceResult, Optional[_FixPlan]]:
        pair = self._pairs[key]
        self._states[key] = PairState.SCANNING

        fg = self.store.resolve(pair.foreground)
        bg = self.store.resolve(pair.background)
        self._dependencies[key] = fg.dependencies | bg.dependencies

        for side, resolution in (("foreground", fg), ("background", bg)):
            if not resolution.ok:
                return self._unresolved(pair, f"{side}: {resolution.message}"), None
            if not is_hex_color(resolution.value):
                return self._unresolved(
                    pair, f"{side} {path_to_str(resolution.path)} is not a hex color: {resolution.value!r}"
                ), None

        fg_hex = normalize_hex(fg.value)
        bg_hex = normalize_hex(bg.value)
        ratio = self._ratio(fg_hex, bg_hex, pair.opacity)

        if ratio >= pair.minimum_ratio:
            return ComplianceResult(
                pair=pair, ratio=ratio, status=ComplianceStatus.PASS,
                foreground_hex=fg_hex, background_hex=bg_hex,
            ), None

        violation = ComplianceResult(
            pair=pair, ratio=ratio, status=ComplianceStatus.VIOLATION,
            foreground_hex=fg_hex, background_hex=bg_hex,
            message=f"Contrast {ratio:.2f}:1 is below {pair.minimum_ratio:g}:1",
        )
        if not (self.auto_fix and allow_fix):
            return violation, None

        self._states[key] = PairState.FIXING
        plan = self._plan_fix(key, pair, fg, fg_hex, bg_hex, ratio)
        if plan is None:
            logger.warning(
                f"Contrast pair {path_to_str(pair.foreground)} on {path_to_str(pair.background)} "
                f"is unsatisfiable at {ratio:.2f}:1 (min {pair.minimum_ratio:g}:1)"
            )
            return violation.model_copy(update={
                'status': ComplianceStatus.UNSATISFIABLE,
                'message': f"No shade reaches {pair.minimum_ratio:g}:1; best is {ratio:.2f}:1",
            }), None
        return violation, plan

    def _unresolved(self, pair: CompliancePair, message: str) -> ComplianceResult:
        return ComplianceResult(pair=pair, status=ComplianceStatus.UNRESOLVED, message=message)

    @staticmethod
    def _ratio(fg_hex: str, bg_hex: str, opacity: float) -> float:
        if opacity < 1.0:
            fg_hex = blend_over(fg_hex, bg_hex, opacity)
        return calculate_contrast_ratio(fg_hex, bg_hex)

    def _plan_fix(self, key: PairKey, pair: CompliancePair, fg, fg_hex: str,
                  bg_hex: str, ratio: float) -> Optional[_FixPlan]:
        """Find the first shade meeting the minimum, or the best one tried.

        Returns None when nothing beats the current foreground.
        """
        candidates = self._scale_candidates(fg, fg_hex, bg_hex, pair.opacity)
        if candidates is None and self.on_tone_fallback:
            preferred = pick_on_tone(bg_hex, pair.minimum_ratio)
            other = WHITE if preferred == BLACK else BLACK
            candidates = [_Candidate(value=hex_value, hex=hex_value, ratio=0.0)
                          for hex_value in (preferred, other)]
        if not candidates:
            return None

        best = _Candidate(value=str(fg.value), hex=fg_hex, ratio=ratio)
        chosen = None
        for candidate in candidates:
            candidate.ratio = self._ratio(candidate.hex, bg_hex, pair.opacity)
            if candidate.ratio >= pair.minimum_ratio:
                chosen = candidate
                break
            if candidate.ratio > best.ratio:
                best = candidate

        satisfied = chosen is not None
        if not satisfied:
            if best.hex == fg_hex:
                return None
            chosen = best

        revisions = {path: self.store.revision(path)
                     for path in self._dependencies.get(key, frozenset())}
        return _FixPlan(
            key=key,
            pair=pair,
            target=pair.foreground,
            candidate=chosen,
            satisfied=satisfied,
            foreground_hex=fg_hex,
            background_hex=bg_hex,
            revisions=revisions,
        )

    def _scale_candidates(self, fg, fg_hex: str, bg_hex: str,
                          opacity: float) -> Optional[List[_Candidate]]:
        """Shades of the foreground's scale in walk order.

        Walks toward higher contrast first (darker when the foreground is
        darker than the background), then the opposite direction. Returns
        None when the foreground does not resolve through a scale.
        """
        located = None
        for path in fg.chain:
            located = self.store.scale_step_for(path)
            if located is not None:
                break
        if located is None:
            return None

        scale, step = located
        start = STEP_INDEX[step]
        shown = blend_over(fg_hex, bg_hex, opacity) if opacity < 1.0 else fg_hex
        fg_lum = hex_luminance(shown)
        bg_lum = hex_luminance(bg_hex)
        if fg_lum == bg_lum:
            darker = bg_lum >= 0.5
        else:
            darker = fg_lum < bg_lum

        forward = list(range(start + 1, len(STEP_LABELS)))
        backward = list(range(start - 1, -1, -1))
        order = forward + backward if darker else backward + forward

        # A pair whose foreground is the scale step itself gets the literal shade
        as_reference = fg.path != scale.step_path(step)

        candidates = []
        for index in order:
            label = STEP_LABELS[index]
            resolution = self.store.resolve(scale.step_path(label))
            if not resolution.ok:
                continue
            try:
                step_hex = normalize_hex(resolution.value)
            except InvalidColorFormat:
                continue
            value = "{colors." + scale.alias + "." + label + "}" if as_reference else step_hex
            candidates.append(_Candidate(value=value, hex=step_hex, ratio=0.0))
        return candidates

    def _apply(self, plan: _FixPlan) -> ComplianceResult:
        pair = plan.pair
        stale = [path for path, revision in plan.revisions.items()
                 if self.store.revision(path) != revision]
        if stale:
            logger.info(
                f"Discarding superseded fix for {path_to_str(pair.foreground)}: "
                f"{', '.join(path_to_str(path) for path in stale)} changed"
            )
            return ComplianceResult(
                pair=pair,
                ratio=self._ratio(plan.foreground_hex, plan.background_hex, pair.opacity),
                status=ComplianceStatus.VIOLATION,
                foreground_hex=plan.foreground_hex,
                background_hex=plan.background_hex,
                superseded=True,
                message="Fix discarded after a newer edit",
            )

        candidate = plan.candidate
        self.store.set_token(plan.target, candidate.value, TokenKind.COLOR)
        fix = AppliedFix(path=plan.target, value=candidate.value, hex=candidate.hex)

        if plan.satisfied:
            logger.debug(
                f"Fixed {path_to_str(pair.foreground)} -> {candidate.value} "
                f"({candidate.ratio:.2f}:1)"
            )
            return ComplianceResult(
                pair=pair, ratio=candidate.ratio, status=ComplianceStatus.PASS,
                applied_fix=fix, foreground_hex=candidate.hex, background_hex=plan.background_hex,
            )

        logger.warning(
            f"Contrast pair {path_to_str(pair.foreground)} on {path_to_str(pair.background)} "
            f"is unsatisfiable; best shade {candidate.hex} reaches {candidate.ratio:.2f}:1 "
            f"(min {pair.minimum_ratio:g}:1)"
        )
        return ComplianceResult(
            pair=pair, ratio=candidate.ratio, status=ComplianceStatus.UNSATISFIABLE,
            applied_fix=fix, foreground_hex=candidate.hex, background_hex=plan.background_hex,
            message=f"No shade reaches {pair.minimum_ratio:g}:1",
        )

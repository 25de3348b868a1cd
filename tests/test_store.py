"""Tests for the token store and reference resolver."""

import pytest

from tokensmith.token_engine import (
    TokenStore,
    TokenKind,
    ErrorKind,
    InvalidTokenPath,
    UnknownScaleFamily,
    parse_path,
)
from tokensmith.token_engine.resolver import parse_reference, find_references, is_reference


class TestPathParsing:
    """Test token path parsing."""

    def test_dotted_and_slashed_paths(self):
        """Strings split on '.' and '/'."""
        assert parse_path("colors.blue.500") == ("colors", "blue", "500")
        assert parse_path("colors/blue/500") == ("colors", "blue", "500")

    def test_sequence_paths(self):
        assert parse_path(["size", "4x"]) == ("size", "4x")

    def test_invalid_paths(self):
        """Empty paths and empty segments are rejected."""
        with pytest.raises(InvalidTokenPath):
            parse_path("")
        with pytest.raises(InvalidTokenPath):
            parse_path(("size", ""))
        with pytest.raises(InvalidTokenPath):
            parse_path(42)

    def test_reference_parsing(self):
        """Only a value that is exactly one reference is a chained reference."""
        assert parse_reference("{size.4x}").target == ("size", "4x")
        assert parse_reference("{size.4x} {size.2x}") is None
        assert parse_reference("16px") is None
        assert [ref.target for ref in find_references("{a.b} and {c/d}")] == [("a", "b"), ("c", "d")]
        assert is_reference("calc({size.4x} * 2)")
        assert not is_reference(16)


class TestResolution:
    """Test reference resolution."""

    def setup_method(self):
        self.store = TokenStore()

    def test_literal(self):
        """A literal resolves to itself with its inferred kind."""
        self.store.set_token("size.4x", "16px")
        result = self.store.resolve("size.4x")

        assert result.ok
        assert result.value == "16px"
        assert result.kind == TokenKind.DIMENSION
        assert result.chain == (("size", "4x"),)

    def test_chained_reference(self):
        """A chain of references resolves to the terminal literal."""
        self.store.set_token("palette.ink", "#111111")
        self.store.set_token("text.base", "{palette.ink}")
        self.store.set_token("text.primary", "{text.base}")

        result = self.store.resolve("text.primary")
        assert result.ok
        assert result.value == "#111111"
        assert result.kind == TokenKind.COLOR
        assert result.chain == (("text", "primary"), ("text", "base"), ("palette", "ink"))

    def test_embedded_references(self):
        """References embedded in a string are substituted in place."""
        self.store.set_token("size.2x", "8px")
        self.store.set_token("size.4x", "16px")
        self.store.set_token("spacing.inset", "{size.4x} {size.2x}")

        result = self.store.resolve("spacing.inset")
        assert result.ok
        assert result.value == "16px 8px"

    def test_unresolved_reference(self):
        """A missing target is reported as a value, not raised."""
        self.store.set_token("text.primary", "{palette.missing}")

        result = self.store.resolve("text.primary")
        assert not result.ok
        assert result.error == ErrorKind.UNRESOLVED_REFERENCE
        assert result.path == ("text", "primary")
        assert result.chain[-1] == ("palette", "missing")

    def test_undefined_path(self):
        result = self.store.resolve("nothing.here")
        assert not result.ok
        assert result.error == ErrorKind.UNRESOLVED_REFERENCE

    def test_cycle_detected(self):
        """Cycles terminate with CYCLE_DETECTED instead of recursing forever."""
        self.store.set_token("a", "{b}")
        self.store.set_token("b", "{c}")
        self.store.set_token("c", "{a}")

        result = self.store.resolve("a")
        assert not result.ok
        assert result.error == ErrorKind.CYCLE_DETECTED
        assert result.chain == (("a",), ("b",), ("c",), ("a",))

    def test_mutual_references(self):
        """Both ends of a two-token cycle report the cycle."""
        self.store.set_token("a", "{b}")
        self.store.set_token("b", "{a}")

        assert self.store.resolve("a").error == ErrorKind.CYCLE_DETECTED
        assert self.store.resolve("b").error == ErrorKind.CYCLE_DETECTED

    def test_literal_round_trip(self):
        for value in ("#ff0000", "16px", 1.5, 400, "Inter, sans-serif"):
            self.store.set_token("probe", value)
            assert self.store.resolve("probe").value == value

    def test_self_reference(self):
        self.store.set_token("a", "{a}")
        assert self.store.resolve("a").error == ErrorKind.CYCLE_DETECTED

    def test_cycle_inside_embedded_reference(self):
        self.store.set_token("a", "1px {b}")
        self.store.set_token("b", "{a}")
        assert self.store.resolve("a").error == ErrorKind.CYCLE_DETECTED

    def test_blank_braces_are_text(self):
        """Empty braces next to a real reference resolve instead of raising."""
        self.store.set_token("size.2x", "8px")
        self.store.set_token("label", "{ } {size.2x}")

        result = self.store.resolve("label")
        assert result.ok
        assert result.value == "{ } 8px"

    def test_diamond_is_not_a_cycle(self):
        """Two paths to the same token do not trip cycle detection."""
        self.store.set_token("base", "4px")
        self.store.set_token("left", "{base}")
        self.store.set_token("right", "{base}")
        self.store.set_token("both", "{left} {right}")

        result = self.store.resolve("both")
        assert result.ok
        assert result.value == "4px 4px"


class TestCacheInvalidation:
    """Test memoisation and dependency-tracked invalidation."""

    def setup_method(self):
        self.store = TokenStore()
        self.store.set_token("palette.ink", "#111111")
        self.store.set_token("text.primary", "{palette.ink}")
        self.store.set_token("size.4x", "16px")

    def test_results_are_cached(self):
        self.store.resolve("text.primary")
        assert self.store.resolver.is_cached(("text", "primary"))

    def test_edit_invalidates_dependents_only(self):
        """Writing a token drops only resolutions whose chain touched it."""
        self.store.resolve("text.primary")
        self.store.resolve("size.4x")

        self.store.set_token("palette.ink", "#222222")

        assert not self.store.resolver.is_cached(("text", "primary"))
        assert self.store.resolver.is_cached(("size", "4x"))
        assert self.store.resolve("text.primary").value == "#222222"

    def test_defining_missing_target_invalidates_error(self):
        """A cached unresolved reference is recomputed once its target exists."""
        self.store.set_token("text.muted", "{palette.gray}")
        assert not self.store.resolve("text.muted").ok

        self.store.set_token("palette.gray", "#777777")
        result = self.store.resolve("text.muted")
        assert result.ok
        assert result.value == "#777777"


class TestOverrides:
    """Test the override layer."""

    def setup_method(self):
        self.store = TokenStore()
        self.store.set_token("palette.ink", "#111111")
        self.store.set_token("text.primary", "{palette.ink}")

    def test_override_shadows_base(self):
        self.store.set_override("palette.ink", "#333333")
        assert self.store.resolve("text.primary").value == "#333333"
        assert self.store.get_token("palette.ink").raw == "#111111"

    def test_clear_override_restores_base(self):
        self.store.set_override("palette.ink", "#333333")
        assert self.store.clear_override("palette.ink")
        assert self.store.resolve("text.primary").value == "#111111"
        assert not self.store.clear_override("palette.ink")

    def test_edit_clears_override(self):
        """A new base value replaces any override at the same path."""
        self.store.set_override("palette.ink", "#333333")
        self.store.set_token("palette.ink", "#444444")

        assert self.store.get_override("palette.ink") is None
        assert self.store.resolve("text.primary").value == "#444444"

    def test_override_must_be_literal(self):
        with pytest.raises(ValueError):
            self.store.set_override("palette.ink", "{palette.other}")


class TestChangeNotification:
    """Test change subscriptions, revisions and batching."""

    def setup_method(self):
        self.store = TokenStore()

    def test_path_subscription(self):
        changes = []
        unsubscribe = self.store.on_change("size.4x", changes.append)

        self.store.set_token("size.4x", "16px")
        self.store.set_token("size.2x", "8px")
        unsubscribe()
        self.store.set_token("size.4x", "20px")

        assert len(changes) == 1
        assert changes[0].path == ("size", "4x")
        assert changes[0].old_value is None
        assert changes[0].new_value == "16px"

    def test_revisions_increase(self):
        assert self.store.revision("size.4x") == 0
        self.store.set_token("size.4x", "16px")
        self.store.set_override("size.4x", "18px")
        assert self.store.revision("size.4x") == 2

    def test_batch_flushes_once(self):
        """Flush listeners see every change of a batch in one call."""
        ticks = []
        seen = []
        self.store.on_flush(ticks.append)
        self.store.subscribe(seen.append)

        with self.store.batch():
            self.store.set_token("size.2x", "8px")
            with self.store.batch():
                self.store.set_token("size.4x", "16px")
            assert ticks == []

        assert len(seen) == 2
        assert len(ticks) == 1
        assert [change.path for change in ticks[0]] == [("size", "2x"), ("size", "4x")]

    def test_write_outside_batch_is_own_tick(self):
        ticks = []
        self.store.on_flush(ticks.append)

        self.store.set_token("size.2x", "8px")
        self.store.set_token("size.4x", "16px")
        assert len(ticks) == 2

    def test_delete_token(self):
        self.store.set_token("size.4x", "16px")
        assert self.store.delete_token("size.4x")
        assert not self.store.has_token("size.4x")
        assert not self.store.delete_token("size.4x")


class TestScales:
    """Test scale registration and alias canonicalisation."""

    def setup_method(self):
        self.store = TokenStore()

    def test_alias_and_key_paths_share_tokens(self, blue_steps):
        scale = self.store.register_scale("blue", blue_steps)

        assert scale.key == "scale-01"
        assert self.store.canonical_path("colors.blue.500") == ("colors", "scale-01", "500")
        assert self.store.canonical_path("colors/scale-01/500") == ("colors", "scale-01", "500")
        assert self.store.canonical_path("color.blue.50") == ("colors", "scale-01", "050")
        assert self.store.resolve("colors.blue.500").value == blue_steps["500"]

    def test_reference_through_alias(self, blue_steps):
        self.store.register_scale("blue", blue_steps)
        self.store.set_token("text.link", "{colors.blue.700}")
        assert self.store.resolve("text.link").value == blue_steps["700"]

    def test_registering_scale_resolves_pending_alias_reference(self, blue_steps):
        """References written before the alias existed resolve once it does."""
        self.store.set_token("text.link", "{colors.blue.700}")
        assert not self.store.resolve("text.link").ok

        self.store.register_scale("blue", blue_steps)
        assert self.store.resolve("text.link").value == blue_steps["700"]

    def test_incomplete_scale_rejected(self, blue_steps):
        steps = dict(blue_steps)
        del steps["1000"]
        with pytest.raises(ValueError):
            self.store.register_scale("blue", steps)
        assert self.store.scales() == []

    def test_duplicate_alias_rejected(self, blue_steps):
        self.store.register_scale("blue", blue_steps)
        with pytest.raises(ValueError):
            self.store.register_scale("blue", blue_steps)

    def test_key_shaped_alias_rejected(self, blue_steps):
        """An alias like scale-02 would shadow the scale that later gets that key."""
        with pytest.raises(ValueError):
            self.store.register_scale("scale-02", blue_steps)
        assert self.store.scales() == []

        self.store.register_scale("scale-01", blue_steps, key="scale-01")
        assert self.store.find_scale("scale-01").alias == "scale-01"

    def test_explicit_key_in_use_rejected(self, blue_steps):
        self.store.register_scale("scale-01", blue_steps, key="scale-01")
        with pytest.raises(ValueError):
            self.store.register_scale("ocean", blue_steps, key="scale-01")

    def test_reference_step_values(self, blue_steps):
        """A scale step may point at another token."""
        self.store.set_token("brand.primary", "#1d4ed8")
        steps = dict(blue_steps, **{"500": "{brand.primary}"})

        self.store.register_scale("blue", steps)

        assert self.store.get_token("colors.blue.500").raw == "{brand.primary}"
        assert self.store.scale_values("blue")["500"] == "#1d4ed8"

    def test_scale_registration_is_one_tick(self, blue_steps):
        ticks = []
        self.store.on_flush(ticks.append)
        self.store.register_scale("blue", blue_steps)
        assert len(ticks) == 1
        assert len(ticks[0]) == 12

    def test_delete_scale(self, blue_steps):
        """Deleting a scale removes its steps and alias together."""
        self.store.register_scale("blue", blue_steps)
        self.store.set_token("text.link", "{colors.blue.700}")

        self.store.delete_scale("blue")

        assert self.store.find_scale("blue") is None
        assert not self.store.has_token(("colors", "scale-01", "700"))
        assert self.store.resolve("text.link").error == ErrorKind.UNRESOLVED_REFERENCE

    def test_single_step_cannot_be_deleted(self, blue_steps):
        self.store.register_scale("blue", blue_steps)
        with pytest.raises(ValueError):
            self.store.delete_token("colors.blue.500")

    def test_unknown_scale(self):
        with pytest.raises(UnknownScaleFamily):
            self.store.get_scale("teal")

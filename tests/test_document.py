"""Tests for token document import/export and persistence."""

import pytest

from tokensmith.token_engine import (
    TokenEngine,
    TokenStore,
    TokenKind,
    DocumentError,
    MemoryPersistence,
    load_document,
    dump_document,
)


class TestLoadDocument:
    """Test importing token documents."""

    def setup_method(self):
        self.store = TokenStore()

    def test_load_scales_and_tokens(self, token_document, blue_steps):
        summary = load_document(self.store, token_document)

        assert summary["scales"] == 1
        assert summary["tokens"] == 5
        assert self.store.find_scale("blue").key == "scale-01"
        assert self.store.resolve("text.primary").value == blue_steps["500"]
        assert self.store.resolve("spacing.inset").value == "16px 8px"
        assert self.store.get_token("size.4x").kind == TokenKind.DIMENSION

    def test_import_is_one_tick(self, token_document):
        ticks = []
        self.store.on_flush(ticks.append)
        load_document(self.store, token_document)
        assert len(ticks) == 1

    def test_unwrapped_document(self):
        load_document(self.store, {"size": {"4x": "16px"}, "opacity": {"muted": 0.6}})
        assert self.store.resolve("size.4x").value == "16px"
        assert self.store.resolve("opacity.muted").value == 0.6
        assert self.store.get_token("opacity.muted").kind == TokenKind.NUMBER

    def test_legacy_color_family(self, blue_steps):
        """color.<family> groups become scales aliased by family name."""
        document = {"color": {"blue": {step: {"$value": value} for step, value in blue_steps.items()}}}

        load_document(self.store, document)

        scale = self.store.find_scale("blue")
        assert scale.key == "scale-01"
        assert self.store.resolve("color.blue.500").value == blue_steps["500"]
        assert self.store.resolve("colors.scale-01.500").value == blue_steps["500"]

    def test_integer_step_keys(self, blue_steps):
        document = {"colors": {"scale-03": {"alias": "blue", **{int(step): value for step, value in blue_steps.items()}}}}
        load_document(self.store, document)
        assert self.store.find_scale("blue").key == "scale-03"

    def test_overrides(self, token_document):
        token_document["overrides"] = {"surface.base": "#f0f0f0"}
        load_document(self.store, token_document)
        assert self.store.resolve("surface.base").value == "#f0f0f0"
        assert self.store.get_token("surface.base").raw == "#ffffff"

    def test_compliance_pairs_registered(self, token_document):
        engine = TokenEngine(auto_scan=False)
        summary = engine.load_document(token_document)

        assert summary["pairs"] == 1
        pair = engine.watcher.pairs()[0]
        assert pair.foreground == ("text", "primary")
        assert pair.minimum_ratio == 4.5

    def test_incomplete_scale_rejected(self, blue_steps):
        """Scales are all-or-nothing; nothing is written on failure."""
        steps = {step: {"$value": value} for step, value in blue_steps.items() if step != "1000"}
        document = {"colors": {"scale-01": {"alias": "blue", **steps}}, "size": {"4x": "16px"}}

        with pytest.raises(DocumentError):
            load_document(self.store, document)
        assert self.store.paths() == []

    def test_invalid_scale_color_rejected(self, blue_steps):
        steps = {step: {"$value": value} for step, value in blue_steps.items()}
        steps["500"] = {"$value": "blue"}
        with pytest.raises(DocumentError):
            load_document(self.store, {"colors": {"scale-01": {"alias": "blue", **steps}}})
        assert self.store.scales() == []

    def test_duplicate_scale_rejected(self, token_document):
        load_document(self.store, token_document)
        with pytest.raises(DocumentError):
            load_document(self.store, token_document)

    def test_invalid_pair_leaves_store_untouched(self):
        """Pairs are validated before any token is written."""
        document = {
            "tokens": {"a": {"$value": "#000000"}, "b": {"$value": "#ffffff"}},
            "compliance": [{"foreground": "a", "background": "b", "minimum_ratio": 30}],
        }
        watcher = TokenEngine(auto_scan=False).watcher

        with pytest.raises(DocumentError):
            load_document(self.store, document, watcher=watcher)
        assert self.store.paths() == []

    def test_key_shaped_alias_rejected(self, blue_steps):
        steps = {step: {"$value": value} for step, value in blue_steps.items()}
        document = {"colors": {"brand": {"alias": "scale-02", **steps}}, "size": {"4x": "16px"}}

        with pytest.raises(DocumentError):
            load_document(self.store, document)
        assert self.store.paths() == []

    @pytest.mark.parametrize("document", [
        {"size": {"4x": {"$type": "dimension"}}},
        {"size": {"4x": {"$value": "16px", "$type": "length"}}},
        {"size": {"4x": [16, "px"]}},
        {"overrides": {"size.4x": "{size.2x}"}},
        {"compliance": [{"foreground": "text.primary"}]},
        {"compliance": "text.primary"},
    ])
    def test_malformed_documents(self, document):
        with pytest.raises(DocumentError):
            load_document(self.store, document, watcher=TokenEngine(auto_scan=False).watcher)


class TestDumpDocument:
    """Test exporting token documents."""

    def test_round_trip(self, token_document):
        """A dumped document loads into an equivalent store."""
        engine = TokenEngine(auto_scan=False)
        engine.load_document(token_document)
        engine.set_override("surface.base", "#fafafa")

        dumped = engine.dump_document()
        copy = TokenEngine(auto_scan=False)
        copy.load_document(dumped)

        assert dumped["tokens"]["colors"]["scale-01"]["alias"] == "blue"
        assert dumped["overrides"] == {"surface.base": "#fafafa"}
        assert copy.export_variables() == engine.export_variables()
        assert len(copy.watcher.pairs()) == 1

    def test_round_trip_with_reference_step(self, token_document):
        """Scale steps that point at other tokens survive a dump and reload."""
        engine = TokenEngine(auto_scan=False)
        engine.load_document(token_document)
        engine.set_token("brand.primary", "#1d4ed8")
        engine.set_token("colors.blue.500", "{brand.primary}")

        dumped = engine.dump_document()
        copy = TokenEngine(auto_scan=False)
        copy.load_document(dumped)

        assert dumped["tokens"]["colors"]["scale-01"]["500"] == {"$value": "{brand.primary}"}
        assert copy.store.get_token("colors.blue.500").raw == "{brand.primary}"
        assert copy.resolve("text.primary").value == "#1d4ed8"

    def test_dump_without_scales(self):
        store = TokenStore()
        store.set_token("size.4x", "16px")
        assert dump_document(store) == {
            "tokens": {"size": {"4x": {"$value": "16px", "$type": "dimension"}}},
        }


class TestPersistence:
    """Test load/save through a persistence port."""

    def test_save_and_load(self, token_document):
        port = MemoryPersistence()
        engine = TokenEngine(auto_scan=False, persistence=port)
        engine.load_document(token_document)
        engine.save()

        restored = TokenEngine(auto_scan=False, persistence=port)
        assert restored.load()
        assert restored.resolve("text.primary").value == engine.resolve("text.primary").value

    def test_load_empty_port(self):
        engine = TokenEngine(auto_scan=False, persistence=MemoryPersistence())
        assert not engine.load()

    def test_memory_persistence_copies(self):
        document = {"size": {"4x": "16px"}}
        port = MemoryPersistence(document)
        document["size"]["4x"] = "20px"
        assert port.load() == {"size": {"4x": "16px"}}

    def test_missing_port(self):
        with pytest.raises(RuntimeError):
            TokenEngine(auto_scan=False).save()

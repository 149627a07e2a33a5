"""Tests for the type registry and type table loading."""

import pytest

from pgtxn.core.exceptions import ConfigError
from pgtxn.core.models import DEFAULT_RULE, DecodeRule
from pgtxn.core.registry import FLOAT_OIDS, TypeRegistry, default_registry


@pytest.mark.unit
class TestDefaultRegistry:
    def test_is_cached(self):
        assert default_registry() is default_registry()

    def test_known_rules(self):
        registry = default_registry()
        assert registry.rule(16).kind == "boolean"
        assert registry.rule(23).kind == "numeric"
        assert registry.rule(1007) == DecodeRule(kind="array", element=23)
        assert registry.rule(1020).delimiter == ";"

    def test_float_oids_are_numeric(self):
        registry = default_registry()
        for oid in FLOAT_OIDS:
            assert registry.rule(oid).kind == "numeric"

    def test_unknown_oid_default_rule(self):
        rule = default_registry().rule(123456)
        assert rule == DEFAULT_RULE
        assert rule.kind == "scalar"
        assert rule.delimiter == ","
        assert rule.element == 0

    def test_every_array_element_is_not_an_array(self):
        registry = default_registry()
        for _, rule in registry.items():
            if rule.kind == "array":
                assert registry.rule(rule.element).kind != "array"


@pytest.mark.unit
class TestRegistryMapping:
    def test_len_and_contains(self):
        registry = TypeRegistry({16: DecodeRule(kind="boolean")})
        assert len(registry) == 1
        assert 16 in registry
        assert 17 not in registry

    def test_iterates_sorted(self):
        registry = TypeRegistry({
            700: DecodeRule(kind="numeric"),
            16: DecodeRule(kind="boolean"),
        })
        assert list(registry) == [16, 700]

    def test_source_mapping_is_copied(self):
        rules = {16: DecodeRule(kind="boolean")}
        registry = TypeRegistry(rules)
        rules[23] = DecodeRule(kind="numeric")
        assert 23 not in registry

    def test_merged_overrides(self):
        base = TypeRegistry({16: DecodeRule(kind="boolean"), 23: DecodeRule(kind="numeric")})
        override = TypeRegistry({23: DecodeRule(kind="scalar")})
        merged = base.merged(override)
        assert merged.rule(23).kind == "scalar"
        assert merged.rule(16).kind == "boolean"
        assert base.rule(23).kind == "numeric"


@pytest.mark.unit
class TestDecodeRule:
    def test_rule_is_frozen(self):
        rule = DecodeRule(kind="boolean")
        with pytest.raises(ValueError):
            rule.kind = "numeric"

    @pytest.mark.parametrize("delimiter", ["", ";;", "{", "}", '"', "\\"])
    def test_invalid_delimiter(self, delimiter):
        with pytest.raises(ValueError, match="Invalid delimiter"):
            DecodeRule(kind="array", delimiter=delimiter)


@pytest.mark.unit
class TestFromToml:
    def test_load(self, temp_dir):
        path = temp_dir / "types.toml"
        path.write_text(
            'version = "custom"\n'
            "[types]\n"
            '16 = { kind = "boolean" }\n'
            '6000 = { kind = "array", element = 16, delimiter = "|" }\n'
        )
        registry = TypeRegistry.from_toml(path)
        assert registry.rule(16).kind == "boolean"
        assert registry.rule(6000) == DecodeRule(kind="array", element=16, delimiter="|")
        assert registry.cast(6000, "{t|f}") == [True, False]

    def test_missing_file(self, temp_dir):
        with pytest.raises(ConfigError, match="Type table not found"):
            TypeRegistry.from_toml(temp_dir / "missing.toml")

    def test_malformed_toml(self, temp_dir):
        path = temp_dir / "bad.toml"
        path.write_text("[types\n")
        with pytest.raises(ConfigError, match="Malformed TOML"):
            TypeRegistry.from_toml(path)

    def test_invalid_kind(self, temp_dir):
        path = temp_dir / "bad.toml"
        path.write_text('[types]\n16 = { kind = "bogus" }\n')
        with pytest.raises(ConfigError, match="Invalid type table"):
            TypeRegistry.from_toml(path)

    def test_invalid_oid_key(self, temp_dir):
        path = temp_dir / "bad.toml"
        path.write_text('[types]\nabc = { kind = "boolean" }\n')
        with pytest.raises(ConfigError, match="Invalid type table"):
            TypeRegistry.from_toml(path)


@pytest.mark.unit
class TestFromCatalog:
    ROWS = [
        (16, "bool", "B", ",", 0),
        (23, "int4", "N", ",", 0),
        (700, "float4", "N", ",", 0),
        (2205, "regclass", "N", ",", 0),
        (25, "text", "S", ",", 0),
        (1007, "_int4", "A", ",", 23),
        (1020, "_box", "A", ";", 603),
        (22, "int2vector", "A", ",", 21),
    ]

    def test_categories(self):
        registry = TypeRegistry.from_catalog(self.ROWS)
        assert registry.rule(16).kind == "boolean"
        assert registry.rule(23).kind == "numeric"
        assert registry.rule(700).kind == "numeric"
        assert registry.rule(25) == DEFAULT_RULE

    def test_arrays(self):
        registry = TypeRegistry.from_catalog(self.ROWS)
        assert registry.rule(1007) == DecodeRule(kind="array", element=23)
        assert registry.rule(1020) == DecodeRule(kind="array", element=603, delimiter=";")

    def test_reg_types_stay_scalar(self):
        registry = TypeRegistry.from_catalog(self.ROWS)
        assert 2205 not in registry
        assert registry.cast(2205, "pg_class") == "pg_class"

    def test_vector_types_stay_scalar(self):
        registry = TypeRegistry.from_catalog(self.ROWS)
        assert 22 not in registry
        assert registry.cast(22, "1 2") == "1 2"

    def test_matches_packaged_table(self):
        registry = TypeRegistry.from_catalog(self.ROWS)
        packaged = default_registry()
        for oid in (16, 23, 700, 1007, 1020):
            assert registry.rule(oid) == packaged.rule(oid)

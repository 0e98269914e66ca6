import pytest

from picoruby_binding_generator.models import ParameterDescriptor
from picoruby_binding_generator.naming import (
    DuplicateSignatureError,
    IdentifierCollisionError,
    IdentifierRegistry,
    NameResolver,
    is_valid_identifier,
    sanitize_parameters,
)

from conftest import method


def test_identifier_without_parameters_ends_with_void():
    m = method("wasPressed", "bool", is_const=True)
    assert NameResolver().identifier_for("Button", m) == "m5unified_button_waspressed_void"


def test_identifier_joins_parameter_type_tokens():
    m = method("drawPixel", "void", [("int", "x"), ("int", "y")])
    assert NameResolver().identifier_for("Display", m) == "m5unified_display_drawpixel_int_int"


def test_identifier_uses_prefix():
    m = method("update")
    assert NameResolver(prefix="mylib").identifier_for("M5Unified", m) == "mylib_m5unified_update_void"


def test_overloads_get_distinct_identifiers():
    registry = IdentifierRegistry()
    resolver = NameResolver()
    overloads = [
        method("dsp", "AtomDisplay", [("const M5AtomDisplay::config_t&", "cfg")]),
        method("dsp", "ModuleDisplay", [("const M5ModuleDisplay::config_t&", "cfg")]),
        method("dsp", "OLEDDisplay", [("const M5UnitOLED::config_t&", "cfg")]),
        method("dsp"),
    ]
    identifiers = [resolver.resolve("Display", m, registry).identifier for m in overloads]
    assert len(set(identifiers)) == len(overloads)
    assert len(registry) == len(overloads)
    assert all(i in registry for i in identifiers)


def test_identical_signature_twice_is_a_duplicate():
    registry = IdentifierRegistry()
    resolver = NameResolver()
    resolver.resolve("Button", method("isPressed", "bool", is_const=True), registry)
    with pytest.raises(DuplicateSignatureError):
        resolver.resolve("Button", method("isPressed", "bool"), registry)


def test_distinct_signatures_with_same_identifier_collide():
    registry = IdentifierRegistry()
    resolver = NameResolver()
    resolver.resolve("Foo", method("set", "void", [("int", "v")]), registry)
    with pytest.raises(IdentifierCollisionError):
        resolver.resolve("Foo", method("set", "void", [("const int&", "v")]), registry)


def test_registries_are_independent():
    resolver = NameResolver()
    m = method("update")
    resolver.resolve("M5Unified", m, IdentifierRegistry())
    # A fresh registry accepts the same signature again
    resolver.resolve("M5Unified", m, IdentifierRegistry())


def test_invalid_name_gets_type_hint():
    params = sanitize_parameters([ParameterDescriptor("const config_t&", "cfg.atom_display")])
    assert params[0].name == "cfg"
    assert params[0].type == "const config_t&"


def test_hint_already_used_falls_back_to_index():
    params = sanitize_parameters([
        ParameterDescriptor("const config_t&", "cfg.atom_display"),
        ParameterDescriptor("int", "cfg"),
    ])
    assert [p.name for p in params] == ["param_0", "cfg"]


def test_empty_names_use_positional_index():
    params = sanitize_parameters([ParameterDescriptor("int", ""), ParameterDescriptor("float", "a b")])
    assert [p.name for p in params] == ["param_0", "param_1"]


@pytest.mark.parametrize("name", ["v", "vm", "argc", "result"])
def test_glue_frame_names_are_replaced(name):
    params = sanitize_parameters([ParameterDescriptor("const int&", name)])
    assert params[0].name == "param_0"


def test_reserved_name_with_type_hint_uses_hint():
    params = sanitize_parameters([ParameterDescriptor("const rtc_time_t&", "result")])
    assert params[0].name == "time"


def test_positional_fallback_skips_names_in_use():
    params = sanitize_parameters([ParameterDescriptor("int", ""), ParameterDescriptor("int", "param_0")])
    assert [p.name for p in params] == ["param_0_2", "param_0"]

    params = sanitize_parameters([
        ParameterDescriptor("int", "x y"),
        ParameterDescriptor("int", "param_0"),
        ParameterDescriptor("int", "param_0_2"),
    ])
    assert [p.name for p in params] == ["param_0_3", "param_0", "param_0_2"]


def test_sanitization_is_deterministic_and_idempotent():
    raw = [ParameterDescriptor("const rtc_time_t&", "t->x"), ParameterDescriptor("int", "1st")]
    once = sanitize_parameters(raw)
    assert once == sanitize_parameters(raw)
    assert sanitize_parameters(once) == once
    for p in once:
        assert is_valid_identifier(p.name)
        assert "." not in p.name and " " not in p.name


def test_resolve_returns_sanitized_parameters():
    resolved = NameResolver().resolve(
        "Display",
        method("init", "bool", [("const config_t&", "cfg.atom_display")]),
        IdentifierRegistry(),
    )
    assert resolved.identifier == "m5unified_display_init_config_t"
    assert resolved.parameters[0].name == "cfg"

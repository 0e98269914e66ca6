import pytest

from picoruby_binding_generator.emitters.c_binding_emitter import (
    CBindingEmitter,
    Registration,
    ruby_class_name,
    ruby_method_name,
)
from picoruby_binding_generator.emitters.cpp_wrapper_emitter import CppWrapperEmitter
from picoruby_binding_generator.models import ParameterDescriptor
from picoruby_binding_generator.type_mapping import ValueCategory

from conftest import method

I = ValueCategory.INTEGER


# --------------------------
# Native wrapper
# --------------------------

def test_boolean_return_uses_ternary(ctx):
    m = method("wasPressed", "bool", is_const=True)
    out = CppWrapperEmitter(ctx).emit(
        m, "m5unified_button_waspressed_void", (), ValueCategory.BOOLEAN, class_name="Button"
    )
    assert out == (
        "int m5unified_button_waspressed_void(void) {\n"
        "  return M5.Button.wasPressed() ? 1 : 0;\n"
        "}\n"
    )


def test_void_return_is_a_bare_call(ctx):
    m = method("drawPixel", "void", [("int", "x"), ("int", "y")])
    out = CppWrapperEmitter(ctx).emit(
        m, "m5unified_display_drawpixel_int_int", m.parameters, ValueCategory.VOID, class_name="Display"
    )
    assert out.startswith("void m5unified_display_drawpixel_int_int(int x, int y) {\n")
    assert "  M5.Display.drawPixel(x, y);\n" in out
    assert "return" not in out


def test_other_returns_pass_native_type_through(ctx):
    m = method("getBatteryLevel", "int32_t")
    out = CppWrapperEmitter(ctx).emit(m, "id", (), I, class_name="Power_Class")
    assert out.startswith("int32_t id(void) {")
    assert "return M5.Power.getBatteryLevel();" in out


def test_call_paths(ctx):
    emitter = CppWrapperEmitter(ctx)
    assert emitter.call_path("M5Unified", method("update")) == "M5.update"
    assert emitter.call_path("IMU_Class", method("update")) == "M5.Imu.update"
    assert emitter.call_path("Button_Class", method("wasPressed")) == "M5.Button_Class.wasPressed"
    assert emitter.call_path("M5Unified", method("millis", "uint32_t", is_static=True)) == "M5Unified::millis"


def test_wrapper_uses_sanitized_names_with_declared_types(ctx):
    m = method("init", "void", [("const config_t&", "cfg.atom_display")])
    params = (ParameterDescriptor("const config_t&", "cfg"),)
    out = CppWrapperEmitter(ctx).emit(m, "id", params, ValueCategory.VOID, class_name="Display")
    assert "id(const config_t& cfg)" in out
    assert "M5.Display.init(cfg);" in out
    assert "cfg.atom_display" not in out


def test_scalar_references_cross_the_bridge_by_value(ctx):
    m = method("getBrightness", "const uint8_t&", [("const int&", "index")])
    out = CppWrapperEmitter(ctx).emit(m, "id", m.parameters, I, class_name="Display")
    assert out.startswith("uint8_t id(int index) {")
    assert "return M5.Display.getBrightness(index);" in out
    assert CBindingEmitter(ctx).declaration(m, "id", m.parameters) == "extern uint8_t id(int index);"


def test_scalar_pointers_stay_pointers_on_both_sides(ctx):
    m = method("getTemp", "bool", [("float*", "t")])
    categories = [ValueCategory.OBJECT_REF]
    wrapper = CppWrapperEmitter(ctx).emit(m, "id", m.parameters, ValueCategory.BOOLEAN, class_name="IMU_Class")
    assert wrapper.startswith("int id(float* t) {")
    assert "return M5.Imu.getTemp(t) ? 1 : 0;" in wrapper
    binding = CBindingEmitter(ctx)
    assert binding.declaration(m, "id", m.parameters) == "extern int id(void* t);"
    glue = binding.emit(m, "id", m.parameters, categories, ValueCategory.BOOLEAN)
    assert "void* t = (void*)(intptr_t)GET_INT_ARG(1);" in glue
    assert "float t" not in glue


def test_boolean_parameters_arrive_as_int(ctx):
    m = method("setEnabled", "void", [("bool", "enabled")])
    out = CppWrapperEmitter(ctx).emit(m, "id", m.parameters, ValueCategory.VOID, class_name="Speaker_Class")
    assert out.startswith("void id(int enabled) {")
    assert "M5.Speaker.setEnabled(enabled != 0);" in out
    assert CBindingEmitter(ctx).declaration(m, "id", m.parameters) == "extern void id(int enabled);"


def test_wrapper_file_has_single_extern_c_block(ctx, renderer):
    emitter = CppWrapperEmitter(ctx, renderer)
    source = emitter.render_file(["int a(void) {\n  return 1;\n}\n", "void b(void) {\n  M5.b();\n}\n"])
    assert "#include <M5Unified.h>" in source
    assert source.count('extern "C" {') == 1
    assert source.index("int a(void)") < source.index("void b(void)")


def test_custom_fragments_are_verbatim(ctx):
    fragment = 'extern "C" void x(void) {\n  M5.x();\n}\n'
    assert CppWrapperEmitter(ctx).emit_custom(fragment) == fragment
    assert CBindingEmitter(ctx).emit_custom(fragment) == fragment


# --------------------------
# mruby/c glue
# --------------------------

def test_declaration_maps_boolean_to_int(ctx):
    m = method("wasPressed", "bool")
    assert CBindingEmitter(ctx).declaration(m, "m5unified_button_waspressed_void", ()) == (
        "extern int m5unified_button_waspressed_void(void);"
    )


def test_declaration_uses_c_side_types(ctx):
    m = method("print", "size_t", [("const char*", "text"), ("const config_t&", "cfg")])
    decl = CBindingEmitter(ctx).declaration(m, "id", m.parameters)
    assert decl == "extern size_t id(const char* text, void* cfg);"


def test_glue_extracts_arguments_by_position(ctx):
    m = method("drawPixel", "void", [("int", "x"), ("int", "y")])
    out = CBindingEmitter(ctx).emit(m, "m5unified_display_drawpixel_int_int", m.parameters, [I, I], ValueCategory.VOID)
    lines = out.splitlines()
    assert lines[0] == (
        "static void mrbc_m5unified_display_drawpixel_int_int(mrbc_vm *vm, mrbc_value *v, int argc) {"
    )
    assert "  int x = GET_INT_ARG(1);" in lines
    assert "  int y = GET_INT_ARG(2);" in lines
    assert "  m5unified_display_drawpixel_int_int(x, y);" in lines
    assert "  SET_NIL_RETURN();" in lines


def test_glue_stores_result_before_setter(ctx):
    m = method("wasPressed", "bool")
    out = CBindingEmitter(ctx).emit(m, "m5unified_button_waspressed_void", (), (), ValueCategory.BOOLEAN)
    assert "  int result = m5unified_button_waspressed_void();\n  SET_BOOL_RETURN(result);\n" in out


def test_glue_float_and_string(ctx):
    m = method("setVolume", "float", [("const char*", "name"), ("float", "level")])
    out = CBindingEmitter(ctx).emit(
        m, "id", m.parameters, [ValueCategory.STRING, ValueCategory.FLOAT], ValueCategory.FLOAT
    )
    assert "const char* name = (const char*)GET_STRING_ARG(1);" in out
    assert "float level = GET_FLOAT_ARG(2);" in out
    assert "float result = id(name, level);" in out
    assert "SET_FLOAT_RETURN(result);" in out


def test_glue_rejects_category_count_mismatch(ctx):
    m = method("f", "void", [("int", "a")])
    with pytest.raises(ValueError):
        CBindingEmitter(ctx).emit(m, "id", m.parameters, [], ValueCategory.VOID)


def test_ruby_method_names():
    assert ruby_method_name(method("wasPressed", "bool"), ValueCategory.BOOLEAN, set()) == "was_pressed?"
    assert ruby_method_name(method("setBrightness", "void", [("uint8_t", "b")]), ValueCategory.VOID, set()) == "set_brightness"
    taken = {"draw_pixel"}
    m = method("drawPixel", "void", [("int", "x"), ("int", "y"), ("uint32_t", "c")])
    assert ruby_method_name(m, ValueCategory.VOID, taken) == "draw_pixel_int_int_uint32"


def test_ruby_class_names():
    assert ruby_class_name("IMU_Class") == "IMU_Class"
    assert ruby_class_name("ns::foo") == "Ns_foo"


def test_binding_file_registers_methods(ctx, renderer):
    emitter = CBindingEmitter(ctx, renderer)
    source = emitter.render_file(
        ["extern int m5unified_button_waspressed_void(void);"],
        ["static void mrbc_m5unified_button_waspressed_void(mrbc_vm *vm, mrbc_value *v, int argc) {\n}\n"],
        [Registration("Button", "was_pressed?", "mrbc_m5unified_button_waspressed_void")],
    )
    assert "#include <mrubyc.h>" in source
    assert "void mrbc_mrbgem_picoruby_m5unified_gem_init(mrbc_vm *vm)" in source
    assert 'mrbc_class *c_button = mrbc_define_class(vm, "Button", mrbc_class_object);' in source
    assert 'mrbc_define_method(vm, c_button, "was_pressed?", mrbc_m5unified_button_waspressed_void);' in source
    assert source.index("extern int") < source.index("static void") < source.index("gem_init")

import json

import pytest

from picoruby_binding_generator.models import MethodDescriptor, ParameterDescriptor
from picoruby_binding_generator.parsing.descriptor_loader import (
    DescriptorError,
    dump_class_descriptors,
    load_class_descriptors,
    parse_class_descriptors,
)

from conftest import klass, method

BUTTON = {
    "name": "Button_Class",
    "source_file": "utility/Button_Class.hpp",
    "methods": [
        {"name": "wasPressed", "return_type": "bool", "parameters": [], "is_const": True},
        {
            "name": "pressedFor",
            "return_type": "bool",
            "parameters": [{"type": "uint32_t", "name": "ms"}],
        },
    ],
}


def test_list_and_wrapped_forms(tmp_path):
    a = tmp_path / "a.json"
    b = tmp_path / "b.json"
    a.write_text(json.dumps([BUTTON]))
    b.write_text(json.dumps({"classes": [{"name": "Display", "methods": [{"name": "clear"}]}]}))
    classes = load_class_descriptors([a, b])
    assert [c.name for c in classes] == ["Button_Class", "Display"]
    assert classes[0].methods[0] == MethodDescriptor(name="wasPressed", return_type="bool", is_const=True)
    assert classes[0].methods[1].parameters == (ParameterDescriptor("uint32_t", "ms"),)
    assert classes[1].methods[0].return_type == "void"


def test_dump_then_parse_keeps_descriptors():
    classes = [klass("Display", method("drawPixel", "void", [("int", "x"), ("int", "y")], is_virtual=True))]
    assert parse_class_descriptors(json.loads(dump_class_descriptors(classes))) == classes


@pytest.mark.parametrize(
    "data",
    [
        {"name": "Button_Class"},
        ["not a class"],
        [{"methods": []}],
        [{"name": "X", "methods": [{"return_type": "int"}]}],
    ],
)
def test_bad_shapes_raise(data):
    with pytest.raises(DescriptorError):
        parse_class_descriptors(data)


def test_unreadable_file_raises(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    with pytest.raises(DescriptorError):
        load_class_descriptors([path])
    with pytest.raises(DescriptorError):
        load_class_descriptors([tmp_path / "missing.json"])

import json

import pytest

from picoruby_binding_generator.generate_bindings import discover_header_files, main, parse_accessors

pytestmark = pytest.mark.usefixtures("restore_logging")

CLASSES = {
    "classes": [
        {
            "name": "M5Unified",
            "methods": [
                {"name": "begin"},
                {"name": "update"},
                {"name": "dsp", "return_type": "AtomDisplay", "parameters": [{"type": "const config_t&", "name": "cfg.atom_display"}]},
            ],
        },
        {
            "name": "Button_Class",
            "methods": [
                {"name": "wasPressed", "return_type": "bool", "is_const": True},
                {"name": "setCallback", "parameters": [{"type": "void (*cb)(int)", "name": "cb"}]},
            ],
        },
    ]
}


@pytest.fixture
def descriptors(tmp_path):
    path = tmp_path / "classes.json"
    path.write_text(json.dumps(CLASSES))
    return path


def test_generates_from_descriptors(tmp_path, descriptors, capsys):
    out = tmp_path / "gem"
    assert main(["--descriptors", str(descriptors), "--output-dir", str(out), "-q"]) == 0
    assert (out / "src" / "m5unified.c").is_file()
    assert (out / "ports" / "esp32" / "m5unified_wrapper.cpp").is_file()
    manifest = json.loads((out / "manifest.json").read_text())
    assert manifest["stats"]["generated_count"] == 3
    assert manifest["stats"]["filtered_count"] == 1
    assert manifest["stats"]["skipped_by_override"] == 1
    assert manifest["class_count"] == 2
    assert "generated=3 custom=1 filtered=1 skipped_by_override=1 total=5" in capsys.readouterr().out


def test_manifest_replays_as_descriptors(tmp_path, descriptors):
    first = tmp_path / "first"
    second = tmp_path / "second"
    assert main(["--descriptors", str(descriptors), "--output-dir", str(first), "-q"]) == 0
    assert main(["--descriptors", str(first / "manifest.json"), "--output-dir", str(second), "-q", "--no-manifest"]) == 0
    assert (first / "src" / "m5unified.c").read_text() == (second / "src" / "m5unified.c").read_text()
    assert not (second / "manifest.json").exists()


def test_without_default_overrides(tmp_path, descriptors, capsys):
    out = tmp_path / "gem"
    assert main(["--descriptors", str(descriptors), "--output-dir", str(out), "--no-default-overrides", "-q"]) == 0
    assert "generated=4 custom=0 filtered=1 skipped_by_override=0" in capsys.readouterr().out


def test_override_file_is_merged(tmp_path, descriptors, capsys):
    overrides = tmp_path / "overrides.json"
    overrides.write_text(json.dumps([
        {"class": "Button_Class", "method": "wasPressed", "action": "skip", "reason": "polled from Ruby"},
    ]))
    out = tmp_path / "gem"
    args = ["--descriptors", str(descriptors), "--overrides", str(overrides), "--output-dir", str(out), "-q"]
    assert main(args) == 0
    assert "skipped_by_override=2" in capsys.readouterr().out
    assert "waspressed" not in (out / "src" / "m5unified.c").read_text()


def test_dry_run_writes_nothing(tmp_path, descriptors):
    out = tmp_path / "gem"
    assert main(["--descriptors", str(descriptors), "--output-dir", str(out), "--dry-run", "-q"]) == 0
    assert not out.exists()


def test_dump_descriptors(tmp_path, descriptors):
    dump = tmp_path / "dump.json"
    args = ["--descriptors", str(descriptors), "--output-dir", str(tmp_path / "gem"), "--dump-descriptors", str(dump), "-q"]
    assert main(args) == 0
    assert [c["name"] for c in json.loads(dump.read_text())["classes"]] == ["M5Unified", "Button_Class"]


def test_exit_codes(tmp_path, descriptors):
    assert main(["--output-dir", str(tmp_path / "gem"), "-qq"]) == 2

    broken = tmp_path / "broken.json"
    broken.write_text("[{]")
    assert main(["--descriptors", str(broken), "--output-dir", str(tmp_path / "gem"), "-qq"]) == 3

    bad_overrides = tmp_path / "overrides.json"
    bad_overrides.write_text(json.dumps({"class": "X"}))
    args = ["--descriptors", str(descriptors), "--overrides", str(bad_overrides), "--output-dir", str(tmp_path / "gem"), "-qq"]
    assert main(args) == 3

    empty = tmp_path / "empty.json"
    empty.write_text("[]")
    assert main(["--descriptors", str(empty), "--output-dir", str(tmp_path / "gem"), "-qq"]) == 2

    assert main(["--descriptors", str(descriptors), "--accessor", "broken", "-qq"]) == 2


def test_collision_exit_code(tmp_path):
    path = tmp_path / "classes.json"
    path.write_text(json.dumps([
        {"name": "Foo", "methods": [
            {"name": "set", "parameters": [{"type": "int", "name": "v"}]},
            {"name": "set", "parameters": [{"type": "const int&", "name": "v"}]},
        ]},
    ]))
    out = tmp_path / "gem"
    assert main(["--descriptors", str(path), "--output-dir", str(out), "-qq"]) == 4
    assert not out.exists()


def test_parse_accessors():
    accessors = parse_accessors(["Button_Class=BtnA", " Foo = Bar "])
    assert accessors["Button_Class"] == "BtnA"
    assert accessors["Foo"] == "Bar"
    assert accessors["IMU_Class"] == "Imu"
    with pytest.raises(ValueError):
        parse_accessors(["NoEquals"])


def test_discover_header_files(tmp_path):
    inc = tmp_path / "include"
    (inc / "utility").mkdir(parents=True)
    for rel in ("M5Unified.hpp", "utility/Button_Class.hpp", "utility/notes.txt", "M5Unified.h"):
        (inc / rel).write_text("")
    found = discover_header_files([str(inc), str(inc / "M5Unified.h"), str(tmp_path / "missing")])
    names = [p.relative_to(inc.resolve()).as_posix() for p in found]
    assert names == ["M5Unified.h", "M5Unified.hpp", "utility/Button_Class.hpp"]

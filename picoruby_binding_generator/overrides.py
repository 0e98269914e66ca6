#!/usr/bin/env python3
"""
Manual overrides for methods the generic rules cannot bind correctly.

Most methods bind automatically. The rest are structurally representable but
semantically wrong to auto-bind (overloads the token scheme cannot tell apart
safely, struct references, output-pointer parameters that really mean "return
several values"). For those, the registry holds one of:

- SkipOverride(reason): never bind; the reason is for diagnostics only.
- CustomOverride(cpp_code, c_code): hand-written fragments for both artifacts.
  Each generator is a plain callable taking the MethodDescriptor and returning
  the fragment (or None to decline that particular overload). The fragments
  choose their own identifier and must agree on it.

Lookup is keyed on (class name, method name), case-insensitively, and is
consulted before the signature filter: an override always wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from textwrap import dedent
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union
import json
import logging

from .models import MethodDescriptor

logger = logging.getLogger(__name__)

CodeGenerator = Callable[[MethodDescriptor], Optional[str]]


class MalformedOverrideError(ValueError):
    """An override table entry cannot be used as declared."""


# --------------------------
# Entries
# --------------------------

@dataclass(frozen=True)
class SkipOverride:
    reason: str


@dataclass(frozen=True)
class CustomOverride:
    """
    `function` is the glue function defined by `c_code`; when given, it is
    registered on the runtime class under `ruby_name` (defaults to the
    snake_case method name).
    """
    cpp_code: Optional[CodeGenerator]
    c_code: Optional[CodeGenerator]
    function: Optional[str] = None
    ruby_name: Optional[str] = None

    def render(self, method: MethodDescriptor) -> Optional[Tuple[str, str]]:
        """
        Run both generators. Returns None when both decline this overload.
        """
        cpp = self.cpp_code(method)  # type: ignore[misc]
        c = self.c_code(method)  # type: ignore[misc]
        if cpp is None and c is None:
            return None
        if cpp is None or c is None:
            raise MalformedOverrideError(
                f"Custom override for '{method.name}' produced only one of the two fragments"
            )
        if not isinstance(cpp, str) or not isinstance(c, str):
            raise MalformedOverrideError(f"Custom override for '{method.name}' must produce strings")
        return cpp, c


OverrideEntry = Union[SkipOverride, CustomOverride]


def _validate(key: Tuple[str, str], entry: Any) -> OverrideEntry:
    if isinstance(entry, SkipOverride):
        if not isinstance(entry.reason, str) or not entry.reason.strip():
            raise MalformedOverrideError(f"Skip override for {key[0]}::{key[1]} has no reason")
        return entry
    if isinstance(entry, CustomOverride):
        if not callable(entry.cpp_code):
            raise MalformedOverrideError(f"Custom override for {key[0]}::{key[1]} is missing its C++ generator")
        if not callable(entry.c_code):
            raise MalformedOverrideError(f"Custom override for {key[0]}::{key[1]} is missing its C generator")
        return entry
    raise MalformedOverrideError(f"Unknown override entry for {key[0]}::{key[1]}: {entry!r}")


# --------------------------
# Registry
# --------------------------

class OverrideRegistry:
    """
    Case-insensitive table (class name, method name) -> override entry.
    Entries are validated when consulted, not when registered.
    """

    def __init__(self, entries: Optional[Mapping[Tuple[str, str], Any]] = None) -> None:
        self._entries: Dict[Tuple[str, str], Any] = {}
        for (class_name, method_name), entry in (entries or {}).items():
            self.register(class_name, method_name, entry)

    @staticmethod
    def _key(class_name: str, method_name: str) -> Tuple[str, str]:
        return (class_name.lower(), method_name.lower())

    def register(self, class_name: str, method_name: str, entry: Any) -> None:
        self._entries[self._key(class_name, method_name)] = entry

    def lookup(self, class_name: str, method_name: str) -> Optional[OverrideEntry]:
        key = self._key(class_name, method_name)
        entry = self._entries.get(key)
        if entry is None:
            return None
        return _validate(key, entry)

    def merged(self, other: OverrideRegistry) -> OverrideRegistry:
        """
        New registry with `other` entries taking precedence.
        """
        out = OverrideRegistry()
        out._entries.update(self._entries)
        out._entries.update(other._entries)
        return out

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        return self._key(str(key[0]), str(key[1])) in self._entries


# --------------------------
# JSON loading
# --------------------------

def _constant(text: Optional[str]) -> Optional[CodeGenerator]:
    if text is None:
        return None
    return lambda _method: text


def load_overrides(path: Union[str, Path]) -> OverrideRegistry:
    """
    Load overrides from a JSON list of entries:

        [{"class": "Led_Class", "method": "setAllColor", "action": "skip", "reason": "..."},
         {"class": "Foo", "method": "bar", "action": "custom",
          "cpp_code": "...", "c_code": "...", "function": "mrbc_..."}]

    The shape of each entry is checked when it is consulted.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise MalformedOverrideError(f"{path}: expected a JSON list of override entries")

    registry = OverrideRegistry()
    for i, item in enumerate(data):
        if not isinstance(item, dict) or "class" not in item or "method" not in item:
            raise MalformedOverrideError(f"{path}: entry {i} needs 'class' and 'method'")
        action = item.get("action")
        entry: Any
        if action == "skip":
            entry = SkipOverride(reason=item.get("reason") or "")
        elif action == "custom":
            entry = CustomOverride(
                cpp_code=_constant(item.get("cpp_code")),
                c_code=_constant(item.get("c_code")),
                function=item.get("function"),
                ruby_name=item.get("ruby_name"),
            )
        else:
            entry = item
        registry.register(str(item["class"]), str(item["method"]), entry)
    logger.debug("Loaded %d override(s) from %s", len(registry), path)
    return registry


# --------------------------
# M5Unified defaults
# --------------------------

def _array_getter(
    identifier: str,
    function: str,
    elem_type: str,
    fill_lines: Sequence[str],
    names: Sequence[str],
    boxing: str,
    ruby_name: str,
) -> CustomOverride:
    """
    Override returning several native values as one runtime Array.
    The bridge fills `result` and returns non-zero on success.
    """
    size = len(names)
    body = "\n".join(f"  {line}" for line in fill_lines)
    cpp = (
        f'extern "C" int {identifier}({elem_type}* result) {{\n'
        f"{body}\n"
        f"}}\n"
    )
    lines: List[str] = [
        f"extern int {identifier}({elem_type}* result);",
        "",
        f"static void {function}(mrbc_vm *vm, mrbc_value *v, int argc) {{",
        f"  {elem_type} result[{size}];",
        f"  if ({identifier}(result)) {{",
        f"    mrbc_value array = mrbc_array_new(vm, {size});",
    ]
    for i, name in enumerate(names):
        lines.append(f"    mrbc_value {name} = {boxing.format(value=f'result[{i}]')};")
    for i, name in enumerate(names):
        lines.append(f"    mrbc_array_set(&array, {i}, &{name});")
    lines += [
        "    SET_RETURN(array);",
        "  } else {",
        "    SET_NIL_RETURN();",
        "  }",
        "}",
    ]
    c = "\n".join(lines) + "\n"
    return CustomOverride(cpp_code=_constant(cpp), c_code=_constant(c), function=function, ruby_name=ruby_name)


def _sensor_triple(accessor_call: str, identifier: str, prefix: str, ruby_name: str) -> CustomOverride:
    x, y, z = (f"{prefix}x", f"{prefix}y", f"{prefix}z")
    return _array_getter(
        identifier=identifier,
        function=f"mrbc_{identifier}",
        elem_type="float",
        fill_lines=[
            f"float {x}, {y}, {z};",
            f"if (!{accessor_call}(&{x}, &{y}, &{z})) {{",
            "  return 0;",
            "}",
            f"result[0] = {x};",
            f"result[1] = {y};",
            f"result[2] = {z};",
            "return 1;",
        ],
        names=[x, y, z],
        boxing="mrbc_float_value(vm, {value})",
        ruby_name=ruby_name,
    )


def _begin_cpp(method: MethodDescriptor) -> Optional[str]:
    if method.parameters:
        # begin(config_t) needs the whole config struct; not bound
        return None
    return dedent("""\
        extern "C" void m5unified_m5unified_begin_void(void) {
          M5.begin();
        }
        """)


def _begin_c(method: MethodDescriptor) -> Optional[str]:
    if method.parameters:
        return None
    return dedent("""\
        extern void m5unified_m5unified_begin_void(void);

        static void mrbc_m5unified_m5unified_begin_void(mrbc_vm *vm, mrbc_value *v, int argc) {
          m5unified_m5unified_begin_void();
          SET_NIL_RETURN();
        }
        """)


_SET_ALL_COLOR_CPP = dedent("""\
    extern "C" void m5unified_led_class_setallcolor_uint32(uint32_t rgb888) {
      M5.Led.setAllColor(rgb888);
    }
    """)

_SET_ALL_COLOR_C = dedent("""\
    extern void m5unified_led_class_setallcolor_uint32(uint32_t rgb888);

    static void mrbc_m5unified_led_class_setallcolor_uint32(mrbc_vm *vm, mrbc_value *v, int argc) {
      uint32_t rgb888 = GET_INT_ARG(1);
      m5unified_led_class_setallcolor_uint32(rgb888);
      SET_NIL_RETURN();
    }
    """)

_SET_COLOR_CPP = dedent("""\
    extern "C" void m5unified_led_class_setcolor_size_t_uint32(size_t index, uint32_t rgb888) {
      M5.Led.setColor(index, rgb888);
    }
    """)

_SET_COLOR_C = dedent("""\
    extern void m5unified_led_class_setcolor_size_t_uint32(size_t index, uint32_t rgb888);

    static void mrbc_m5unified_led_class_setcolor_size_t_uint32(mrbc_vm *vm, mrbc_value *v, int argc) {
      size_t index = GET_INT_ARG(1);
      uint32_t rgb888 = GET_INT_ARG(2);
      m5unified_led_class_setcolor_size_t_uint32(index, rgb888);
      SET_NIL_RETURN();
    }
    """)


def default_entries() -> Dict[Tuple[str, str], OverrideEntry]:
    """
    The M5Unified override table.
    """
    struct_ref = "(struct reference not supported in mruby/c)"
    return {
        # Overloads whose parameter types the parser reports as 'cfg.atom_display' & co.
        ("M5Unified", "dsp"): SkipOverride(
            "Multiple overloads with problematic types. Use M5.begin(config) instead."
        ),
        ("M5Unified", "addDisplay"): SkipOverride("Takes M5GFX& parameter (object reference not supported in mruby/c)"),
        ("Log_Class", "setDisplay"): SkipOverride("Takes M5GFX& parameter (object reference not supported)"),
        ("M5Unified", "begin"): CustomOverride(
            cpp_code=_begin_cpp,
            c_code=_begin_c,
            function="mrbc_m5unified_m5unified_begin_void",
        ),
        # RGBColor& replaced by a packed RGB888 integer
        ("Led_Class", "setAllColor"): CustomOverride(
            cpp_code=_constant(_SET_ALL_COLOR_CPP),
            c_code=_constant(_SET_ALL_COLOR_C),
            function="mrbc_m5unified_led_class_setallcolor_uint32",
        ),
        ("Led_Class", "setColor"): CustomOverride(
            cpp_code=_constant(_SET_COLOR_CPP),
            c_code=_constant(_SET_COLOR_C),
            function="mrbc_m5unified_led_class_setcolor_size_t_uint32",
        ),
        ("RTC_Base", "getTime"): SkipOverride(f"Returns rtc_time_t& {struct_ref}"),
        ("RTC_Base", "getDate"): SkipOverride(f"Returns rtc_date_t& {struct_ref}"),
        ("RTC_Base", "getDateTime"): SkipOverride(f"Returns rtc_datetime_t& {struct_ref}"),
        ("RTC_Base", "setTime"): SkipOverride(f"Takes rtc_time_t& parameter {struct_ref}"),
        ("RTC_Base", "setDate"): SkipOverride(f"Takes rtc_date_t& parameter {struct_ref}"),
        ("RTC_Base", "setDateTime"): SkipOverride(f"Takes rtc_datetime_t& parameter {struct_ref}"),
        # Output-pointer sensor reads become [x, y, z] arrays
        ("IMU_Class", "getAccel"): _sensor_triple(
            "M5.Imu.getAccel", "m5unified_imu_class_getaccel_array", "a", "get_accel"
        ),
        ("IMU_Class", "getGyro"): _sensor_triple(
            "M5.Imu.getGyro", "m5unified_imu_class_getgyro_array", "g", "get_gyro"
        ),
        ("IMU_Class", "getMag"): _sensor_triple(
            "M5.Imu.getMag", "m5unified_imu_class_getmag_array", "m", "get_mag"
        ),
        # Struct returns become integer arrays
        ("RTC_Class", "getTime"): _array_getter(
            identifier="m5unified_rtc_class_gettime_array",
            function="mrbc_m5unified_rtc_class_gettime_array",
            elem_type="int8_t",
            fill_lines=[
                "rtc_time_t time = M5.Rtc.getTime();",
                "result[0] = time.hours;",
                "result[1] = time.minutes;",
                "result[2] = time.seconds;",
                "return 3;",
            ],
            names=["hours", "minutes", "seconds"],
            boxing="mrbc_integer_value({value})",
            ruby_name="get_time",
        ),
        ("RTC_Class", "getDate"): _array_getter(
            identifier="m5unified_rtc_class_getdate_array",
            function="mrbc_m5unified_rtc_class_getdate_array",
            elem_type="int16_t",
            fill_lines=[
                "rtc_date_t date = M5.Rtc.getDate();",
                "result[0] = date.year;",
                "result[1] = date.month;",
                "result[2] = date.date;",
                "result[3] = date.weekDay;",
                "return 4;",
            ],
            names=["year", "month", "date", "weekday"],
            boxing="mrbc_integer_value({value})",
            ruby_name="get_date",
        ),
        ("RTC_Class", "getDateTime"): _array_getter(
            identifier="m5unified_rtc_class_getdatetime_array",
            function="mrbc_m5unified_rtc_class_getdatetime_array",
            elem_type="int16_t",
            fill_lines=[
                "rtc_datetime_t dt = M5.Rtc.getDateTime();",
                "result[0] = dt.date.year;",
                "result[1] = dt.date.month;",
                "result[2] = dt.date.date;",
                "result[3] = dt.date.weekDay;",
                "result[4] = dt.time.hours;",
                "result[5] = dt.time.minutes;",
                "result[6] = dt.time.seconds;",
                "return 7;",
            ],
            names=["year", "month", "date", "weekday", "hours", "minutes", "seconds"],
            boxing="mrbc_integer_value({value})",
            ruby_name="get_date_time",
        ),
    }


def default_registry() -> OverrideRegistry:
    return OverrideRegistry(default_entries())


__all__ = [
    "CodeGenerator",
    "CustomOverride",
    "MalformedOverrideError",
    "OverrideEntry",
    "OverrideRegistry",
    "SkipOverride",
    "default_entries",
    "default_registry",
    "load_overrides",
]

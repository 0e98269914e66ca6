#!/usr/bin/env python3
"""
Type mapping for mruby/c (PicoRuby) bindings.

This module classifies native C++ type spellings into the small, closed set of
value categories the mruby/c runtime can represent, and provides the
per-category vocabulary the emitters need:

- ValueCategory: INTEGER, FLOAT, STRING, BOOLEAN, OBJECT_REF, VOID
- TypeMapper.classify(): category of a raw type spelling (never raises)
- TypeMapper.type_token(): short lower-case token used in generated identifiers
- TypeMapper.c_type(): C spelling used on the runtime (glue) side
- TypeMapper.bridge_type(): spelling used in the native bridge signature
- arg_accessor() / return_setter(): mruby/c call-frame macros per category

Typical usage:

    mapper = TypeMapper()
    mapper.classify("const char*")      # ValueCategory.STRING
    mapper.classify("const config_t&")  # ValueCategory.OBJECT_REF
    mapper.type_token("uint32_t")       # "uint32"

Design notes:
- Classification is purely lexical. Unknown spellings fall through to
  OBJECT_REF, and so does every pointer except char*. Rejecting
  unrepresentable shapes (templates, function pointers, rvalue references)
  is the job of signature_filter, not of this module.
"""

from __future__ import annotations

from enum import Enum
from typing import FrozenSet, Iterable, Optional
import re


# --------------------------
# Helpers
# --------------------------

def _normalize_spaces(s: str) -> str:
    s = re.sub(r"\s*([*&])\s*", r"\1", s)
    return " ".join(s.split())


def _strip_cv_and_class_kw(spelling: str) -> str:
    """
    Normalize a C++ type spelling to aid mapping heuristics:
    - Remove leading 'const', 'class', 'struct', 'enum'
    - Glue '*' and '&' to the preceding token, collapse spaces
    - Keep pointer/reference symbols for higher-level logic.
    """
    s = (spelling or "").strip()
    for kw in ("const ", "class ", "struct ", "enum "):
        if s.startswith(kw):
            s = s[len(kw):].lstrip()
    return _normalize_spaces(s)


def normalize_type(spelling: str) -> str:
    """
    Strip a leading const and one trailing pass-by-reference/pointer marker.
    Rvalue references ('&&') are left untouched.
    Example:
      'const config_t &' -> 'config_t'
      'M5GFX*'           -> 'M5GFX'
      'Data&&'           -> 'Data&&'
    """
    s = _strip_cv_and_class_kw(spelling)
    if s.endswith("&&"):
        return s
    if s.endswith("&") or s.endswith("*"):
        s = s[:-1].rstrip()
    # 'char const' style trailing cv after stripping the marker
    if s.endswith(" const"):
        s = s[: -len(" const")].rstrip()
    return s


def _is_pointer(spelling: str) -> bool:
    return _strip_cv_and_class_kw(spelling).endswith("*")


INTEGER_TYPES: FrozenSet[str] = frozenset({
    "char",
    "signed char",
    "unsigned char",
    "short",
    "short int",
    "unsigned short",
    "unsigned short int",
    "int",
    "signed",
    "signed int",
    "unsigned",
    "unsigned int",
    "long",
    "long int",
    "unsigned long",
    "unsigned long int",
    "long long",
    "long long int",
    "unsigned long long",
    "unsigned long long int",
    "size_t",
    "ssize_t",
    "ptrdiff_t",
    "intptr_t",
    "uintptr_t",
    "int8_t",
    "uint8_t",
    "int16_t",
    "uint16_t",
    "int32_t",
    "uint32_t",
    "int64_t",
    "uint64_t",
})

FLOAT_TYPES: FrozenSet[str] = frozenset({"float", "double"})

_FIXED_WIDTH_RE = re.compile(r"^(u?int(?:8|16|32|64))_t$")


# --------------------------
# Categories
# --------------------------

class ValueCategory(Enum):
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    BOOLEAN = "boolean"
    OBJECT_REF = "object_ref"
    VOID = "void"


# --------------------------
# Mapper
# --------------------------

class TypeMapper:
    """
    Classifies native type spellings. `integer_aliases` extends the integer
    vocabulary with project typedefs (e.g. 'gpio_num_t').
    """

    def __init__(self, integer_aliases: Optional[Iterable[str]] = None) -> None:
        self.integer_types: FrozenSet[str] = INTEGER_TYPES | frozenset(integer_aliases or ())

    # ---- Public API ----

    def classify(self, spelling: str) -> ValueCategory:
        pointer = _is_pointer(spelling)
        base = normalize_type(spelling)

        if pointer:
            # Only char pointers carry a value; any other pointer is a handle
            return ValueCategory.STRING if base == "char" else ValueCategory.OBJECT_REF
        if base == "void":
            return ValueCategory.VOID
        if base in FLOAT_TYPES:
            return ValueCategory.FLOAT
        if base in self.integer_types:
            return ValueCategory.INTEGER
        if base == "bool":
            return ValueCategory.BOOLEAN
        return ValueCategory.OBJECT_REF

    def type_token(self, spelling: str) -> str:
        """
        Short identifier-safe token for a parameter type:
          'const uint32_t&' -> 'uint32'
          'm5::board_t'     -> 'm5_board_t'
          'const char*'     -> 'char'
        """
        s = (spelling or "").strip()
        s = re.sub(r"^const\s+", "", s)
        s = re.sub(r"[&*\s]+$", "", s)
        s = re.sub(r"\s+", "", s)
        s = re.sub(r"::|<|>|,", "_", s)
        s = re.sub(r"[^a-zA-Z0-9_]", "", s)
        s = s.lower()
        m = _FIXED_WIDTH_RE.match(s)
        if m:
            return m.group(1)
        return s

    def c_type(self, spelling: str) -> str:
        """
        Spelling of the type as seen from the C glue file.
        """
        category = self.classify(spelling)
        if category == ValueCategory.VOID:
            return "void"
        if category == ValueCategory.BOOLEAN:
            return "int"
        if category == ValueCategory.STRING:
            return "const char*"
        if category in (ValueCategory.INTEGER, ValueCategory.FLOAT):
            return normalize_type(spelling)
        return "void*"

    def bridge_type(self, spelling: str) -> str:
        """
        Spelling of the type in a bridge signature. Scalars are passed by
        value exactly as c_type() declares them ('const int&' -> 'int',
        'bool' -> 'int'); strings and handles keep the declared spelling,
        which is pointer-sized like the glue's 'const char*' / 'void*'.
        """
        category = self.classify(spelling)
        if category in (ValueCategory.STRING, ValueCategory.OBJECT_REF):
            return _normalize_spaces((spelling or "").strip())
        return self.c_type(spelling)


# --------------------------
# mruby/c call-frame vocabulary
# --------------------------

def arg_accessor(category: ValueCategory, position: int) -> str:
    """
    Expression extracting the 1-based argument `position` from the call frame.
    """
    if category == ValueCategory.INTEGER:
        return f"GET_INT_ARG({position})"
    if category == ValueCategory.FLOAT:
        return f"GET_FLOAT_ARG({position})"
    if category == ValueCategory.STRING:
        return f"(const char*)GET_STRING_ARG({position})"
    if category == ValueCategory.BOOLEAN:
        return f"(v[{position}].tt == MRBC_TT_TRUE)"
    if category == ValueCategory.OBJECT_REF:
        return f"(void*)(intptr_t)GET_INT_ARG({position})"
    raise ValueError("void is not a valid parameter category")


def return_setter(category: ValueCategory, expr: str = "result") -> str:
    """
    Statement setting the runtime-visible return value from `expr`.
    """
    if category == ValueCategory.VOID:
        return "SET_NIL_RETURN();"
    if category == ValueCategory.BOOLEAN:
        return f"SET_BOOL_RETURN({expr});"
    if category == ValueCategory.FLOAT:
        return f"SET_FLOAT_RETURN({expr});"
    if category == ValueCategory.INTEGER:
        return f"SET_INT_RETURN({expr});"
    if category == ValueCategory.STRING:
        return f"SET_RETURN(mrbc_string_new_cstr(vm, {expr}));"
    return f"SET_INT_RETURN((mrbc_int_t)(intptr_t){expr});"


__all__ = [
    "ValueCategory",
    "TypeMapper",
    "INTEGER_TYPES",
    "FLOAT_TYPES",
    "normalize_type",
    "arg_accessor",
    "return_setter",
]

#!/usr/bin/env python3
"""
Clang-based extraction of class descriptors from C++ headers.

This module traverses headers using libclang and produces the ClassDescriptor
list the generator consumes. Only what the binding pipeline needs is kept:

- Class/struct definitions (forward declarations and anonymous types skipped).
- Public CXX_METHODs with their raw return and parameter type spellings,
  exactly as written in the header, plus static/const/virtual flags.
- Constructors, destructors, operators and member templates are not methods
  the gem can expose and are left out.
- Deduplication via Clang USR when a header is reached from several
  translation units.

Type spellings are deliberately not canonicalized: the signature filter and
the type mapper work on what the header says (`uint32_t`, not `unsigned int`).

Requirements:
- Python clang bindings (pip install libclang)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging
import re

logger = logging.getLogger(__name__)

try:
    from clang import cindex  # type: ignore
except Exception:  # pragma: no cover
    cindex = None  # Lazy error on use

from ..models import ClassDescriptor, MethodDescriptor, ParameterDescriptor


# --------------------------
# libclang setup
# --------------------------

def ensure_libclang_loaded() -> None:
    if cindex is None:
        raise RuntimeError(
            "libclang (clang.cindex) is not available. Install the clang Python bindings "
            "(e.g., pip install libclang) and ensure libclang is discoverable."
        )


def parse_translation_unit(header: Path, clang_args: List[str]):
    """
    Parse a single header as C++ into a TranslationUnit, skipping function bodies.
    """
    ensure_libclang_loaded()
    idx = cindex.Index.create()
    args = list(clang_args)
    if "-x" not in args:
        args = ["-x", "c++"] + args
    if not any(a.startswith("-std=") for a in args):
        args.append("-std=c++17")
    # Silence warnings from system headers
    if not any(a.startswith("-W") for a in args):
        args.append("-Wno-everything")
    tu_cls = cindex.TranslationUnit
    return idx.parse(
        str(header),
        args=args,
        options=tu_cls.PARSE_SKIP_FUNCTION_BODIES | tu_cls.PARSE_INCOMPLETE,
    )


# --------------------------
# Helpers
# --------------------------

_SYSTEM_DIR_PREFIXES: Tuple[str, ...] = ("/usr/include", "/usr/local/include")


def _kind_name(node: Any) -> str:
    return getattr(getattr(node, "kind", None), "name", "")


def _is_system_location(loc: Any) -> bool:
    f = getattr(loc, "file", None)
    if f is None:
        return True
    return str(f.name).startswith(_SYSTEM_DIR_PREFIXES)


def _should_consider_location(node: Any, include_filters: Optional[List[str]]) -> bool:
    """
    If filters are provided, only accept nodes whose file path starts with any filter.
    Otherwise, exclude system header locations.
    """
    loc = getattr(node, "location", None)
    if loc is None or getattr(loc, "file", None) is None:
        # Namespaces and the TU itself may have no file
        return _kind_name(node) in ("NAMESPACE", "TRANSLATION_UNIT")
    if include_filters:
        fpath = str(Path(str(loc.file.name)).resolve())
        return any(fpath.startswith(f) for f in include_filters)
    return not _is_system_location(loc)


def _header_of(node: Any) -> str:
    try:
        return str(node.location.file.name)
    except AttributeError:
        return ""


def _is_public(node: Any) -> bool:
    # INVALID is what libclang reports for members of structs parsed without access info
    return getattr(getattr(node, "access_specifier", None), "name", "PUBLIC") in ("PUBLIC", "INVALID")


def _flag(node: Any, predicate: str) -> bool:
    fn = getattr(node, predicate, None)
    return bool(fn()) if callable(fn) else False


def _parse_parameters(node: Any) -> Tuple[ParameterDescriptor, ...]:
    return tuple(
        ParameterDescriptor(type=p.type.spelling, name=p.spelling or "")
        for p in node.get_arguments()
    )


def _parse_method(node: Any, class_name: str) -> Optional[MethodDescriptor]:
    """
    Convert a public CXX_METHOD cursor to a MethodDescriptor, or None if it
    cannot be exposed.
    """
    name = node.spelling or ""
    if not name or name.startswith("operator"):
        logger.debug("Skipping operator %s::%s", class_name, name)
        return None
    if not _is_public(node):
        return None
    return MethodDescriptor(
        name=name,
        return_type=node.result_type.spelling or "void",
        parameters=_parse_parameters(node),
        is_static=_flag(node, "is_static_method"),
        is_const=_flag(node, "is_const_method"),
        is_virtual=_flag(node, "is_virtual_method"),
    )


def _usr(node: Any) -> str:
    fn = getattr(node, "get_usr", None)
    return (fn() or "") if callable(fn) else ""


class _ClassAccumulator:
    """
    Collects classes in discovery order, merging repeated definitions.
    """

    def __init__(self) -> None:
        self._order: List[str] = []
        self._names: Dict[str, str] = {}
        self._headers: Dict[str, str] = {}
        self._methods: Dict[str, List[MethodDescriptor]] = {}
        self._method_keys: Dict[str, set] = {}

    def add(self, key: str, name: str, header: str, methods: Iterable[Tuple[str, MethodDescriptor]]) -> None:
        if key not in self._names:
            self._order.append(key)
            self._names[key] = name
            self._headers[key] = header
            self._methods[key] = []
            self._method_keys[key] = set()
        seen = self._method_keys[key]
        for mkey, m in methods:
            if mkey in seen:
                continue
            seen.add(mkey)
            self._methods[key].append(m)

    def classes(self) -> List[ClassDescriptor]:
        return [
            ClassDescriptor(name=self._names[k], methods=tuple(self._methods[k]), source_file=self._headers[k])
            for k in self._order
        ]


def _collect_class_decls(
    tu: Any,
    acc: _ClassAccumulator,
    include_filters: Optional[List[str]],
    exclude_class_regex: Optional["re.Pattern[str]"],
) -> None:
    """
    Traverse the TU and feed every class definition into `acc`.
    """

    def visit(node: Any) -> None:
        if not _should_consider_location(node, include_filters):
            return

        kind_name = _kind_name(node)
        if kind_name in ("CLASS_DECL", "STRUCT_DECL"):
            name = node.spelling or ""
            if not node.is_definition() or not name:
                return
            if not _is_public(node):
                logger.debug("Skipping non-public nested %s '%s'", kind_name.lower(), name)
                return
            if exclude_class_regex is not None and exclude_class_regex.search(name):
                logger.info("Excluding class '%s' due to exclude regex", name)
                return

            methods: List[Tuple[str, MethodDescriptor]] = []
            for c in node.get_children():
                if _kind_name(c) != "CXX_METHOD":
                    continue
                m = _parse_method(c, name)
                if m is not None:
                    methods.append((_usr(c) or m.cpp_signature, m))
            acc.add(_usr(node) or name, name, _header_of(node), methods)

        for c in node.get_children():
            visit(c)

    root = getattr(tu, "cursor", None)
    if root is not None:
        visit(root)


# --------------------------
# Public API
# --------------------------

def collect_classes_from_headers(
    headers: Iterable[Path],
    clang_args: List[str],
    include_filters: Optional[List[str]] = None,
    exclude_class_regex: Optional["re.Pattern[str]"] = None,
    emit_diagnostics: bool = True,
) -> List[ClassDescriptor]:
    """
    Parse headers and return ClassDescriptors in discovery order.

    Parameters:
    - headers: header files to parse (directories must be expanded by the caller).
    - clang_args: command line arguments for clang (include paths, defines, -std, etc.).
    - include_filters: if provided, only classes defined under one of these paths are kept.
    - exclude_class_regex: compiled regular expression excluding classes by name.
    - emit_diagnostics: whether to log clang diagnostics.
    """
    ensure_libclang_loaded()

    filters = [str(Path(f).resolve()) for f in (include_filters or [])]
    acc = _ClassAccumulator()

    for header in headers:
        tu = parse_translation_unit(header, clang_args)
        if emit_diagnostics:
            for diag in tu.diagnostics:
                logger.warning("[clang] %s", diag)
        _collect_class_decls(tu, acc, filters or None, exclude_class_regex)

    return acc.classes()


__all__ = [
    "collect_classes_from_headers",
    "parse_translation_unit",
    "ensure_libclang_loaded",
]

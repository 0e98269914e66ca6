#!/usr/bin/env python3
"""
Data models for the PicoRuby binding generator.

This module provides strongly-typed, serializable data structures to describe:
- Native method parameters and methods (as produced by the external parser)
- Classes (name, methods, source header)
- Generation statistics accumulated during one run
- Generation context (paths, naming, native API access paths)

The descriptors are read-only inputs: they are created once by the parsing
layer (libclang or a JSON descriptor file) and are never mutated by the
generator. Everything derived from them (identifiers, fragments, stats) is
created per run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

# --------------------------
# Method/Parameter models
# --------------------------

@dataclass(frozen=True)
class ParameterDescriptor:
    """
    One native parameter. `type` is the raw C++ spelling (may include const,
    references, pointers or template syntax); `name` may be empty or not a
    valid identifier, see naming.sanitize_parameters().
    """
    type: str
    name: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "name": self.name}

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> ParameterDescriptor:
        return ParameterDescriptor(type=str(data["type"]), name=str(data.get("name") or ""))


@dataclass(frozen=True)
class MethodDescriptor:
    """
    Description of a public class method. Overloads are represented as separate instances.
    """
    name: str
    return_type: str = "void"
    parameters: Tuple[ParameterDescriptor, ...] = ()
    is_static: bool = False
    is_const: bool = False
    is_virtual: bool = False

    def __post_init__(self) -> None:
        # Accept any iterable from callers but store an immutable tuple
        if not isinstance(self.parameters, tuple):
            object.__setattr__(self, "parameters", tuple(self.parameters))

    @property
    def parameter_types(self) -> Tuple[str, ...]:
        return tuple(p.type for p in self.parameters)

    @property
    def signature_key(self) -> str:
        """
        Key identifying a (method, parameter-type) signature, whitespace-insensitive.
        Return type and const qualification are not part of it: they cannot
        overload a method on their own.
        """
        params = ",".join(" ".join(t.split()) for t in self.parameter_types)
        return f"{self.name}({params})"

    @property
    def cpp_signature(self) -> str:
        """
        Human-friendly C++ signature string, used for diagnostics only.
        """
        params = ", ".join(self.parameter_types)
        const_q = " const" if self.is_const else ""
        static_q = "static " if self.is_static else ""
        return f"{static_q}{self.return_type} {self.name}({params}){const_q}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "return_type": self.return_type,
            "parameters": [p.to_dict() for p in self.parameters],
            "is_static": self.is_static,
            "is_const": self.is_const,
            "is_virtual": self.is_virtual,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> MethodDescriptor:
        return MethodDescriptor(
            name=str(data["name"]),
            return_type=str(data.get("return_type") or "void"),
            parameters=tuple(ParameterDescriptor.from_dict(p) for p in data.get("parameters") or []),
            is_static=bool(data.get("is_static", False)),
            is_const=bool(data.get("is_const", False)),
            is_virtual=bool(data.get("is_virtual", False)),
        )


# --------------------------
# Class model
# --------------------------

@dataclass(frozen=True)
class ClassDescriptor:
    name: str
    methods: Tuple[MethodDescriptor, ...] = ()
    source_file: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.methods, tuple):
            object.__setattr__(self, "methods", tuple(self.methods))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "source_file": self.source_file,
            "methods": [m.to_dict() for m in self.methods],
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> ClassDescriptor:
        return ClassDescriptor(
            name=str(data["name"]),
            methods=tuple(MethodDescriptor.from_dict(m) for m in data.get("methods") or []),
            source_file=str(data.get("source_file") or ""),
        )


def count_methods(classes: Iterable[ClassDescriptor]) -> int:
    return sum(len(c.methods) for c in classes)


# --------------------------
# Statistics
# --------------------------

@dataclass
class GenerationStats:
    """
    Counters accumulated over one generation run.

    Custom overrides are counted both in `custom_override_count` and in
    `generated_count`. Every processed method lands in exactly one of
    generated / filtered / skipped_by_override.
    """
    generated_count: int = 0
    filtered_count: int = 0
    skipped_by_override: int = 0
    custom_override_count: int = 0
    # (qualified method name, reason) for every override skip, diagnostics only
    skipped: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return self.generated_count + self.filtered_count + self.skipped_by_override

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_count": self.generated_count,
            "filtered_count": self.filtered_count,
            "skipped_by_override": self.skipped_by_override,
            "custom_override_count": self.custom_override_count,
            "total_processed": self.total_processed,
            "skipped": [{"method": m, "reason": r} for m, r in self.skipped],
        }


# --------------------------
# Generation context
# --------------------------

DEFAULT_MEMBER_ACCESSORS: Dict[str, str] = {
    "IMU_Class": "Imu",
    "Led_Class": "Led",
    "Log_Class": "Log",
    "Mic_Class": "Mic",
    "Power_Class": "Power",
    "RTC_Class": "Rtc",
    "Speaker_Class": "Speaker",
    "Touch_Class": "Touch",
}


@dataclass
class GenerationContext:
    """
    Parameters for a single generation run.

    `prefix` is the namespace prefix of every generated identifier.
    Native calls go through `root_object` (the library singleton, e.g. `M5`):
    methods of `root_class` are called on it directly, methods of other
    classes through `root_object.<accessor>`, where the accessor comes from
    `member_accessors` and defaults to the class name.
    `native_component` is the ESP-IDF component that provides `native_header`.
    """
    output_dir: Path
    gem_name: str = "m5unified"
    prefix: str = "m5unified"
    native_header: str = "M5Unified.h"
    native_component: str = "m5unified"
    root_object: str = "M5"
    root_class: str = "M5Unified"
    member_accessors: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_MEMBER_ACCESSORS))
    templates_dir: Optional[Path] = None
    dry_run: bool = False

    @property
    def gem_c_name(self) -> str:
        return self.gem_name.replace("-", "_")

    @property
    def wrapper_path(self) -> Path:
        return self.output_dir / "ports" / "esp32" / f"{self.gem_name}_wrapper.cpp"

    @property
    def binding_path(self) -> Path:
        return self.output_dir / "src" / f"{self.gem_name}.c"

    @property
    def stub_path(self) -> Path:
        return self.output_dir / "mrblib" / f"{self.gem_name}.rb"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "output_dir": str(self.output_dir),
            "gem_name": self.gem_name,
            "prefix": self.prefix,
            "native_header": self.native_header,
            "native_component": self.native_component,
            "root_object": self.root_object,
            "root_class": self.root_class,
            "member_accessors": dict(self.member_accessors),
            "templates_dir": str(self.templates_dir) if self.templates_dir else None,
            "dry_run": self.dry_run,
        }


__all__ = [
    "ParameterDescriptor",
    "MethodDescriptor",
    "ClassDescriptor",
    "GenerationStats",
    "GenerationContext",
    "DEFAULT_MEMBER_ACCESSORS",
    "count_methods",
]

#!/usr/bin/env python3
"""
Identifier resolution shared by the native wrapper and the C glue layer.

Every binding is a pair of functions, one per artifact, linked by a single
generated identifier:

    <prefix>_<class>_<method>_<type-token>_<type-token>...
    <prefix>_<class>_<method>_void              (no parameters)

The parameter-type tokens make overloads distinct. Uniqueness is checked
against an IdentifierRegistry owned by one generation run:

- the same (class, method, parameter types) triple declared twice, e.g. a
  const/non-const pair, raises DuplicateSignatureError;
- two different triples normalizing to one identifier raise
  IdentifierCollisionError. The run is aborted rather than letting one
  binding silently replace the other.

Parameter names are sanitized here as well so that both artifacts use the
same, valid C identifiers that do not shadow the glue frame (vm, v, argc,
result).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Dict, FrozenSet, Iterator, List, Optional, Sequence, Tuple
import re

from .models import MethodDescriptor, ParameterDescriptor
from .type_mapping import TypeMapper, normalize_type

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Short parameter names for well-known struct types, keyed by normalized type
TYPE_NAME_HINTS: Dict[str, str] = {
    "config_t": "cfg",
    "M5Unified::config_t": "cfg",
    "rtc_time_t": "time",
    "rtc_date_t": "date",
    "rtc_datetime_t": "datetime",
    "RGBColor": "color",
    "m5::board_t": "board",
}

# Names already bound inside every glue function
RESERVED_PARAMETER_NAMES: FrozenSet[str] = frozenset({"vm", "v", "argc", "result"})


class IdentifierCollisionError(RuntimeError):
    """Two distinct signatures normalize to the same generated identifier."""


class DuplicateSignatureError(ValueError):
    """The same class/method/parameter-type signature was resolved twice."""


# --------------------------
# Registry
# --------------------------

class IdentifierRegistry:
    """
    Identifiers assigned during one run, mapped to the signature that owns them.
    """

    def __init__(self) -> None:
        self._owners: Dict[str, Tuple[str, str]] = {}

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._owners

    def __len__(self) -> int:
        return len(self._owners)

    def __iter__(self) -> Iterator[str]:
        return iter(self._owners)

    def claim(self, identifier: str, class_name: str, method: MethodDescriptor) -> None:
        owner = (class_name, method.signature_key)
        existing = self._owners.get(identifier)
        if existing is None:
            self._owners[identifier] = owner
            return
        if existing == owner:
            raise DuplicateSignatureError(
                f"{class_name}::{method.signature_key} is declared more than once"
            )
        raise IdentifierCollisionError(
            f"Identifier '{identifier}' generated for {class_name}::{method.signature_key} "
            f"is already used by {existing[0]}::{existing[1]}"
        )


# --------------------------
# Parameter sanitation
# --------------------------

def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9_]", "_", name.lower())


def is_valid_identifier(name: str) -> bool:
    return bool(name) and _IDENTIFIER_RE.match(name) is not None


def type_name_hint(spelling: str) -> Optional[str]:
    return TYPE_NAME_HINTS.get(normalize_type(spelling))


def _usable(name: str, reserved: AbstractSet[str]) -> bool:
    return is_valid_identifier(name) and name not in reserved


def sanitize_parameters(
    parameters: Sequence[ParameterDescriptor],
    reserved: AbstractSet[str] = RESERVED_PARAMETER_NAMES,
) -> Tuple[ParameterDescriptor, ...]:
    """
    Return the parameters with every name replaced by a valid C identifier.
    Valid names are kept unless they are reserved by the glue frame.
    The others get the type hint if one exists and no other parameter of the
    method uses it, else 'param_<index>' (suffixed '_2', '_3'... while taken).
    """
    taken = {p.name for p in parameters if _usable(p.name, reserved)}
    out: List[ParameterDescriptor] = []
    for index, p in enumerate(parameters):
        if _usable(p.name, reserved):
            out.append(p)
            continue
        hint = type_name_hint(p.type)
        if hint and hint not in taken and hint not in reserved:
            name = hint
        else:
            name = base = f"param_{index}"
            n = 2
            while name in taken:
                name = f"{base}_{n}"
                n += 1
        taken.add(name)
        out.append(ParameterDescriptor(type=p.type, name=name))
    return tuple(out)


# --------------------------
# Resolver
# --------------------------

@dataclass(frozen=True)
class ResolvedName:
    identifier: str
    parameters: Tuple[ParameterDescriptor, ...]


class NameResolver:
    """
    Builds identifiers of the form '<prefix>_<class>_<method>_<tokens>'.
    """

    def __init__(self, prefix: str = "m5unified", mapper: Optional[TypeMapper] = None) -> None:
        self.prefix = prefix
        self.mapper = mapper or TypeMapper()

    def identifier_for(self, class_name: str, method: MethodDescriptor) -> str:
        base = f"{self.prefix}_{_slug(class_name)}_{_slug(method.name)}"
        if not method.parameters:
            return f"{base}_void"
        tokens = "_".join(self.mapper.type_token(p.type) for p in method.parameters)
        return f"{base}_{tokens}"

    def resolve(self, class_name: str, method: MethodDescriptor, used_identifiers: IdentifierRegistry) -> ResolvedName:
        identifier = self.identifier_for(class_name, method)
        used_identifiers.claim(identifier, class_name, method)
        return ResolvedName(identifier=identifier, parameters=sanitize_parameters(method.parameters))


__all__ = [
    "NameResolver",
    "ResolvedName",
    "IdentifierRegistry",
    "IdentifierCollisionError",
    "DuplicateSignatureError",
    "TYPE_NAME_HINTS",
    "RESERVED_PARAMETER_NAMES",
    "is_valid_identifier",
    "sanitize_parameters",
    "type_name_hint",
]

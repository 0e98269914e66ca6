#!/usr/bin/env python3
"""
Signature admissibility for automatic binding generation.

A method can be bound automatically only if every type in its signature is one
the mruby/c bridge can pass by value or as an opaque handle. Three shapes are
rejected on sight, by pattern over the type spelling (no type resolution):

- function-pointer declarators:   void (*cb)(int), void (*)(int)
- template instantiations:        std::vector<int>, std::function<void()>
- rvalue references:              Data&&

Rejected methods are expected steady-state output, not errors: the
orchestrator counts them as filtered and moves on.
"""

from __future__ import annotations

from typing import Optional
import re

from .models import MethodDescriptor


_FUNCTION_POINTER_RE = re.compile(r"\(\s*[\w:]*\s*\*")
_TEMPLATE_RE = re.compile(r"<[^<>]*\w[^<>]*>")


def unsupported_shape(spelling: str) -> Optional[str]:
    """
    Name of the unsupported shape found in a type spelling, or None.
    """
    s = spelling or ""
    if _FUNCTION_POINTER_RE.search(s):
        return "function pointer"
    if _TEMPLATE_RE.search(s):
        return "template instantiation"
    if "&&" in s:
        return "rvalue reference"
    return None


class SignatureFilter:
    """
    Decides whether a method's return type and parameters are representable.
    """

    def rejection_reason(self, method: MethodDescriptor) -> Optional[str]:
        shape = unsupported_shape(method.return_type)
        if shape:
            return f"{shape} in return type '{method.return_type}'"
        for p in method.parameters:
            shape = unsupported_shape(p.type)
            if shape:
                return f"{shape} in parameter type '{p.type}'"
        return None

    def is_representable(self, method: MethodDescriptor) -> bool:
        return self.rejection_reason(method) is None


__all__ = [
    "SignatureFilter",
    "unsupported_shape",
]

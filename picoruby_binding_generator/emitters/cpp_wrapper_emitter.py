#!/usr/bin/env python3
"""
Emitter for the native side of each binding: an extern "C" bridge function that
performs exactly one call into the real C++ API.

    int m5unified_button_waspressed_void(void) {
      return M5.Button.wasPressed() ? 1 : 0;
    }

Return handling depends on the return category:
- BOOLEAN: the bridge returns int, the native result goes through '? 1 : 0'
- VOID: the call is a bare statement, no return
- anything else: returned as TypeMapper.bridge_type(), i.e. scalars by value
  ('const uint8_t&' -> 'uint8_t'), strings and handles as declared

Call path:
- static methods:       Class::method(args)
- the root class:       M5.method(args)
- other classes:        M5.<accessor>.method(args), accessor from the context map
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from ..models import GenerationContext, MethodDescriptor, ParameterDescriptor
from ..type_mapping import TypeMapper, ValueCategory
from ..utils import TemplateRenderer


# --------------------------
# Configuration
# --------------------------

@dataclass(frozen=True)
class WrapperEmitterConfig:
    wrapper_template: str = "wrapper.cpp.j2"
    indent: str = "  "


# --------------------------
# Emitter
# --------------------------

class CppWrapperEmitter:
    """
    Emit bridge functions and assemble them into the native wrapper source.

    Usage:
        emitter = CppWrapperEmitter(ctx, renderer)
        fragment = emitter.emit(method, identifier, params, ValueCategory.VOID, class_name="Display")
        source = emitter.render_file([fragment])
    """

    def __init__(
        self,
        ctx: GenerationContext,
        renderer: Optional[TemplateRenderer] = None,
        config: Optional[WrapperEmitterConfig] = None,
        mapper: Optional[TypeMapper] = None,
    ) -> None:
        self.ctx = ctx
        self.renderer = renderer
        self.config = config or WrapperEmitterConfig()
        self.mapper = mapper or TypeMapper()

    # ---- Public API ----

    def call_path(self, class_name: str, method: MethodDescriptor) -> str:
        if method.is_static:
            return f"{class_name}::{method.name}"
        if class_name == self.ctx.root_class:
            return f"{self.ctx.root_object}.{method.name}"
        accessor = self.ctx.member_accessors.get(class_name, class_name)
        return f"{self.ctx.root_object}.{accessor}.{method.name}"

    def emit(
        self,
        method: MethodDescriptor,
        identifier: str,
        parameters: Sequence[ParameterDescriptor],
        return_category: ValueCategory,
        *,
        class_name: str,
    ) -> str:
        """
        Bridge function for an automatically bound method. `parameters` are the
        sanitized parameters. The signature uses TypeMapper.bridge_type(), so
        it matches the glue's extern declaration; the native call still binds
        scalars to reference parameters and reference returns.
        """
        ind = self.config.indent
        param_list = ", ".join(f"{self.mapper.bridge_type(p.type)} {p.name}" for p in parameters) or "void"
        args = ", ".join(self._argument(p) for p in parameters)
        call = f"{self.call_path(class_name, method)}({args})"

        if return_category == ValueCategory.BOOLEAN:
            ret_type = "int"
            body = f"{ind}return {call} ? 1 : 0;"
        elif return_category == ValueCategory.VOID:
            ret_type = "void"
            body = f"{ind}{call};"
        else:
            ret_type = self.mapper.bridge_type(method.return_type)
            body = f"{ind}return {call};"

        return f"{ret_type} {identifier}({param_list}) {{\n{body}\n}}\n"

    def emit_custom(self, fragment: str) -> str:
        return fragment

    def render_file(self, fragments: Sequence[str]) -> str:
        if self.renderer is None:
            raise RuntimeError("CppWrapperEmitter.render_file requires a TemplateRenderer")
        context = {
            "gem_name": self.ctx.gem_name,
            "native_header": self.ctx.native_header,
            "fragments": [f.rstrip() for f in fragments],
        }
        return self.renderer.render(self.config.wrapper_template, context)

    # ---- Internals ----

    def _argument(self, p: ParameterDescriptor) -> str:
        # Booleans arrive as int; keep overload resolution on the bool overload
        if self.mapper.classify(p.type) == ValueCategory.BOOLEAN:
            return f"{p.name} != 0"
        return p.name


__all__ = [
    "CppWrapperEmitter",
    "WrapperEmitterConfig",
]

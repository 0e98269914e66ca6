#!/usr/bin/env python3
"""
Emitter for the runtime side of each binding: a mruby/c glue function that
unpacks the call frame, calls the bridge and sets the return value.

    extern void m5unified_display_drawpixel_int_int(int x, int y);

    static void mrbc_m5unified_display_drawpixel_int_int(mrbc_vm *vm, mrbc_value *v, int argc) {
      int x = GET_INT_ARG(1);
      int y = GET_INT_ARG(2);
      m5unified_display_drawpixel_int_int(x, y);
      SET_NIL_RETURN();
    }

The assembled file ends with the gem initializer, which defines one runtime
class per native class and registers every glue function on it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set
import re

from ..models import GenerationContext, MethodDescriptor, ParameterDescriptor
from ..type_mapping import TypeMapper, ValueCategory, arg_accessor, return_setter
from ..utils import TemplateRenderer, camel_to_snake


# --------------------------
# Configuration
# --------------------------

@dataclass(frozen=True)
class BindingEmitterConfig:
    binding_template: str = "binding.c.j2"
    function_prefix: str = "mrbc_"
    indent: str = "  "


@dataclass(frozen=True)
class Registration:
    """
    One `mrbc_define_method` call in the gem initializer.
    """
    class_name: str
    ruby_name: str
    function: str


# --------------------------
# Naming helpers
# --------------------------

def ruby_class_name(class_name: str) -> str:
    """
    Constant name for the runtime class: 'IMU_Class' -> 'IMU_Class', 'ns::foo' -> 'Ns_foo'
    """
    s = re.sub(r"[^A-Za-z0-9_]+", "_", class_name).strip("_") or "Anonymous"
    return s[0].upper() + s[1:]


def ruby_method_name(
    method: MethodDescriptor,
    return_category: ValueCategory,
    taken: Set[str],
    mapper: Optional[TypeMapper] = None,
) -> str:
    """
    'wasPressed' -> 'was_pressed?' (zero-argument predicate), 'drawPixel' -> 'draw_pixel'.
    Names already registered on the class get the parameter type tokens appended.
    """
    mapper = mapper or TypeMapper()
    base = camel_to_snake(method.name)
    suffix = "?" if return_category == ValueCategory.BOOLEAN and not method.parameters else ""
    name = base + suffix
    if name in taken:
        tokens = "_".join(mapper.type_token(p.type) for p in method.parameters) or "void"
        name = f"{base}_{tokens}{suffix}"
        n = 2
        while name in taken:
            name = f"{base}_{tokens}_{n}{suffix}"
            n += 1
    return name


# --------------------------
# Emitter
# --------------------------

class CBindingEmitter:
    """
    Emit glue functions and the glue source file.

    Usage:
        emitter = CBindingEmitter(ctx, renderer)
        decl = emitter.declaration(method, identifier, params)
        body = emitter.emit(method, identifier, params, param_categories, return_category)
        source = emitter.render_file([decl], [body], registrations)
    """

    def __init__(
        self,
        ctx: GenerationContext,
        renderer: Optional[TemplateRenderer] = None,
        config: Optional[BindingEmitterConfig] = None,
        mapper: Optional[TypeMapper] = None,
    ) -> None:
        self.ctx = ctx
        self.renderer = renderer
        self.config = config or BindingEmitterConfig()
        self.mapper = mapper or TypeMapper()

    # ---- Public API ----

    def function_name(self, identifier: str) -> str:
        return f"{self.config.function_prefix}{identifier}"

    def declaration(
        self,
        method: MethodDescriptor,
        identifier: str,
        parameters: Sequence[ParameterDescriptor],
    ) -> str:
        ret = self.mapper.c_type(method.return_type)
        params = ", ".join(f"{self.mapper.c_type(p.type)} {p.name}" for p in parameters) or "void"
        return f"extern {ret} {identifier}({params});"

    def emit(
        self,
        method: MethodDescriptor,
        identifier: str,
        parameters: Sequence[ParameterDescriptor],
        parameter_categories: Sequence[ValueCategory],
        return_category: ValueCategory,
    ) -> str:
        if len(parameters) != len(parameter_categories):
            raise ValueError(
                f"{identifier}: {len(parameters)} parameters but {len(parameter_categories)} categories"
            )
        ind = self.config.indent
        lines: List[str] = [
            f"static void {self.function_name(identifier)}(mrbc_vm *vm, mrbc_value *v, int argc) {{"
        ]
        for position, (p, category) in enumerate(zip(parameters, parameter_categories), start=1):
            lines.append(f"{ind}{self.mapper.c_type(p.type)} {p.name} = {arg_accessor(category, position)};")

        call = f"{identifier}({', '.join(p.name for p in parameters)})"
        if return_category == ValueCategory.VOID:
            lines.append(f"{ind}{call};")
        else:
            lines.append(f"{ind}{self.mapper.c_type(method.return_type)} result = {call};")
        lines.append(f"{ind}{return_setter(return_category, 'result')}")
        lines.append("}")
        return "\n".join(lines) + "\n"

    def emit_custom(self, fragment: str) -> str:
        return fragment

    def render_file(
        self,
        declarations: Sequence[str],
        fragments: Sequence[str],
        registrations: Sequence[Registration],
    ) -> str:
        if self.renderer is None:
            raise RuntimeError("CBindingEmitter.render_file requires a TemplateRenderer")
        context = {
            "gem_name": self.ctx.gem_name,
            "gem_c_name": self.ctx.gem_c_name,
            "declarations": list(declarations),
            "fragments": [f.rstrip() for f in fragments],
            "classes": self._group_registrations(registrations),
        }
        return self.renderer.render(self.config.binding_template, context)

    # ---- Internals ----

    @staticmethod
    def _group_registrations(registrations: Sequence[Registration]) -> List[Dict[str, object]]:
        grouped: Dict[str, List[Registration]] = {}
        for r in registrations:
            grouped.setdefault(r.class_name, []).append(r)
        return [
            {
                "name": name,
                "ruby_name": ruby_class_name(name),
                "var": "c_" + re.sub(r"[^a-z0-9_]", "_", name.lower()),
                "methods": regs,
            }
            for name, regs in grouped.items()
        ]


__all__ = [
    "BindingEmitterConfig",
    "CBindingEmitter",
    "Registration",
    "ruby_class_name",
    "ruby_method_name",
]

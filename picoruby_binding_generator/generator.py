#!/usr/bin/env python3
"""
Generation orchestrator: turns class descriptors into an mruby/c gem.

Every method goes through the same decision chain, in input order:

    override lookup  -> Skip      : skipped_by_override
                     -> Custom    : custom + generated (override fragments verbatim)
    signature filter -> rejected  : filtered
    name resolution  -> duplicate : filtered   (collision: IdentifierCollisionError)
    emitters                      : generated

The fragments are then assembled with the Jinja2 templates into the output
layout below and written atomically (dry-run aware):

- <output_dir>/mrbgem.rake
- <output_dir>/CMakeLists.txt
- <output_dir>/README.md
- <output_dir>/mrblib/<gem>.rb
- <output_dir>/src/<gem>.c
- <output_dir>/ports/esp32/<gem>_wrapper.cpp

Each generate() call owns a fresh identifier registry and fresh stats, so runs
are independent and identical inputs give byte-identical files.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple
import logging
import re

from .emitters.c_binding_emitter import (
    CBindingEmitter,
    Registration,
    ruby_class_name,
    ruby_method_name,
)
from .emitters.cpp_wrapper_emitter import CppWrapperEmitter
from .models import ClassDescriptor, GenerationContext, GenerationStats, MethodDescriptor, count_methods
from .naming import DuplicateSignatureError, IdentifierRegistry, NameResolver
from .overrides import CustomOverride, OverrideRegistry, SkipOverride, default_registry
from .signature_filter import SignatureFilter
from .type_mapping import TypeMapper
from .utils import TemplateRenderer, write_text

logger = logging.getLogger(__name__)


# --------------------------
# Configuration / results
# --------------------------

@dataclass(frozen=True)
class ScaffoldConfig:
    license: str = "MIT"
    author: str = "picoruby-binding-generator"
    summary: str = ""
    rake_template: str = "mrbgem.rake.j2"
    cmake_template: str = "CMakeLists.txt.j2"
    readme_template: str = "README.md.j2"
    stub_template: str = "stub.rb.j2"


@dataclass
class GenerationResult:
    stats: GenerationStats
    wrapper_source: str
    binding_source: str
    # output-relative POSIX path -> content, in write order
    files: Dict[str, str] = field(default_factory=dict)
    contract_problems: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "stats": self.stats.to_dict(),
            "files": sorted(self.files),
            "contract_problems": list(self.contract_problems),
        }


@dataclass
class _RunState:
    identifiers: IdentifierRegistry = field(default_factory=IdentifierRegistry)
    stats: GenerationStats = field(default_factory=GenerationStats)
    declarations: List[str] = field(default_factory=list)
    wrapper_fragments: List[str] = field(default_factory=list)
    binding_fragments: List[str] = field(default_factory=list)
    registrations: List[Registration] = field(default_factory=list)
    ruby_names: Dict[str, Set[str]] = field(default_factory=dict)
    custom_fragments: Set[Tuple[str, str]] = field(default_factory=set)


# --------------------------
# Cross-artifact contract
# --------------------------

_WRAPPER_DEF_RE = re.compile(
    r'^(?:extern\s+"C"\s+)?([A-Za-z_][\w:<>,\s\*&]*?)\b([A-Za-z_]\w*)\s*\(([^;{)]*)\)\s*\{',
    re.MULTILINE,
)
_GLUE_EXTERN_RE = re.compile(r"^extern\s+([^;(]*?)\b([A-Za-z_]\w*)\s*\(([^;]*)\)\s*;", re.MULTILINE)
_NAMED_PARAM_RE = re.compile(r"^(.*?[\s\*&])\s*[A-Za-z_]\w*$")

Signature = Tuple[str, Tuple[str, ...]]


def _abi_shape(type_text: str) -> str:
    """
    'const uint32_t&' -> 'pointer', 'void*' -> 'pointer', 'uint32_t' -> 'uint32_t'
    """
    s = re.sub(r"\b(?:const|volatile|struct|class|enum)\b", " ", type_text)
    if "*" in s or "&" in s:
        return "pointer"
    return " ".join(s.split())


def _signature(return_text: str, params_text: str) -> Signature:
    params = params_text.strip()
    shapes: List[str] = []
    if params not in ("", "void"):
        for p in params.split(","):
            p = p.strip()
            m = _NAMED_PARAM_RE.match(p)
            shapes.append(_abi_shape(m.group(1) if m else p))
    return _abi_shape(return_text), tuple(shapes)


def _describe(sig: Signature) -> str:
    return f"{sig[0]}({', '.join(sig[1]) or 'void'})"


def check_binding_contract(wrapper_source: str, binding_source: str) -> List[str]:
    """
    Compare the two artifacts. Every bridge declared extern in the glue file
    must be defined exactly once in the wrapper file and called by the glue,
    and every bridge defined in the wrapper must be declared in the glue.
    Both sides must agree on the return and parameter types at the ABI level:
    pointers and references are one shape, scalars must match by spelling.
    Returns a list of human-readable problems (empty when consistent).
    """
    defined: Counter = Counter()
    declared: Counter = Counter()
    defined_sigs: Dict[str, Signature] = {}
    declared_sigs: Dict[str, Signature] = {}
    for ret, name, params in _WRAPPER_DEF_RE.findall(wrapper_source):
        defined[name] += 1
        defined_sigs.setdefault(name, _signature(ret, params))
    for ret, name, params in _GLUE_EXTERN_RE.findall(binding_source):
        declared[name] += 1
        declared_sigs.setdefault(name, _signature(ret, params))
    problems: List[str] = []

    for name, n in sorted(defined.items()):
        if n > 1:
            problems.append(f"{name} is defined {n} times in the wrapper")
        if name not in declared:
            problems.append(f"{name} is defined in the wrapper but not declared in the glue")
    for name, n in sorted(declared.items()):
        if n > 1:
            problems.append(f"{name} is declared {n} times in the glue")
        if name not in defined:
            problems.append(f"{name} is declared in the glue but not defined in the wrapper")
        elif defined_sigs[name] != declared_sigs[name]:
            problems.append(
                f"{name} is defined as {_describe(defined_sigs[name])} in the wrapper "
                f"but declared as {_describe(declared_sigs[name])} in the glue"
            )
        uses = len(re.findall(rf"\b{re.escape(name)}\s*\(", binding_source))
        if uses <= n:
            problems.append(f"{name} is declared in the glue but never called")
    return problems


# --------------------------
# Orchestrator
# --------------------------

class GenerationOrchestrator:
    """
    Usage:
        orchestrator = GenerationOrchestrator(ctx)
        result = orchestrator.generate(classes)
        print(result.stats.generated_count)
    """

    def __init__(
        self,
        ctx: GenerationContext,
        overrides: Optional[OverrideRegistry] = None,
        renderer: Optional[TemplateRenderer] = None,
        mapper: Optional[TypeMapper] = None,
        scaffold: Optional[ScaffoldConfig] = None,
    ) -> None:
        self.ctx = ctx
        self.overrides = overrides if overrides is not None else default_registry()
        self.renderer = renderer or TemplateRenderer(ctx.templates_dir)
        self.mapper = mapper or TypeMapper()
        self.scaffold = scaffold or ScaffoldConfig()
        self.signature_filter = SignatureFilter()
        self.resolver = NameResolver(prefix=ctx.prefix, mapper=self.mapper)
        self.wrapper_emitter = CppWrapperEmitter(ctx, self.renderer, mapper=self.mapper)
        self.binding_emitter = CBindingEmitter(ctx, self.renderer, mapper=self.mapper)

    # ---- Public API ----

    def generate(self, classes: Sequence[ClassDescriptor]) -> GenerationResult:
        state = _RunState()
        for cls in classes:
            for method in cls.methods:
                self._process_method(state, cls, method)

        stats = state.stats
        logger.debug("Processed %d of %d method(s)", stats.total_processed, count_methods(classes))

        wrapper_source = self.wrapper_emitter.render_file(state.wrapper_fragments)
        binding_source = self.binding_emitter.render_file(
            state.declarations, state.binding_fragments, state.registrations
        )
        problems = check_binding_contract(wrapper_source, binding_source)
        for problem in problems:
            logger.warning("Binding contract: %s", problem)

        files = self._assemble(classes, state, wrapper_source, binding_source)
        self._write(files)

        logger.info(
            "Generated %d binding(s) (%d custom), filtered %d, skipped by override %d",
            stats.generated_count,
            stats.custom_override_count,
            stats.filtered_count,
            stats.skipped_by_override,
        )
        return GenerationResult(
            stats=stats,
            wrapper_source=wrapper_source,
            binding_source=binding_source,
            files=files,
            contract_problems=problems,
        )

    # ---- Per-method processing ----

    def _process_method(self, state: _RunState, cls: ClassDescriptor, method: MethodDescriptor) -> None:
        qualified = f"{cls.name}::{method.name}"
        stats = state.stats

        entry = self.overrides.lookup(cls.name, method.name)
        if isinstance(entry, SkipOverride):
            stats.skipped_by_override += 1
            stats.skipped.append((qualified, entry.reason))
            logger.info("Skipping %s: %s", qualified, entry.reason)
            return
        if isinstance(entry, CustomOverride):
            self._process_custom(state, cls, method, entry)
            return

        reason = self.signature_filter.rejection_reason(method)
        if reason:
            stats.filtered_count += 1
            logger.debug("Filtered %s: %s", method.cpp_signature, reason)
            return

        try:
            resolved = self.resolver.resolve(cls.name, method, state.identifiers)
        except DuplicateSignatureError as e:
            stats.filtered_count += 1
            logger.debug("Filtered %s: %s", method.cpp_signature, e)
            return

        return_category = self.mapper.classify(method.return_type)
        param_categories = [self.mapper.classify(p.type) for p in resolved.parameters]

        state.wrapper_fragments.append(
            self.wrapper_emitter.emit(
                method, resolved.identifier, resolved.parameters, return_category, class_name=cls.name
            )
        )
        state.declarations.append(
            self.binding_emitter.declaration(method, resolved.identifier, resolved.parameters)
        )
        state.binding_fragments.append(
            self.binding_emitter.emit(
                method, resolved.identifier, resolved.parameters, param_categories, return_category
            )
        )
        taken = state.ruby_names.setdefault(cls.name, set())
        ruby_name = ruby_method_name(method, return_category, taken, self.mapper)
        self._register(state, cls.name, ruby_name, self.binding_emitter.function_name(resolved.identifier))
        stats.generated_count += 1

    def _process_custom(
        self,
        state: _RunState,
        cls: ClassDescriptor,
        method: MethodDescriptor,
        entry: CustomOverride,
    ) -> None:
        qualified = f"{cls.name}::{method.name}"
        stats = state.stats

        rendered = entry.render(method)
        if rendered is None:
            reason = f"custom override does not cover {method.cpp_signature}"
        elif rendered in state.custom_fragments:
            # Constant fragments repeat for every overload of the method
            reason = f"custom override already emitted for another overload of {qualified}"
        else:
            reason = ""
        if reason:
            stats.skipped_by_override += 1
            stats.skipped.append((qualified, reason))
            logger.info("Skipping %s: %s", qualified, reason)
            return

        assert rendered is not None
        state.custom_fragments.add(rendered)
        cpp_code, c_code = rendered
        state.wrapper_fragments.append(self.wrapper_emitter.emit_custom(cpp_code))
        state.binding_fragments.append(self.binding_emitter.emit_custom(c_code))
        if entry.function:
            taken = state.ruby_names.setdefault(cls.name, set())
            ruby_name = entry.ruby_name or ruby_method_name(
                method, self.mapper.classify(method.return_type), taken, self.mapper
            )
            self._register(state, cls.name, ruby_name, entry.function)
        stats.custom_override_count += 1
        stats.generated_count += 1
        logger.debug("Custom override used for %s", qualified)

    @staticmethod
    def _register(state: _RunState, class_name: str, ruby_name: str, function: str) -> None:
        state.ruby_names.setdefault(class_name, set()).add(ruby_name)
        state.registrations.append(Registration(class_name=class_name, ruby_name=ruby_name, function=function))

    # ---- Assembly ----

    def _relpath(self, path: Path) -> str:
        return path.relative_to(self.ctx.output_dir).as_posix()

    def _assemble(
        self,
        classes: Sequence[ClassDescriptor],
        state: _RunState,
        wrapper_source: str,
        binding_source: str,
    ) -> Dict[str, str]:
        ctx = self.ctx
        methods_by_class: Dict[str, List[str]] = {}
        for r in state.registrations:
            methods_by_class.setdefault(r.class_name, []).append(r.ruby_name)

        class_rows: List[Dict[str, object]] = []
        seen: Set[str] = set()
        for cls in classes:
            if cls.name in seen:
                continue
            seen.add(cls.name)
            class_rows.append({
                "name": cls.name,
                "ruby_name": ruby_class_name(cls.name),
                "methods": methods_by_class.get(cls.name, []),
            })

        wrapper_rel = self._relpath(ctx.wrapper_path)
        binding_rel = self._relpath(ctx.binding_path)
        context = {
            "gem_name": ctx.gem_name,
            "license": self.scaffold.license,
            "author": self.scaffold.author,
            "summary": self.scaffold.summary or f"{ctx.native_header.rsplit('.', 1)[0]} bindings for PicoRuby",
            "native_component": ctx.native_component,
            "wrapper_relpath": wrapper_rel,
            "binding_relpath": binding_rel,
            "classes": class_rows,
            "stats": state.stats.to_dict(),
        }

        return {
            "mrbgem.rake": self.renderer.render(self.scaffold.rake_template, context),
            "CMakeLists.txt": self.renderer.render(self.scaffold.cmake_template, context),
            "README.md": self.renderer.render(self.scaffold.readme_template, context),
            self._relpath(ctx.stub_path): self.renderer.render(self.scaffold.stub_template, context),
            binding_rel: binding_source,
            wrapper_rel: wrapper_source,
        }

    def _write(self, files: Dict[str, str]) -> None:
        for rel, content in files.items():
            write_text(self.ctx.output_dir / rel, content, dry_run=self.ctx.dry_run)
        if not self.ctx.dry_run:
            logger.info("Generation complete under: %s", self.ctx.output_dir)


__all__ = [
    "GenerationOrchestrator",
    "GenerationResult",
    "ScaffoldConfig",
    "check_binding_contract",
]

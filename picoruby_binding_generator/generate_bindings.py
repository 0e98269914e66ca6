#!/usr/bin/env python3
"""
PicoRuby (mruby/c) binding generator for C++ libraries.

This entrypoint wires together:
- Input: libclang parsing of headers, or JSON class descriptors
- Overrides: the built-in M5Unified table, optionally merged with a JSON file
- Generation: paired C++ bridge / mruby/c glue emission and gem scaffolding

Outputs:
- <output_dir>/mrbgem.rake
- <output_dir>/CMakeLists.txt
- <output_dir>/README.md
- <output_dir>/mrblib/<gem>.rb
- <output_dir>/src/<gem>.c
- <output_dir>/ports/esp32/<gem>_wrapper.cpp
- <optional> <output_dir>/manifest.json (for introspection and replay)

Usage (example):
  python -m picoruby_binding_generator \
    --headers vendor/M5Unified/src \
    --clang-args "-Ivendor/M5Unified/src -Ivendor/M5GFX/src -DARDUINO" \
    --output-dir build/picoruby-m5unified

  python -m picoruby_binding_generator --descriptors classes.json --output-dir out

Notes:
- Header parsing needs libclang; --descriptors does not.
"""

from __future__ import annotations

import argparse
import re
import sys
import shlex
from pathlib import Path
from typing import List, Optional, Sequence
import logging

logger = logging.getLogger(__name__)

# Local modules
from .generator import GenerationOrchestrator
from .manifest import emit_manifest
from .models import DEFAULT_MEMBER_ACCESSORS, ClassDescriptor, GenerationContext, count_methods
from .naming import IdentifierCollisionError
from .overrides import MalformedOverrideError, OverrideRegistry, default_registry, load_overrides
from .parsing.descriptor_loader import DescriptorError, dump_class_descriptors, load_class_descriptors
from .utils import TemplateRenderer, configure_logging, write_text


# --------------------------
# Helpers
# --------------------------

HEADER_SUFFIXES = (".h", ".hpp", ".hh", ".hxx")


def discover_header_files(paths: List[str]) -> List[Path]:
    """
    Expand files and directories into a unique list of header files.
    Directory contents are sorted so discovery order is stable.
    """
    results: List[Path] = []
    for p in paths:
        pp = Path(p)
        if pp.is_file() and pp.suffix.lower() in HEADER_SUFFIXES:
            results.append(pp.resolve())
        elif pp.is_dir():
            results.extend(sorted(f.resolve() for f in pp.rglob("*") if f.suffix.lower() in HEADER_SUFFIXES))
        else:
            logger.warning("Skipping non-existent path: %s", p)

    # De-duplicate preserving order
    seen: set[str] = set()
    unique: List[Path] = []
    for f in results:
        s = str(f)
        if s in seen:
            continue
        seen.add(s)
        unique.append(f)
    return unique


def parse_accessors(items: Sequence[str]) -> dict:
    """
    ['IMU_Class=Imu', ...] -> {'IMU_Class': 'Imu', ...}
    """
    accessors = dict(DEFAULT_MEMBER_ACCESSORS)
    for item in items:
        cls, sep, accessor = item.partition("=")
        if not sep or not cls.strip() or not accessor.strip():
            raise ValueError(f"Invalid --accessor '{item}', expected Class=Accessor")
        accessors[cls.strip()] = accessor.strip()
    return accessors


# --------------------------
# CLI
# --------------------------

def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Generate mruby/c (PicoRuby) bindings for a C++ library")

    p.add_argument(
        "--headers",
        action="append",
        default=[],
        help="Header file or directory to parse with libclang (repeatable). Directories are searched for .h/.hpp/.hh/.hxx files.",
    )
    p.add_argument(
        "--descriptors",
        action="append",
        default=[],
        help="JSON class descriptor file to generate from (repeatable). Used instead of, or in addition to, --headers.",
    )
    p.add_argument(
        "--clang-args",
        default="",
        help="Additional clang arguments (e.g., -I/path/include -DARDUINO -std=c++17)",
    )
    p.add_argument(
        "--exclude-regex",
        default="",
        help="Regex to exclude classes by name when parsing headers.",
    )
    p.add_argument(
        "--include-filter",
        action="append",
        default=[],
        help="Only include classes whose definition file path starts with any of these prefixes. Repeatable.",
    )
    p.add_argument(
        "--overrides",
        action="append",
        default=[],
        help="JSON override file merged over the built-in table (repeatable, later files win).",
    )
    p.add_argument(
        "--no-default-overrides",
        action="store_true",
        help="Do not use the built-in M5Unified override table.",
    )
    p.add_argument(
        "--output-dir",
        default="generated",
        help="Output directory for the generated gem.",
    )
    p.add_argument(
        "--gem-name",
        default="m5unified",
        help="Gem name; the package is picoruby-<gem-name>.",
    )
    p.add_argument(
        "--prefix",
        default="m5unified",
        help="Namespace prefix of every generated bridge identifier.",
    )
    p.add_argument(
        "--native-header",
        default="M5Unified.h",
        help="Header included by the native wrapper.",
    )
    p.add_argument(
        "--native-component",
        default="m5unified",
        help="ESP-IDF component the gem links against.",
    )
    p.add_argument(
        "--root-object",
        default="M5",
        help="Library singleton native calls go through.",
    )
    p.add_argument(
        "--root-class",
        default="M5Unified",
        help="Class whose methods are called directly on the root object.",
    )
    p.add_argument(
        "--accessor",
        action="append",
        default=[],
        help="Member accessor for a class, as Class=Accessor (e.g. IMU_Class=Imu). Repeatable.",
    )
    p.add_argument(
        "--templates-dir",
        default=None,
        help="Optional templates directory. If omitted, package templates are used.",
    )
    p.add_argument(
        "--dump-descriptors",
        default=None,
        help="Write the parsed class descriptors to this JSON file.",
    )
    p.add_argument(
        "--no-manifest",
        action="store_true",
        help="Do not emit the JSON manifest alongside generated sources.",
    )
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the full generation and report coverage without writing files.",
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for DEBUG)."
    )
    p.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Decrease verbosity (-q for WARNING, -qq for ERROR)."
    )
    p.add_argument(
        "--log-level",
        choices=["CRITICAL","ERROR","WARNING","INFO","DEBUG","NOTSET","critical","error","warning","info","debug","notset"],
        default=None,
        help="Explicit log level (overrides -v/-q)."
    )
    p.add_argument(
        "--log-format",
        default="%(levelname)s: %(message)s",
        help="Logging format string."
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Optional file to write logs to."
    )

    return p.parse_args(argv)


def _log_level(ns: argparse.Namespace) -> int:
    if ns.log_level:
        return getattr(logging, str(ns.log_level).upper(), logging.INFO)
    if ns.verbose >= 1:
        return logging.DEBUG
    if ns.quiet >= 2:
        return logging.ERROR
    if ns.quiet == 1:
        return logging.WARNING
    return logging.INFO


def _build_overrides(ns: argparse.Namespace) -> OverrideRegistry:
    registry = OverrideRegistry() if ns.no_default_overrides else default_registry()
    for path in ns.overrides:
        registry = registry.merged(load_overrides(path))
    return registry


def _load_classes(ns: argparse.Namespace) -> List[ClassDescriptor]:
    classes: List[ClassDescriptor] = []
    if ns.descriptors:
        classes.extend(load_class_descriptors(ns.descriptors))

    if ns.headers:
        # Imported here so descriptor-only runs do not touch libclang
        from .parsing.clang_parser import collect_classes_from_headers

        headers = discover_header_files(ns.headers)
        if not headers:
            logger.warning("No headers found under %s", ", ".join(ns.headers))
        else:
            try:
                clang_args = shlex.split(ns.clang_args) if ns.clang_args else []
            except ValueError as ex:
                logger.warning("Falling back to naive clang args split due to parsing error: %s", ex)
                clang_args = [a for a in ns.clang_args.split(" ") if a.strip()]
            classes.extend(
                collect_classes_from_headers(
                    headers=headers,
                    clang_args=clang_args,
                    include_filters=ns.include_filter or None,
                    exclude_class_regex=re.compile(ns.exclude_regex) if ns.exclude_regex else None,
                )
            )
    return classes


# --------------------------
# Main
# --------------------------

def main(argv: Optional[Sequence[str]] = None) -> int:
    ns = parse_args(argv)

    # Configure logging as early as possible
    configure_logging(level=_log_level(ns), to_file=ns.log_file, fmt=ns.log_format)

    if not ns.headers and not ns.descriptors:
        logger.error("No input given. Provide --headers and/or --descriptors.")
        return 2

    try:
        ctx = GenerationContext(
            output_dir=Path(ns.output_dir).resolve(),
            gem_name=ns.gem_name,
            prefix=ns.prefix,
            native_header=ns.native_header,
            native_component=ns.native_component,
            root_object=ns.root_object,
            root_class=ns.root_class,
            member_accessors=parse_accessors(ns.accessor),
            templates_dir=Path(ns.templates_dir).resolve() if ns.templates_dir else None,
            dry_run=ns.dry_run,
        )
    except ValueError as e:
        logger.error("%s", e)
        return 2

    # Initialize renderer (layered: user dir -> package templates)
    try:
        renderer = TemplateRenderer(ctx.templates_dir)
    except Exception:
        logger.exception("Failed to initialize templating")
        return 1

    # Inputs: class descriptors and overrides
    try:
        classes = _load_classes(ns)
        overrides = _build_overrides(ns)
    except (DescriptorError, MalformedOverrideError):
        logger.exception("Invalid generator input")
        return 3
    except Exception:
        logger.exception("Failed to collect classes")
        return 3

    if not classes:
        logger.error("No classes found in the given inputs.")
        return 2

    logger.info("Discovered %d class(es), %d method(s)", len(classes), count_methods(classes))
    for c in classes:
        logger.debug("Class %s: %d method(s) from %s", c.name, len(c.methods), c.source_file or "<descriptors>")

    if ns.dump_descriptors:
        write_text(Path(ns.dump_descriptors), dump_class_descriptors(classes), dry_run=ctx.dry_run)

    # Generate
    try:
        orchestrator = GenerationOrchestrator(ctx, overrides=overrides, renderer=renderer)
        result = orchestrator.generate(classes)
    except IdentifierCollisionError:
        logger.exception("Identifier collision; no files were written")
        return 4
    except Exception:
        logger.exception("Failed to generate files")
        return 4

    stats = result.stats
    print(
        f"generated={stats.generated_count} custom={stats.custom_override_count} "
        f"filtered={stats.filtered_count} skipped_by_override={stats.skipped_by_override} "
        f"total={stats.total_processed}"
    )
    if ctx.dry_run:
        logger.info("Dry-run complete (no files written).")

    # Optional: emit a JSON manifest of the generation data for debugging/inspection.
    if not ns.no_manifest:
        try:
            emit_manifest(ctx, classes, stats, argv=sys.argv if argv is None else ["picoruby-bindgen", *argv])
        except Exception:
            logger.exception("Failed to emit generation manifest")
            return 5

    return 0


if __name__ == "__main__":
    sys.exit(main())

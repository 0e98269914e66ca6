import sys
import os
import platform
import shlex
from datetime import datetime, timezone
from importlib import metadata as importlib_metadata

import json
from typing import Optional, Sequence
from .models import ClassDescriptor, GenerationContext, GenerationStats, count_methods
from .utils import write_text

import logging
logger = logging.getLogger(__name__)


def _generator_version() -> Optional[str]:
    try:
        return importlib_metadata.version("picoruby-binding-generator")
    except importlib_metadata.PackageNotFoundError:
        pass
    # Fallback: package-level __version__ (source checkout)
    from . import __version__
    return __version__


def build_manifest(
    ctx: GenerationContext,
    classes: Sequence[ClassDescriptor],
    stats: GenerationStats,
    argv: Optional[Sequence[str]] = None,
) -> dict:
    """
    Snapshot of one run: generator metadata, invocation, configuration, the
    input descriptors and the resulting coverage counters.
    """
    argv = list(sys.argv if argv is None else argv)
    return {
        "generator": {
            "name": "picoruby-binding-generator",
            "version": _generator_version() or "unknown",
        },
        "invocation": {
            "argv": argv,
            "command_line": " ".join(shlex.quote(a) for a in argv),
        },
        "environment": {
            "python_version": sys.version,
            "platform": platform.platform(),
            "cwd": os.getcwd(),
            "timestamp_utc": datetime.now(timezone.utc).isoformat(),
        },
        "context": ctx.to_dict(),
        "class_count": len(classes),
        "method_count": count_methods(classes),
        "stats": stats.to_dict(),
        "classes": [c.to_dict() for c in classes],
    }


def emit_manifest(
    ctx: GenerationContext,
    classes: Sequence[ClassDescriptor],
    stats: GenerationStats,
    argv: Optional[Sequence[str]] = None,
) -> None:
    """
    Write <output_dir>/manifest.json. Its "classes" entry is a valid
    descriptor file, so a run can be replayed with --descriptors.
    """
    manifest = build_manifest(ctx, classes, stats, argv)
    write_text(ctx.output_dir / "manifest.json", json.dumps(manifest, indent=2) + "\n", dry_run=ctx.dry_run)

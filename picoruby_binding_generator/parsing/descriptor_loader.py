#!/usr/bin/env python3
"""
JSON boundary for class descriptors.

Lets an external parser (or a previous run's manifest) hand classes to the
generator without libclang. Accepted shapes:

    [{"name": "Button", "source_file": "...", "methods": [...]}, ...]
    {"classes": [...]}

Each method is {"name", "return_type", "parameters": [{"type", "name"}],
"is_static", "is_const", "is_virtual"}; see models.MethodDescriptor.from_dict.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Sequence, Union
import json
import logging

from ..models import ClassDescriptor, count_methods

logger = logging.getLogger(__name__)


class DescriptorError(ValueError):
    """A descriptor file is unreadable or has the wrong shape."""


def parse_class_descriptors(data: Any, source: str = "<data>") -> List[ClassDescriptor]:
    if isinstance(data, dict) and "classes" in data:
        data = data["classes"]
    if not isinstance(data, list):
        raise DescriptorError(f"{source}: expected a list of classes")

    classes: List[ClassDescriptor] = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise DescriptorError(f"{source}: class entry {i} is not an object")
        try:
            classes.append(ClassDescriptor.from_dict(item))
        except (KeyError, TypeError, AttributeError) as e:
            raise DescriptorError(f"{source}: class entry {i} is malformed: {e!r}") from e
    return classes


def load_class_descriptors(paths: Sequence[Union[str, Path]]) -> List[ClassDescriptor]:
    """
    Load and concatenate descriptors from one or more JSON files, in order.
    """
    classes: List[ClassDescriptor] = []
    for path in paths:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise DescriptorError(f"Cannot read descriptors from {path}: {e}") from e
        loaded = parse_class_descriptors(data, source=str(path))
        logger.debug("Loaded %d class(es), %d method(s) from %s", len(loaded), count_methods(loaded), path)
        classes.extend(loaded)
    return classes


def dump_class_descriptors(classes: Sequence[ClassDescriptor]) -> str:
    return json.dumps({"classes": [c.to_dict() for c in classes]}, indent=2) + "\n"


__all__ = [
    "DescriptorError",
    "dump_class_descriptors",
    "load_class_descriptors",
    "parse_class_descriptors",
]

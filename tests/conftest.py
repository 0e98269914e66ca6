import logging

import pytest

from picoruby_binding_generator.generator import GenerationOrchestrator
from picoruby_binding_generator.models import (
    ClassDescriptor,
    GenerationContext,
    MethodDescriptor,
    ParameterDescriptor,
)
from picoruby_binding_generator.overrides import OverrideRegistry
from picoruby_binding_generator.utils import TemplateRenderer


def method(name, return_type="void", params=(), **flags):
    """
    method("drawPixel", "void", [("int", "x"), ("int", "y")])
    """
    return MethodDescriptor(
        name=name,
        return_type=return_type,
        parameters=tuple(ParameterDescriptor(type=t, name=n) for t, n in params),
        **flags,
    )


def klass(name, *methods):
    return ClassDescriptor(name=name, methods=methods, source_file=f"{name}.h")


@pytest.fixture
def ctx(tmp_path):
    return GenerationContext(output_dir=tmp_path / "out")


@pytest.fixture(scope="session")
def renderer():
    return TemplateRenderer()


@pytest.fixture
def no_overrides():
    return OverrideRegistry()


@pytest.fixture
def orchestrator(ctx, renderer, no_overrides):
    return GenerationOrchestrator(ctx, overrides=no_overrides, renderer=renderer)


@pytest.fixture
def restore_logging():
    """
    The CLI reconfigures the root logger; put it back afterwards.
    """
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    pkg = logging.getLogger("picoruby_binding_generator")
    pkg_level = pkg.level
    yield
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    for h in handlers:
        if h not in root.handlers:
            root.addHandler(h)
    root.setLevel(level)
    pkg.setLevel(pkg_level)

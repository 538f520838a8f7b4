"""Snapshot naming.

A snapshot is named after the test that took it: ``{TestClass}_{test_name}``.
An explicit name passed by the caller replaces the whole default. The test
identity is carried in an explicit ``TestContext`` rather than looked up
from global runner state, so parallel workers never share it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

__all__ = ["TestContext", "SnapshotMetadata", "resolve_metadata", "default_name"]


@dataclass(frozen=True)
class TestContext:
    __test__ = False  # keep pytest from collecting this as a test class

    test_class_name: str
    test_name: str

    @classmethod
    def from_pytest_request(cls, request: Any) -> "TestContext":
        """Derive the context from a pytest ``request`` fixture.

        Test functions outside a class use their module's short name as the
        class component.
        """
        node = request.node
        owner = getattr(request, "cls", None)
        if owner is not None:
            class_name = owner.__name__
        else:
            module = getattr(request, "module", None)
            class_name = module.__name__.rsplit(".", 1)[-1] if module is not None else "tests"
        return cls(test_class_name=class_name, test_name=node.name)


@dataclass(frozen=True)
class SnapshotMetadata:
    name: str
    test_class_name: str
    test_name: str


def default_name(context: TestContext) -> str:
    return f"{context.test_class_name}_{context.test_name}"


def resolve_metadata(context: TestContext, override: Optional[str] = None) -> SnapshotMetadata:
    name = override if override is not None else default_name(context)
    return SnapshotMetadata(
        name=name, test_class_name=context.test_class_name, test_name=context.test_name
    )

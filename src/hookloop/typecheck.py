"""
Optional type-checking collaborator.

hookloop never type-checks anything itself. A host that can answer "does
this function return a stable reference?" plugs in through these protocols;
without one every verdict comes from the name-based heuristics.

hookloop/src/hookloop/typecheck.py
"""

from dataclasses import dataclass
from typing import Optional, Protocol

__all__ = ["ReturnTypeInfo", "TypeChecker", "TypeCheckerPool"]


@dataclass(frozen=True)
class ReturnTypeInfo:
    is_stable_return: bool
    type_name: Optional[str] = None


class TypeChecker(Protocol):
    """Answers return-type stability questions for one project."""

    def get_function_return_type(self, file: str, line: int, name: str) -> Optional[ReturnTypeInfo]:
        """Return stability info for ``name`` called at ``file:line``, or None when unknown."""
        ...


class TypeCheckerPool(Protocol):
    """Routes files of a monorepo to the checker of their own package."""

    def get_checker_for_file(self, file: str) -> Optional[TypeChecker]:
        ...

"""Errors raised by the company hierarchy core."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class HierarchyError(ValueError):
    """Base error for rejected or failed hierarchy operations."""

    #: Whether the API layer should surface the error as a bad request.
    is_client_error = True


class CompanyNotFound(HierarchyError):
    """Raised when a referenced company does not exist."""

    def __init__(self, company_id: Any) -> None:
        super().__init__(f"Company {company_id!r} does not exist.")
        self.company_id = company_id


class InactiveCompany(HierarchyError):
    """Raised when a mutation targets a soft-deleted company."""

    def __init__(self, company_id: Any) -> None:
        super().__init__(f"Company {company_id!r} is inactive.")
        self.company_id = company_id


class DuplicateCode(HierarchyError):
    """Raised when a code is already held by another active company."""

    def __init__(self, code: str) -> None:
        super().__init__(f"Company code {code!r} already exists.")
        self.code = code


class ParentNotFound(HierarchyError):
    """Raised when a parent reference is missing or inactive."""

    def __init__(self, parent_id: Any) -> None:
        super().__init__(f"Parent company {parent_id!r} not found or inactive.")
        self.parent_id = parent_id


class MultipleRootsNotAllowed(HierarchyError):
    """Raised when an operation would create a second active root."""

    def __init__(self, existing_root_id: Any) -> None:
        super().__init__(
            f"Holding company {existing_root_id!r} already exists; "
            "demote it explicitly before creating another root."
        )
        self.existing_root_id = existing_root_id


class CycleDetected(HierarchyError):
    """Raised when a re-parent would make a company its own ancestor."""

    def __init__(self, node_id: Any, target_id: Any) -> None:
        super().__init__(
            f"Cannot move {node_id!r} under {target_id!r}: "
            "target is the company itself or one of its descendants."
        )
        self.node_id = node_id
        self.target_id = target_id


class RootDeactivationNotAllowed(HierarchyError):
    """Raised when deactivating the holding would leave the tree rootless."""

    def __init__(self, root_id: Any) -> None:
        super().__init__(f"Holding company {root_id!r} cannot be deactivated.")
        self.root_id = root_id


class ConsistencyRepairExhausted(HierarchyError):
    """Raised when level repair does not reach a fixed point.

    This points at corrupted data (typically a cycle the validator never
    saw), so it is reported as a server error and the mutation is rolled back.
    """

    is_client_error = False

    def __init__(self, node_id: Any, passes: int) -> None:
        super().__init__(
            f"Level repair for {node_id!r} did not converge after {passes} passes."
        )
        self.node_id = node_id
        self.passes = passes


@dataclass(frozen=True)
class DepthCapExceeded:
    """Soft notice that a computed level was clamped to the depth cap."""

    node_id: Any
    computed_level: int
    max_depth: int

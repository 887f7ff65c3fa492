"""
Project Domain Models (``fund_modules.project.models``).

Frozen dataclass value objects for projects and sub-projects.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class Project:
    """A programme of work that receives allocations."""
    id: UUID
    name: str
    description: str | None = None


@dataclass(frozen=True)
class SubProject:
    """A component of exactly one project."""
    id: UUID
    project_id: UUID
    name: str
    description: str | None = None

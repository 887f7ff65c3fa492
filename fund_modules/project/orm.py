"""
SQLAlchemy ORM persistence models for projects (``fund_modules.project.orm``).

Invariants enforced
-------------------
* Project names are unique.
* A sub-project belongs to exactly one project (``project_id`` NOT NULL);
  its name is unique within that project.
"""

from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fund_kernel.db.base import TrackedBase, UUIDString


class ProjectModel(TrackedBase):
    """Maps to the ``Project`` DTO in ``fund_modules.project.models``."""

    __tablename__ = "projects"

    __table_args__ = (
        UniqueConstraint("name", name="uq_project_name"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    sub_projects: Mapped[list["SubProjectModel"]] = relationship(
        "SubProjectModel",
        back_populates="project",
        lazy="selectin",
        order_by="SubProjectModel.name",
    )

    def to_dto(self):
        from fund_modules.project.models import Project

        return Project(id=self.id, name=self.name, description=self.description)

    def __repr__(self) -> str:
        return f"<ProjectModel {self.name}>"


class SubProjectModel(TrackedBase):
    """Maps to the ``SubProject`` DTO in ``fund_modules.project.models``."""

    __tablename__ = "sub_projects"

    __table_args__ = (
        UniqueConstraint("project_id", "name", name="uq_sub_project_name"),
        Index("idx_sub_project_project", "project_id"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("projects.id"), nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    project: Mapped["ProjectModel"] = relationship(
        "ProjectModel",
        back_populates="sub_projects",
    )

    def to_dto(self):
        from fund_modules.project.models import SubProject

        return SubProject(
            id=self.id,
            project_id=self.project_id,
            name=self.name,
            description=self.description,
        )

    def __repr__(self) -> str:
        return f"<SubProjectModel {self.name}>"

"""
Project Service (``fund_modules.project.service``).

Responsibility
--------------
Creates and reads projects and their sub-projects, and answers the one
structural question the budget tracker asks: does this sub-project belong
to that project?

Failure modes
-------------
* ``ProjectNotFoundError`` / ``SubProjectNotFoundError`` on unknown ids.
* ``ValidationError`` on an empty or duplicate name.
* ``InvalidProjectLinkError`` when a sub-project is used with a project it
  does not belong to.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from fund_kernel.domain.values import require_text
from fund_kernel.exceptions import (
    InvalidProjectLinkError,
    ProjectNotFoundError,
    SubProjectNotFoundError,
    ValidationError,
)
from fund_kernel.logging_config import get_logger
from fund_modules.project.models import Project, SubProject
from fund_modules.project.orm import ProjectModel, SubProjectModel

logger = get_logger("modules.project.service")


class ProjectService:
    """Project and sub-project registry over a caller-owned session."""

    def __init__(self, session: Session):
        self._session = session

    def create_project(
        self,
        name: str,
        actor_id: UUID,
        description: str | None = None,
    ) -> Project:
        name = require_text(name, "name", max_length=255)
        if self._session.execute(
            select(exists().where(ProjectModel.name == name))
        ).scalar():
            raise ValidationError(f"Project name already exists: {name}", "name")

        model = ProjectModel(name=name, description=description, created_by_id=actor_id)
        self._session.add(model)
        self._session.flush()
        logger.info("project_created", extra={"project_id": str(model.id), "project_name": name})
        return model.to_dto()

    def create_sub_project(
        self,
        project_id: UUID,
        name: str,
        actor_id: UUID,
        description: str | None = None,
    ) -> SubProject:
        self._get_project_model(project_id)
        name = require_text(name, "name", max_length=255)
        if self._session.execute(
            select(
                exists().where(
                    SubProjectModel.project_id == project_id,
                    SubProjectModel.name == name,
                )
            )
        ).scalar():
            raise ValidationError(f"Sub-project name already exists: {name}", "name")

        model = SubProjectModel(
            project_id=project_id,
            name=name,
            description=description,
            created_by_id=actor_id,
        )
        self._session.add(model)
        self._session.flush()
        logger.info(
            "sub_project_created",
            extra={"project_id": str(project_id), "sub_project_id": str(model.id)},
        )
        return model.to_dto()

    def _get_project_model(self, project_id: UUID) -> ProjectModel:
        model = self._session.get(ProjectModel, project_id)
        if model is None:
            raise ProjectNotFoundError(str(project_id))
        return model

    def get_project(self, project_id: UUID) -> Project:
        return self._get_project_model(project_id).to_dto()

    def get_sub_project(self, sub_project_id: UUID) -> SubProject:
        model = self._session.get(SubProjectModel, sub_project_id)
        if model is None:
            raise SubProjectNotFoundError(str(sub_project_id))
        return model.to_dto()

    def list_projects(self) -> list[Project]:
        models = self._session.execute(
            select(ProjectModel).order_by(ProjectModel.name)
        ).scalars()
        return [m.to_dto() for m in models]

    def list_sub_projects(self, project_id: UUID | None = None) -> list[SubProject]:
        query = select(SubProjectModel).order_by(SubProjectModel.name)
        if project_id is not None:
            self._get_project_model(project_id)
            query = query.where(SubProjectModel.project_id == project_id)
        return [m.to_dto() for m in self._session.execute(query).scalars()]

    def require_link(self, project_id: UUID, sub_project_id: UUID | None) -> None:
        """Raise unless ``sub_project_id`` is None or belongs to ``project_id``."""
        if sub_project_id is None:
            return
        sub_project = self.get_sub_project(sub_project_id)
        if sub_project.project_id != project_id:
            raise InvalidProjectLinkError(str(sub_project_id), str(project_id))

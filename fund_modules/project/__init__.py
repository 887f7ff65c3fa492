"""
Projects Module (``fund_modules.project``).

Projects and sub-projects that funding is allocated to.  A sub-project
belongs to exactly one project.
"""

from fund_modules.project.models import Project, SubProject

__all__ = ["Project", "SubProject"]

"""Subject registry - referential checks against projects and tasks."""
from typing import Optional

from bson import ObjectId

from timetrack.errors import ReferentialError


def as_document_id(value: str):
    """Use an ObjectId when the string is one, otherwise the raw string."""
    if ObjectId.is_valid(value):
        return ObjectId(value)
    return value


class SubjectRegistry:
    """Read-only lookups of the projects and tasks time is booked against."""

    def __init__(self, db):
        """Initialize registry with database connection."""
        self.projects = db["projects"]
        self.tasks = db["tasks"]

    async def validate(
        self,
        project_id: str,
        task_id: Optional[str] = None,
        session=None,
    ) -> None:
        """
        Check that a project (and optionally a task of it) exists.

        Args:
            project_id: Project ID
            task_id: Optional task ID, must belong to the project
            session: Optional Mongo session for transactional reads

        Raises:
            ReferentialError: If the project or task does not resolve
        """
        project = await self.projects.find_one(
            {"_id": as_document_id(project_id), "deleted": {"$ne": True}},
            session=session,
        )
        if not project:
            raise ReferentialError(f"Project not found: {project_id}")

        if task_id is None:
            return

        task = await self.tasks.find_one(
            {"_id": as_document_id(task_id)},
            session=session,
        )
        if not task or str(task.get("project_id")) != str(project["_id"]):
            raise ReferentialError(f"Task not found for project: {task_id}")

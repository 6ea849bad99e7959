"""Project storage operations."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from storywire.exceptions import NotFoundError
from storywire.storage.retry import qdrant_retry

if TYPE_CHECKING:
    from storywire.models import Project


class ProjectMixin:
    """Mixin providing project operations for StorywireStorage.

    This mixin expects the following attributes/methods from the base class:
    - _upsert_document(doc_type, document, doc_id)
    - _retrieve_document(doc_type, doc_id, doc_class)
    - _scroll_documents(doc_type, doc_class, conditions)
    - _write_lock: asyncio.Lock
    """

    _upsert_document: Any
    _retrieve_document: Any
    _scroll_documents: Any
    _write_lock: asyncio.Lock

    @qdrant_retry
    async def store_project(self, project: Project) -> str:
        """Store a project, replacing any previous version.

        Returns:
            The project ID.
        """
        await self._upsert_document("projects", project, project.id)
        return project.id

    @qdrant_retry
    async def get_project(self, project_id: str) -> Project | None:
        """Get a project by ID, always read fresh from Qdrant."""
        from storywire.models import Project

        project: Project | None = await self._retrieve_document("projects", project_id, Project)
        return project

    @qdrant_retry
    async def list_projects(self) -> list[Project]:
        """List all projects, sorted by name."""
        from storywire.models import Project

        projects: list[Project] = await self._scroll_documents("projects", Project, [])
        projects.sort(key=lambda p: p.name.lower())
        return projects

    async def set_project_webhook_url(self, project_id: str, webhook_url: str | None) -> Project:
        """Set or clear a project's webhook URL.

        Args:
            project_id: Project to update.
            webhook_url: New receiver URL, or None to disable delivery.

        Returns:
            The updated project.

        Raises:
            NotFoundError: If the project does not exist.
            pydantic.ValidationError: If the URL is not a valid HTTP(S) URL.
        """
        from storywire.models import Project

        async with self._write_lock:
            project = await self.get_project(project_id)
            if project is None:
                raise NotFoundError("project", project_id)

            updated = Project.model_validate(
                {**project.model_dump(), "webhook_url": webhook_url}
            )
            await self.store_project(updated)
            return updated

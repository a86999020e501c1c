"""Project store clients.

Projects live in a ``projects`` table of a hosted backend-as-a-service,
reached over its REST interface (PostgREST conventions). The whole section
list is one JSON column on the project row. Public usernames live in a
``profiles`` table keyed by the auth user id.

A store client is an explicit handle: build it from StoreConfig at startup,
pass it to whatever needs it, and close it when done.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from inkwell.models.config import StoreConfig
from inkwell.models.project import Project, validate_project_name
from inkwell.models.user import validate_username
from inkwell.services.exceptions import StoreError
from inkwell.utils.logging import get_logger


logger = get_logger(__name__)


class ProjectStore(ABC):
    """Persistence interface for projects, their sections and user profiles."""

    @abstractmethod
    def list_projects(self, user_id: str) -> list[Project]:
        """All projects owned by a user."""

    @abstractmethod
    def get_project(self, project_id: Any) -> Project:
        """One project by id (raises StoreError if missing)."""

    @abstractmethod
    def create_project(self, user_id: str, name: str) -> Project:
        """Create an empty project (raises ValueError on a blank name)."""

    @abstractmethod
    def rename_project(self, project_id: Any, name: str) -> None:
        """Rename a project; blank names are ignored."""

    @abstractmethod
    def delete_project(self, project_id: Any) -> None:
        """Delete a project and its sections."""

    @abstractmethod
    def save_sections(self, project: Project) -> None:
        """Persist a project's whole section list."""

    @abstractmethod
    def username_taken(self, username: str) -> bool:
        """Whether another profile already uses this username."""

    @abstractmethod
    def save_profile(self, user_id: str, username: str) -> None:
        """Create or update the user's public profile."""


class RestProjectStore(ProjectStore):
    """ProjectStore over the hosted store's REST API."""

    TABLE = "projects"
    PROFILES_TABLE = "profiles"

    def __init__(
        self,
        config: StoreConfig,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = 30.0
    ):
        """
        Args:
            config: Store URL and credentials
            transport: Optional httpx transport (used in tests)
            timeout: Request timeout in seconds

        Raises:
            ValueError: If the store URL or API key is missing
        """
        if not config.is_configured:
            raise ValueError(
                "Project store is not configured. Set store.url and store.api_key "
                "in config.yaml or INKWELL_STORE_URL / INKWELL_STORE_API_KEY."
            )
        self.config = config
        token = config.access_token or config.api_key
        self.client = httpx.Client(
            base_url=str(config.url).rstrip("/") + "/rest/v1",
            headers={
                "apikey": config.api_key,
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "RestProjectStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _request(self, method: str, params: dict, table: Optional[str] = None, **kwargs) -> Any:
        try:
            response = self.client.request(method, f"/{table or self.TABLE}", params=params, **kwargs)
        except httpx.HTTPError as e:
            logger.error("store_request_failed", method=method, error=str(e))
            raise StoreError(f"Project store unreachable: {e}") from e

        if response.is_error:
            try:
                message = response.json().get("message") or response.text
            except (ValueError, AttributeError):
                message = response.text
            logger.error(
                "store_http_error",
                method=method,
                status_code=response.status_code,
                error=message,
            )
            raise StoreError(message or f"Store returned HTTP {response.status_code}", response.status_code)

        if not response.content:
            return None
        return response.json()

    def list_projects(self, user_id: str) -> list[Project]:
        rows = self._request("GET", {"select": "*", "user_id": f"eq.{user_id}"}) or []
        logger.info("store_projects_listed", user_id=user_id, count=len(rows))
        return [Project(**_normalize_row(row)) for row in rows]

    def get_project(self, project_id: Any) -> Project:
        rows = self._request("GET", {"select": "*", "id": f"eq.{project_id}"}) or []
        if not rows:
            raise StoreError(f"Project not found: {project_id}", 404)
        return Project(**_normalize_row(rows[0]))

    def create_project(self, user_id: str, name: str) -> Project:
        validate_project_name(name)
        rows = self._request(
            "POST",
            {},
            json=[{"name": name, "user_id": user_id, "sections": []}],
            headers={"Prefer": "return=representation"},
        )
        if not rows:
            raise StoreError("Project store did not return the created project")
        project = Project(**_normalize_row(rows[0]))
        logger.info("store_project_created", project_id=project.id)
        return project

    def rename_project(self, project_id: Any, name: str) -> None:
        if not name or not name.strip():
            return
        self._request("PATCH", {"id": f"eq.{project_id}"}, json={"name": name})
        logger.info("store_project_renamed", project_id=project_id)

    def delete_project(self, project_id: Any) -> None:
        self._request("DELETE", {"id": f"eq.{project_id}"})
        logger.info("store_project_deleted", project_id=project_id)

    def save_sections(self, project: Project) -> None:
        self._request(
            "PATCH",
            {"id": f"eq.{project.id}"},
            json={"sections": project.sections_payload()},
        )
        logger.info(
            "store_sections_saved",
            project_id=project.id,
            section_count=len(project.sections),
        )

    def username_taken(self, username: str) -> bool:
        rows = self._request(
            "GET",
            {"select": "username", "username": f"eq.{username}"},
            table=self.PROFILES_TABLE,
        ) or []
        return bool(rows)

    def save_profile(self, user_id: str, username: str) -> None:
        validate_username(username)
        self._request(
            "POST",
            {},
            table=self.PROFILES_TABLE,
            json={
                "id": user_id,
                "username": username,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
            headers={"Prefer": "resolution=merge-duplicates"},
        )
        logger.info("store_profile_saved", user_id=user_id)


def _normalize_row(row: dict) -> dict:
    """Rows created before sections existed carry ``sections: null``."""
    row = dict(row)
    if row.get("sections") is None:
        row["sections"] = []
    if row.get("user_id") is not None:
        row["user_id"] = str(row["user_id"])
    return row

"""Project and section models.

A project is a named writing project owned by one user. It holds an ordered
list of sections ("chapters"), each with its own rich-text content. The whole
section list is persisted as one JSON column on the project row.
"""

import time
from typing import Any, Optional

from pydantic import BaseModel, Field


def validate_project_name(name: str) -> str:
    """Return the project name unchanged, or raise if it is blank."""
    if not name or not name.strip():
        raise ValueError("Project name is required")
    return name


class Section(BaseModel):
    """A named, independently editable sub-document within a project."""

    id: int = Field(..., description="Creation timestamp in milliseconds, unique per project")

    name: str = Field(..., description="Display name of the section")

    content: str = Field(default="", description="Rich-text HTML content")

    json_content: Optional[Any] = Field(
        default=None,
        alias="jsonContent",
        description="Editor document tree, when the editor saved one"
    )

    model_config = {"populate_by_name": True}


class Project(BaseModel):
    """A writing project and its sections."""

    id: Any = Field(..., description="Store-assigned project identifier")

    user_id: str = Field(..., description="Owner of the project")

    name: str = Field(..., description="Display name of the project")

    sections: list[Section] = Field(default_factory=list)

    model_config = {"frozen": False}  # Sections are edited in place

    def get_section(self, section_id: int) -> Section:
        for section in self.sections:
            if section.id == section_id:
                return section
        raise KeyError(f"Section not found: {section_id}")

    def add_section(self, name: str) -> Section:
        """Append a new empty section.

        Args:
            name: Section name (must not be blank)

        Returns:
            The created Section

        Raises:
            ValueError: If the name is blank
        """
        if not name or not name.strip():
            raise ValueError("Section name is required")

        section_id = int(time.time() * 1000)
        existing = {s.id for s in self.sections}
        while section_id in existing:
            section_id += 1

        section = Section(id=section_id, name=name, content="")
        self.sections.append(section)
        return section

    def rename_section(self, section_id: int, name: str) -> None:
        """Rename a section. Blank names are ignored."""
        if not name or not name.strip():
            return
        self.get_section(section_id).name = name

    def remove_section(self, section_id: int) -> None:
        self.sections = [s for s in self.sections if s.id != section_id]

    def update_section_content(
        self,
        section_id: int,
        content: str,
        json_content: Optional[Any] = None
    ) -> None:
        """Replace a section's content (and editor document, if given)."""
        section = self.get_section(section_id)
        section.content = content
        if json_content is not None:
            section.json_content = json_content

    def sections_payload(self) -> list[dict]:
        """Sections as stored in the project row."""
        return [
            s.model_dump(by_alias=True, exclude_none=True)
            for s in self.sections
        ]

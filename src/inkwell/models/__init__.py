"""Pydantic data models for Inkwell."""

from inkwell.models.message import Message, StructuredReply
from inkwell.models.project import Project, Section
from inkwell.models.user import AuthSession

__all__ = ["Message", "StructuredReply", "Project", "Section", "AuthSession"]

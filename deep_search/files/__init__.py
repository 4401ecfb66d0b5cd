"""Workspace file enumeration and reads."""

from .file_service import FileService, LocalFileService
from .ignore import PathFilter

__all__ = ["FileService", "LocalFileService", "PathFilter"]

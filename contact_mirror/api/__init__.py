"""contact_mirror.api - Remote directory API client."""

from contact_mirror.api.directory_api import DEFAULT_BASE_URL, DirectoryAPI

__all__ = ["DEFAULT_BASE_URL", "DirectoryAPI"]

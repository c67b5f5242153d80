# amplify/storage/dto.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class FileRecord(BaseModel):
    """
    A standardized Data Transfer Object for a remote file.

    `parents` keeps the order the storage service reports. Only the first
    entry is treated as the file's current location.
    """

    id: str
    name: str = ""
    parents: List[str] = Field(default_factory=list)
    mime_type: Optional[str] = None
    created_time: Optional[datetime] = None
    modified_time: Optional[datetime] = None

    @classmethod
    def from_api(cls, item: dict) -> "FileRecord":
        """Builds a record from a Drive v3 `files` resource."""
        return cls(
            id=item["id"],
            name=item.get("name", ""),
            parents=item.get("parents", []),
            mime_type=item.get("mimeType"),
            created_time=item.get("createdTime"),
            modified_time=item.get("modifiedTime"),
        )

    @property
    def current_parent(self) -> Optional[str]:
        return self.parents[0] if self.parents else None

    def is_in(self, folder_id: str) -> bool:
        return folder_id in self.parents

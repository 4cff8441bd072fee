"""
Process document entity: one row per file uploaded with a license process.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class ProcessDocument(BaseModel):
    id: str
    process_id: str
    name: str
    file_path: str
    file_size: int = 0
    file_type: Optional[str] = None
    uploaded_by: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcessDocument":
        data = dict(data)
        v = data.get("created_at")
        if isinstance(v, str):
            try:
                data["created_at"] = datetime.fromisoformat(v.replace("Z", "+00:00"))
            except ValueError:
                pass
        return cls(**data)


class ProcessDocumentCreate(BaseModel):
    process_id: str
    name: str
    file_path: str
    file_size: int
    file_type: str
    uploaded_by: str

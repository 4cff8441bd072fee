"""
Company entity models.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class Company(BaseModel):
    id: str
    user_id: Optional[str] = None
    name: str
    cnpj: Optional[str] = None
    email: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    address: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Company":
        data = dict(data)
        for fld in ("created_at", "updated_at"):
            v = data.get(fld)
            if isinstance(v, str):
                try:
                    data[fld] = datetime.fromisoformat(v.replace("Z", "+00:00"))
                except ValueError:
                    pass
        return cls(**data)


class CompanyCreate(BaseModel):
    user_id: str
    name: str
    cnpj: str
    email: str = ""
    city: Optional[str] = None
    state: Optional[str] = None
    address: Optional[str] = None

"""
License process entity models for the domain layer.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from entities.company import Company


class LicenseType(str, Enum):
    """Environmental license kinds: preliminary, installation, operating."""
    LP = "LP"
    LI = "LI"
    LO = "LO"


class ProcessStatus(str, Enum):
    SUBMITTED = "submitted"
    UNDER_ANALYSIS = "em_analise"
    APPROVED = "aprovado"
    REJECTED = "rejeitado"


class EnvironmentalImpact(str, Enum):
    LOW = "baixo"
    MEDIUM = "medio"
    HIGH = "alto"


def _parse_datetime(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return value


class LicenseProcess(BaseModel):
    """A license request owned by one user, optionally shared with collaborators."""
    id: str
    user_id: str
    company_id: Optional[str] = None
    license_type: LicenseType
    activity: str = ""
    municipality: Optional[str] = None
    project_description: Optional[str] = None
    status: ProcessStatus = ProcessStatus.SUBMITTED
    progress: int = 0
    submit_date: Optional[date] = None
    expected_date: Optional[date] = None
    location: Optional[str] = None
    area: Optional[float] = None
    coordinates: Optional[str] = None
    environmental_impact: EnvironmentalImpact = EnvironmentalImpact.LOW
    estimated_value: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Populated on reads
    company: Optional[Company] = None
    is_owner: bool = True

    class Config:
        from_attributes = True
        use_enum_values = True

    def is_owned_by(self, user_id: str) -> bool:
        return self.user_id == user_id

    @classmethod
    def from_dict(cls, data: Dict[str, Any], is_owner: bool = True) -> "LicenseProcess":
        data = dict(data)
        for fld in ("created_at", "updated_at"):
            data[fld] = _parse_datetime(data.get(fld))

        # PostgREST embeds the related row under the table name
        company = data.pop("companies", None)
        if isinstance(company, dict):
            data["company"] = Company.from_dict(company)
        data.pop("process_collaborators", None)
        data["is_owner"] = is_owner
        return cls(**data)

    def matches_search(self, term: str) -> bool:
        needle = term.lower()
        company_name = self.company.name.lower() if self.company else ""
        return needle in company_name or needle in (self.activity or "").lower()


class ProcessCreate(BaseModel):
    """Validated input for creating a process.

    Either `company_id` references an existing company, or `company` and
    `cnpj` describe one to create.
    """
    license_type: LicenseType
    environmental_impact: EnvironmentalImpact = EnvironmentalImpact.LOW
    company_id: Optional[str] = None
    company: Optional[str] = None
    cnpj: Optional[str] = None
    email: Optional[str] = None
    activity: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    estimated_value: Optional[float] = Field(None, ge=0)
    area: Optional[float] = Field(None, ge=0)
    coordinates: Optional[str] = None

    @field_validator("activity", "state", "city", "location", "description", "company", "cnpj")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("estimated_value", "area", mode="before")
    @classmethod
    def empty_number_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def require_company(self) -> "ProcessCreate":
        if not self.company_id and not (self.company and self.cnpj):
            raise ValueError("company and cnpj are required when company_id is not provided")
        return self


class ProcessUpdate(BaseModel):
    """Fields an owner may change after submission."""
    status: Optional[ProcessStatus] = None
    progress: Optional[int] = Field(None, ge=0, le=100)
    activity: Optional[str] = None
    project_description: Optional[str] = None
    location: Optional[str] = None
    municipality: Optional[str] = None
    area: Optional[float] = Field(None, ge=0)
    coordinates: Optional[str] = None
    environmental_impact: Optional[EnvironmentalImpact] = None
    estimated_value: Optional[float] = Field(None, ge=0)
    expected_date: Optional[date] = None

    class Config:
        use_enum_values = True

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ProcessFilter(BaseModel):
    status: Optional[str] = None  # "all" disables the filter
    license_type: Optional[LicenseType] = None
    search: Optional[str] = None

    class Config:
        use_enum_values = True


class ProcessStats(BaseModel):
    total: int = 0
    pending: int = 0
    analysis: int = 0
    approved: int = 0
    rejected: int = 0
    expired: int = 0

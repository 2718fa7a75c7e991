"""
Catalog Models

Pydantic models for normalized catalog entries and validation issues.

Version: catalog_engine_v1
"""

from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .vocabulary import split_list


class CostStatus(str, Enum):
    """How the annual cost cell was read."""
    MISSING = "missing"
    PARSED = "parsed"
    UNPARSEABLE = "unparseable"


class CatalogEntry(BaseModel):
    """
    One application record in canonical form.

    Produced by the RowNormalizer from a tabular row. Fields that were empty
    in the source are empty strings, empty lists or None, never errors.
    """

    row_ref: Optional[int] = Field(None, description="Row reference in the tabular store")

    # Identity
    product_name: str = Field("", description="Case-insensitive unique key among active entries")
    stable_id: Optional[str] = Field(None, description="Preferred unique key when present")
    active: bool = False

    # Placement
    division: str = ""
    department: str = ""
    subjects: str = ""
    is_org_core: bool = Field(False, description="Manually curated official core tool flag")

    # Licensing
    license_type: str = ""
    license_count: int = Field(0, ge=0)
    annual_cost: Optional[float] = Field(None, description="None means unknown; 0 means free")
    cost_status: CostStatus = CostStatus.MISSING

    # Description
    category: str = ""
    audience: List[str] = Field(default_factory=list)
    grade_levels: List[str] = Field(default_factory=list)
    description: str = ""
    website: str = ""
    support_email: str = ""
    tutorial_link: str = ""
    mobile_app: str = ""
    sso_enabled: Optional[bool] = Field(None, description="None when the cell is empty")
    logo_url: str = ""
    date_added: Optional[date] = None
    renewal_date: Optional[date] = None

    @field_validator("audience", "grade_levels", mode="before")
    @classmethod
    def split_comma_lists(cls, v):
        """Accept comma-separated strings as lists."""
        return split_list(v)

    @property
    def name_key(self) -> str:
        return self.product_name.strip().lower()

    @property
    def identity_key(self) -> str:
        """Stable id when present, else the normalized product name."""
        if self.stable_id:
            return f"id:{self.stable_id}"
        return f"name:{self.name_key}"

    @property
    def cost_display(self) -> str:
        """Presentable cost: 'Free' for zero, 'N/A' for unknown."""
        if self.annual_cost is None:
            return "N/A"
        if self.annual_cost == 0:
            return "Free"
        if float(self.annual_cost).is_integer():
            return f"${int(self.annual_cost):,}"
        return f"${self.annual_cost:,.2f}"

    def to_summary(self) -> Dict[str, Any]:
        """Compact dict used in classification output."""
        return {
            "product_name": self.product_name,
            "stable_id": self.stable_id,
            "division": self.division,
            "department": self.department,
            "license_type": self.license_type,
            "category": self.category,
            "cost": self.cost_display,
            "is_org_core": self.is_org_core,
        }


class IssueSeverity(str, Enum):
    """Issue severity. Warnings never block writes."""
    ERROR = "error"
    WARNING = "warning"


class ReasonCode:
    """Standard issue codes."""
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    MISSING_OPTIONAL_FIELD = "MISSING_OPTIONAL_FIELD"
    INVALID_GRADE_LEVEL = "INVALID_GRADE_LEVEL"
    INVALID_AUDIENCE = "INVALID_AUDIENCE"
    UNPARSEABLE_COST = "UNPARSEABLE_COST"
    DUPLICATE_IDENTITY = "DUPLICATE_IDENTITY"


class Issue(BaseModel):
    """A required-field or data-quality gap on one entry."""
    product_name: str
    row_ref: Optional[int] = None
    field: str
    code: str
    severity: IssueSeverity
    message: str

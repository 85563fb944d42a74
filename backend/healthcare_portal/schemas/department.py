# healthcare_portal/schemas/department.py
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field


class DepartmentRequest(BaseModel):
    name: Annotated[str, Field(min_length=1, max_length=100)]
    description: Optional[str] = None


class DepartmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None

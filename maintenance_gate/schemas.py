from pydantic import BaseModel, field_validator, Field, ConfigDict
from typing import Optional, Dict, Any
from datetime import datetime

DEFAULT_MAINTENANCE_MESSAGE = "The website is under maintenance."

# ============= MAINTENANCE SCHEMAS =============

class MaintenanceState(BaseModel):
    """Immutable snapshot of the maintenance record"""

    enabled: bool = False
    message: str = DEFAULT_MAINTENANCE_MESSAGE
    data: Optional[Dict[str, Any]] = None
    revision: int = 0
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_validator('message', mode='before')
    @classmethod
    def default_message(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_MAINTENANCE_MESSAGE
        return v

class MaintenanceUpdate(BaseModel):
    enabled: bool
    #None keeps the stored value, "" resets to the default sentence
    message: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    updated_by: Optional[str] = Field(None, max_length=100)

class MaintenanceStatus(BaseModel):
    enabled: bool
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)

class MaintenanceGateResponse(BaseModel):
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)

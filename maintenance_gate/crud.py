from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional, Dict, Any
from . import models

# ============= MAINTENANCE STATE CRUD =============

def get_maintenance_state(db: Session) -> Optional[models.MaintenanceState]:
    return db.query(models.MaintenanceState).filter(
        models.MaintenanceState.id == models.MAINTENANCE_STATE_ID
    ).first()

def create_maintenance_state(
    db: Session,
    enabled: bool,
    message: str,
    data: Optional[Dict[str, Any]] = None,
    revision: int = 0,
    updated_by: Optional[str] = None,
    updated_at: Optional[datetime] = None,
) -> models.MaintenanceState:
    db_state = models.MaintenanceState(
        id=models.MAINTENANCE_STATE_ID,
        enabled=enabled,
        message=message,
        data=data,
        revision=revision,
        updated_by=updated_by,
        updated_at=updated_at or models.utcnow(),
    )
    db.add(db_state)
    db.commit()
    db.refresh(db_state)
    return db_state

def update_maintenance_state_if_revision(
    db: Session,
    expected_revision: int,
    enabled: bool,
    message: str,
    data: Optional[Dict[str, Any]],
    updated_by: Optional[str],
    updated_at: datetime,
) -> bool:
    """compare-and-set: only writes when the stored revision still matches"""
    updated = db.query(models.MaintenanceState).filter(
        models.MaintenanceState.id == models.MAINTENANCE_STATE_ID,
        models.MaintenanceState.revision == expected_revision,
    ).update(
        {
            models.MaintenanceState.enabled: enabled,
            models.MaintenanceState.message: message,
            models.MaintenanceState.data: data,
            models.MaintenanceState.updated_by: updated_by,
            models.MaintenanceState.updated_at: updated_at,
            models.MaintenanceState.revision: expected_revision + 1,
        },
        synchronize_session=False,
    )
    db.commit()
    return updated == 1

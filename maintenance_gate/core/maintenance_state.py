"""Durable store for the maintenance toggle record"""
import logging
from typing import Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from maintenance_gate import crud, models, schemas
from maintenance_gate.core.errors import RevisionConflict, StoreUnavailable

logger = logging.getLogger(__name__)


class MaintenanceStateStore:
    """Single-record store with compare-and-set writes on ``revision``"""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get(self) -> schemas.MaintenanceState:
        """Return the stored state, or the default disabled state if none exists yet"""
        db = self._session_factory()
        try:
            db_state = crud.get_maintenance_state(db)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Failed to read maintenance state: {e}") from e
        finally:
            db.close()

        if db_state is None:
            return schemas.MaintenanceState()
        return schemas.MaintenanceState.model_validate(db_state)

    def set(self, new_state: schemas.MaintenanceState, expected_revision: int) -> schemas.MaintenanceState:
        """Persist ``new_state`` as revision ``expected_revision + 1``

        Raises RevisionConflict when the stored revision is no longer
        ``expected_revision``.
        """
        updated_at = models.utcnow()
        db = self._session_factory()
        try:
            written = crud.update_maintenance_state_if_revision(
                db,
                expected_revision=expected_revision,
                enabled=new_state.enabled,
                message=new_state.message,
                data=new_state.data,
                updated_by=new_state.updated_by,
                updated_at=updated_at,
            )
            if not written:
                current = crud.get_maintenance_state(db)
                if current is not None:
                    raise RevisionConflict(expected_revision, current.revision)
                if expected_revision != 0:
                    raise RevisionConflict(expected_revision, 0)

                #first write before bootstrap ran
                crud.create_maintenance_state(
                    db,
                    enabled=new_state.enabled,
                    message=new_state.message,
                    data=new_state.data,
                    revision=1,
                    updated_by=new_state.updated_by,
                    updated_at=updated_at,
                )
        except IntegrityError as e:
            db.rollback()
            raise RevisionConflict(expected_revision) from e
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreUnavailable(f"Failed to write maintenance state: {e}") from e
        finally:
            db.close()

        return new_state.model_copy(update={
            "revision": expected_revision + 1,
            "updated_at": updated_at,
        })

    def bootstrap(self) -> schemas.MaintenanceState:
        """Create the default disabled record if it does not exist"""
        db = self._session_factory()
        try:
            db_state = crud.get_maintenance_state(db)
            if db_state is None:
                default = schemas.MaintenanceState()
                db_state = crud.create_maintenance_state(
                    db,
                    enabled=default.enabled,
                    message=default.message,
                    data=default.data,
                    revision=default.revision,
                )
                logger.info("Created default maintenance state record")
            return schemas.MaintenanceState.model_validate(db_state)
        except IntegrityError:
            #another process bootstrapped first
            db.rollback()
            return schemas.MaintenanceState.model_validate(crud.get_maintenance_state(db))
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreUnavailable(f"Failed to bootstrap maintenance state: {e}") from e
        finally:
            db.close()

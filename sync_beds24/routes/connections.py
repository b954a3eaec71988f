from typing import Any, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from sync_beds24.config import DRY_RUN
from sync_beds24.dependencies import get_db_engine
from sync_beds24.errors import Beds24Error
from sync_beds24.routes._helpers import http_error
from sync_beds24.schemas.connections import BootstrapPayload, ConnectPayload, RotatePayload
from sync_beds24.schemas.inventory import DateRangePayload
from sync_beds24.services import connections as connection_service
from sync_beds24.services.sync import (
    bootstrap_hotel,
    load_active_connection,
    pull_bookings,
    sync_properties,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/connections", status_code=status.HTTP_201_CREATED)
def create_connection(
    payload: ConnectPayload,
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Connect a hotel to Beds24 by exchanging an invite code.

    Args:
        payload: Hotel identifier and invite code
        engine: Database engine

    Returns:
        dict: connection_id and status
    """
    try:
        result = connection_service.connect_hotel(
            payload.hotel_id,
            payload.invite_code,
            device_name=payload.device_name,
            organization_id=payload.organization_id,
            engine=engine,
        )
        logger.info("connection_created", hotel_id=payload.hotel_id)
        return result

    except Beds24Error as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("connection_creation_failed", hotel_id=payload.hotel_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/connections/{connection_id}/test", status_code=status.HTTP_200_OK)
def check_connection_endpoint(
    connection_id: UUID,
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Check a connection against Beds24 and return its refreshed status.

    A rejected check still answers 200; the outcome is in ``ok`` and ``error``.
    """
    try:
        return connection_service.check_connection(connection_id, engine=engine)

    except Beds24Error as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("connection_test_failed", connection_id=str(connection_id), error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/connections/{connection_id}/rotate", status_code=status.HTTP_200_OK)
def rotate_credentials_endpoint(
    connection_id: UUID,
    payload: RotatePayload,
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """Replace a connection's credentials with ones from a new invite code."""
    try:
        return connection_service.rotate_credentials(
            connection_id, payload.invite_code, device_name=payload.device_name, engine=engine
        )

    except Beds24Error as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("credential_rotation_failed", connection_id=str(connection_id), error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/connections/{connection_id}", status_code=status.HTTP_200_OK)
def disconnect_endpoint(
    connection_id: UUID,
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """Disconnect a hotel from Beds24. Imported data is kept."""
    try:
        return connection_service.disconnect(connection_id, engine=engine)

    except Beds24Error as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("disconnect_failed", connection_id=str(connection_id), error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/connections/{connection_id}/properties/sync", status_code=status.HTTP_202_ACCEPTED)
def sync_properties_endpoint(
    connection_id: UUID,
    background_tasks: BackgroundTasks,
    dry_run: Optional[bool] = Query(None, description="Override DRY_RUN setting"),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, str]:
    """
    Schedule a property import for a connection.

    Args:
        connection_id: Local connection ID
        background_tasks: FastAPI background task runner
        dry_run: Override DRY_RUN setting (optional)
        engine: Database engine

    Returns:
        dict: Message confirming the sync has been scheduled
    """
    try:
        load_active_connection(engine, connection_id)
        use_dry_run = DRY_RUN if dry_run is None else dry_run

        background_tasks.add_task(
            sync_properties, connection_id, engine=engine, dry_run=use_dry_run
        )
        logger.info("property_sync_triggered", connection_id=str(connection_id), dry_run=use_dry_run)

        return {"message": f"Property sync scheduled for connection {connection_id}"}

    except Beds24Error as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("property_sync_trigger_failed", connection_id=str(connection_id), error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/connections/{connection_id}/bookings/pull", status_code=status.HTTP_202_ACCEPTED)
def pull_bookings_endpoint(
    connection_id: UUID,
    background_tasks: BackgroundTasks,
    payload: Optional[DateRangePayload] = None,
    dry_run: Optional[bool] = Query(None, description="Override DRY_RUN setting"),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, str]:
    """
    Schedule a booking pull for a connection.

    Without a date window the pull is incremental from each property's last
    booking sync.
    """
    try:
        load_active_connection(engine, connection_id)
        use_dry_run = DRY_RUN if dry_run is None else dry_run
        window = payload or DateRangePayload()

        background_tasks.add_task(
            pull_bookings,
            connection_id,
            date_from=window.date_from,
            date_to=window.date_to,
            engine=engine,
            dry_run=use_dry_run,
        )
        logger.info("booking_pull_triggered", connection_id=str(connection_id), dry_run=use_dry_run)

        return {"message": f"Booking pull scheduled for connection {connection_id}"}

    except Beds24Error as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("booking_pull_trigger_failed", connection_id=str(connection_id), error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/hotels/{hotel_id}/bootstrap", status_code=status.HTTP_200_OK)
def bootstrap_endpoint(
    hotel_id: str,
    payload: BootstrapPayload,
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Import a Beds24 property for a connected hotel.

    Runs synchronously so the caller gets the import counts. Safe to repeat.
    """
    try:
        kwargs: dict[str, Any] = {"engine": engine}
        if payload.calendar_days is not None:
            kwargs["calendar_days"] = payload.calendar_days
        return bootstrap_hotel(hotel_id, payload.remote_property_id, **kwargs)

    except Beds24Error as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("bootstrap_failed", hotel_id=hotel_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")

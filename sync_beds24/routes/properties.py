from datetime import date
from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from sync_beds24.dependencies import get_db_engine
from sync_beds24.errors import Beds24Error
from sync_beds24.routes._helpers import http_error
from sync_beds24.schemas.inventory import DateRangePayload, InventoryPushPayload
from sync_beds24.services.sync import get_inventory, pull_rates, push_inventory, push_rates

logger = structlog.get_logger(__name__)
router = APIRouter()


def _validate_range_or_400(date_from: date, date_to: date) -> None:
    if date_to < date_from:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="date_to must not be before date_from",
        )


@router.get("/properties/{remote_property_id}/inventory", status_code=status.HTTP_200_OK)
def get_inventory_endpoint(
    remote_property_id: int,
    date_from: date = Query(..., description="First night, inclusive"),
    date_to: date = Query(..., description="Last night, inclusive"),
    room_id: Optional[int] = Query(None, description="Restrict to one Beds24 room"),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Return availability, prices and restrictions for a property.

    Served from the local cache when it is complete and fresh, otherwise
    pulled from Beds24 first.
    """
    try:
        _validate_range_or_400(date_from, date_to)
        cells = get_inventory(remote_property_id, date_from, date_to, room_id=room_id, engine=engine)
        return {"remote_property_id": remote_property_id, "cells": cells}

    except Beds24Error as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("inventory_read_failed", remote_property_id=remote_property_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/properties/{remote_property_id}/inventory", status_code=status.HTTP_200_OK)
def push_inventory_endpoint(
    remote_property_id: int,
    payload: InventoryPushPayload,
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Push availability and restriction changes to Beds24.

    Answers 200 with per-batch outcome counts; rejected batches show up in
    records_failed and in the sync log, not as an HTTP error.
    """
    try:
        return push_inventory(remote_property_id, payload.updates, engine=engine)

    except Beds24Error as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("inventory_push_failed", remote_property_id=remote_property_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/properties/{remote_property_id}/rates", status_code=status.HTTP_200_OK)
def push_rates_endpoint(
    remote_property_id: int,
    payload: InventoryPushPayload,
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """Push price changes to Beds24."""
    try:
        return push_rates(remote_property_id, payload.updates, engine=engine)

    except Beds24Error as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("rate_push_failed", remote_property_id=remote_property_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/properties/{remote_property_id}/rates/pull", status_code=status.HTTP_200_OK)
def pull_rates_endpoint(
    remote_property_id: int,
    payload: DateRangePayload,
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """Refresh prices and restrictions for a date window from Beds24."""
    try:
        if payload.date_from is None or payload.date_to is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="date_from and date_to are required",
            )
        _validate_range_or_400(payload.date_from, payload.date_to)
        return pull_rates(remote_property_id, payload.date_from, payload.date_to, engine=engine)

    except Beds24Error as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("rate_pull_failed", remote_property_id=remote_property_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")

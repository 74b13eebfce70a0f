# backend/modules/zoho/routers/zoho_router.py

from math import ceil
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from core.auth import get_current_user
from core.config import settings
from core.exceptions import ServiceUnavailableError
from core.permissions import Permission, require_permission

from ..schemas.zoho_schemas import (
    ZohoHealthResponse,
    ZohoMutationResponse,
    ZohoRowCreate,
    ZohoRowDelete,
    ZohoRowUpdate,
)
from ..services.stale_cache import StaleReadCache
from ..services.zoho_client import (
    ZohoAnalyticsClient,
    ZohoError,
    ZohoRateLimitError,
    get_zoho_client,
)

router = APIRouter(prefix="/zoho-analytics", tags=["Zoho Analytics"])
logger = logging.getLogger(__name__)

_stale_reads = StaleReadCache(settings.zoho_stale_cache_ttl_seconds)


def get_stale_cache() -> StaleReadCache:
    return _stale_reads


def rate_limited(exc: ZohoRateLimitError) -> ServiceUnavailableError:
    return ServiceUnavailableError(
        "Upstream rate limited by Zoho",
        retry_after=max(1, ceil(exc.retry_after)),
        error_code="ZOHO_RATE_LIMITED",
    )


def upstream_error(exc: ZohoError) -> HTTPException:
    logger.error(f"Zoho Analytics error: {exc.message} ({exc.details})")
    return HTTPException(status_code=exc.status_code, detail=exc.message)


@router.get("/health", response_model=ZohoHealthResponse)
async def zoho_health(
    client: ZohoAnalyticsClient = Depends(get_zoho_client),
    current_user=Depends(get_current_user),
):
    """Token cache and rate-limit state of the Zoho client."""
    return client.health()


@router.get("")
async def read_rows(
    response: Response,
    tableName: str = Query(..., min_length=1),
    id: Optional[int] = Query(None, gt=0),
    client: ZohoAnalyticsClient = Depends(get_zoho_client),
    stale_cache: StaleReadCache = Depends(get_stale_cache),
    current_user=Depends(require_permission(Permission.VIEW_DASHBOARD)),
):
    """
    Read rows from a Zoho Analytics view.

    With ``id`` only that row is returned. While Zoho is rate limiting,
    the last successful read (if recent enough) is served with
    ``X-Stale: 1``.
    """
    cache_key = StaleReadCache.key_for(tableName, id=id)
    try:
        if id is not None:
            payload = await client.read_row(tableName, id)
        else:
            payload = {"rows": await client.read_rows(tableName)}
        stale_cache.set(cache_key, payload)
        return payload

    except ZohoRateLimitError as e:
        cached = stale_cache.get(cache_key)
        if cached is not None:
            logger.warning(f"Serving stale Zoho data for {tableName}")
            response.headers["X-Stale"] = "1"
            return cached
        raise rate_limited(e)
    except ZohoError as e:
        raise upstream_error(e)
    except Exception as e:
        logger.error(f"Error reading Zoho table {tableName}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to read Zoho Analytics data",
        )


@router.post("", response_model=ZohoMutationResponse)
async def create_row(
    payload: ZohoRowCreate,
    client: ZohoAnalyticsClient = Depends(get_zoho_client),
    current_user=Depends(require_permission(Permission.MANAGE_EXTERNAL_DATA)),
):
    try:
        result = await client.create_row(payload.tableName, payload.data)
        logger.info(f"User {current_user.id} created a row in Zoho table {payload.tableName}")
        return ZohoMutationResponse(data=result)
    except ZohoRateLimitError as e:
        raise rate_limited(e)
    except ZohoError as e:
        raise upstream_error(e)
    except Exception as e:
        logger.error(f"Error creating Zoho row: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create Zoho Analytics row",
        )


@router.put("", response_model=ZohoMutationResponse)
async def update_row(
    payload: ZohoRowUpdate,
    client: ZohoAnalyticsClient = Depends(get_zoho_client),
    current_user=Depends(require_permission(Permission.MANAGE_EXTERNAL_DATA)),
):
    try:
        result = await client.update_row(payload.tableName, payload.id, payload.data)
        logger.info(f"User {current_user.id} updated row {payload.id} in Zoho table {payload.tableName}")
        return ZohoMutationResponse(data=result)
    except ZohoRateLimitError as e:
        raise rate_limited(e)
    except ZohoError as e:
        raise upstream_error(e)
    except Exception as e:
        logger.error(f"Error updating Zoho row: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update Zoho Analytics row",
        )


@router.delete("", response_model=ZohoMutationResponse)
async def delete_row(
    payload: ZohoRowDelete,
    client: ZohoAnalyticsClient = Depends(get_zoho_client),
    current_user=Depends(require_permission(Permission.MANAGE_EXTERNAL_DATA)),
):
    try:
        result = await client.delete_row(payload.tableName, payload.id)
        logger.info(f"User {current_user.id} deleted row {payload.id} in Zoho table {payload.tableName}")
        return ZohoMutationResponse(data=result)
    except ZohoRateLimitError as e:
        raise rate_limited(e)
    except ZohoError as e:
        raise upstream_error(e)
    except Exception as e:
        logger.error(f"Error deleting Zoho row: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete Zoho Analytics row",
        )

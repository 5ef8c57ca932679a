"""Routing endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from ...schemas.routing import ReorderRequest, RouteRequest, RouteResponse
from ...services.routing.service import plan_reorder, plan_route

router = APIRouter(prefix="/routes", tags=["routes"])


@router.post("/optimize", response_model=RouteResponse, status_code=status.HTTP_200_OK)
def optimize(payload: RouteRequest) -> RouteResponse:
    """Plan the walker's day, optionally comparing against the input order."""
    try:
        return plan_route(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        import logging
        logging.exception(f"Error optimizing route: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Route optimization failed: {str(exc)}"
        ) from exc


@router.post("/reorder", response_model=RouteResponse, status_code=status.HTTP_200_OK)
def reorder(payload: ReorderRequest) -> RouteResponse:
    """Metrics for a walker-chosen visiting order."""
    try:
        return plan_reorder(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        import logging
        logging.exception(f"Error reordering route: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to reorder route: {str(exc)}"
        ) from exc

"""Governance event log API endpoints"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from chaingov.models.database import get_db
from chaingov.models.event import GovernanceEvent, EventType
from chaingov.schemas.event import EventResponse, SnapshotResponse
from chaingov.services.event_log import EventLog

router = APIRouter()


def _event_to_response(event: GovernanceEvent) -> EventResponse:
    return EventResponse(
        id=event.id,
        height=event.height,
        event_type=event.event_type.value,
        account=event.account,
        amount=event.amount,
        reference_id=event.reference_id,
        data=event.data,
        triggered_by=event.triggered_by,
        notes=event.notes,
        created_at=event.created_at,
    )


@router.get("", response_model=List[EventResponse])
async def get_activity(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    event_types: Optional[str] = Query(None, description="Comma-separated event types to filter"),
    db: AsyncSession = Depends(get_db),
):
    """Get recent governance activity, newest first"""
    type_filter = None
    if event_types:
        try:
            type_filter = [EventType(t.strip()) for t in event_types.split(",") if t.strip()]
        except ValueError:
            valid_types = [t.value for t in EventType]
            raise HTTPException(
                status_code=400,
                detail=f"Invalid event_types '{event_types}'. Valid types: {valid_types}"
            )

    events = await EventLog(db).get_activity(limit=limit, offset=offset, event_types=type_filter)
    return [_event_to_response(e) for e in events]


@router.get("/account/{account}", response_model=List[EventResponse])
async def get_account_activity(
    account: str = Path(...),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Get events involving a specific account"""
    events = await EventLog(db).get_account_activity(account, limit=limit, offset=offset)
    return [_event_to_response(e) for e in events]


@router.get("/height/{height}", response_model=List[EventResponse])
async def get_events_at_height(
    height: int = Path(..., ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Get all events applied at a specific block height"""
    events = await EventLog(db).get_events_at_height(height)
    return [_event_to_response(e) for e in events]


@router.get("/state/{height}", response_model=SnapshotResponse)
async def get_state_at_height(
    height: int = Path(..., ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Reconstruct balances and proposal tallies as of a block height"""
    snapshot = await EventLog(db).reconstruct_at_height(height)
    return snapshot.to_dict()

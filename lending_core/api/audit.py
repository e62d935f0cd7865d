"""
Audit trail endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query

from .system import LendingSystem, get_lending_system, page_limit


router = APIRouter()


@router.get("/events")
async def list_audit_events(
    entity_type: Optional[str] = Query(None, alias="entityType"),
    entity_id: Optional[str] = Query(None, alias="entityId"),
    limit: Optional[int] = None,
    system: LendingSystem = Depends(get_lending_system)
):
    """Most recent audit events, oldest first"""
    if entity_type and entity_id:
        events = system.audit_trail.get_events_for_entity(entity_type, entity_id, limit=page_limit(limit))
    else:
        events = system.audit_trail.get_all_events(limit=page_limit(limit))

    return {
        "success": True,
        "data": [
            {
                "id": event.id,
                "eventType": event.event_type.value,
                "entityType": event.entity_type,
                "entityId": event.entity_id,
                "metadata": event.metadata,
                "createdAt": event.created_at.isoformat(),
                "currentHash": event.current_hash
            }
            for event in events
        ]
    }


@router.get("/integrity")
async def verify_audit_integrity(system: LendingSystem = Depends(get_lending_system)):
    """Verify the audit hash chain"""
    result = system.audit_trail.verify_integrity()
    return {
        "success": True,
        "data": {
            "valid": result["valid"],
            "totalEvents": result["total_events"],
            "hashErrors": result["hash_errors"],
            "chainBreaks": result["chain_breaks"]
        }
    }

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from models.db import (
    create_feedback,
    delete_feedback,
    feedback_stats,
    get_feedback,
    list_feedback,
    update_feedback,
)
from models.schemas import (
    Feedback,
    FeedbackCategory,
    FeedbackIn,
    FeedbackPriority,
    FeedbackStatus,
    FeedbackUpdate,
)
from services.identity import Identity
from .common import message, optional_identity, require_roles


router = APIRouter()

_admin = require_roles("admin")


def _not_found() -> JSONResponse:
    return JSONResponse(status_code=404, content={"message": "Feedback not found"})


@router.post("/feedback", status_code=201)
def submit_feedback(body: FeedbackIn, identity: Optional[Identity] = Depends(optional_identity)):
    feedback_id = create_feedback(
        body.name,
        body.email,
        body.subject,
        body.message,
        body.category,
        rating=body.rating,
        user_id=identity.user_id if identity else None,
    )
    return message("Feedback submitted successfully", id=feedback_id)


@router.get("/feedback")
def list_feedback_route(
    status: Optional[FeedbackStatus] = Query(None),
    priority: Optional[FeedbackPriority] = Query(None),
    category: Optional[FeedbackCategory] = Query(None),
    identity: Identity = Depends(_admin),
):
    rows = list_feedback(status=status, priority=priority, category=category)
    return {"feedback": [Feedback.from_row(r).to_json_dict() for r in rows], "total": len(rows)}


@router.get("/feedback/stats/summary")
def feedback_summary(identity: Identity = Depends(_admin)):
    return feedback_stats()


@router.get("/feedback/{feedback_id}")
def get_feedback_route(feedback_id: int, identity: Identity = Depends(_admin)):
    row = get_feedback(feedback_id)
    if not row:
        return _not_found()
    return Feedback.from_row(row).to_json_dict()


@router.put("/feedback/{feedback_id}")
def update_feedback_route(feedback_id: int, body: FeedbackUpdate, identity: Identity = Depends(_admin)):
    row = get_feedback(feedback_id)
    if not row:
        return _not_found()
    # Stamp the resolver only on the transition into "resolved"
    resolved_by = identity.user_id if body.status == "resolved" and row["status"] != "resolved" else None
    update_feedback(
        feedback_id,
        status=body.status,
        priority=body.priority,
        admin_notes=body.admin_notes,
        resolved_by=resolved_by,
    )
    return Feedback.from_row(get_feedback(feedback_id)).to_json_dict()


@router.delete("/feedback/{feedback_id}")
def delete_feedback_route(feedback_id: int, identity: Identity = Depends(_admin)):
    if not delete_feedback(feedback_id):
        return _not_found()
    return message("Feedback deleted successfully")

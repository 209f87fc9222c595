"""Derived hackathon state: lifecycle status, capacity and the registration window.

Everything here is a pure function of the record and the supplied ``now``; callers
compute these per request and never cache them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from models.schemas import Hackathon, as_utc, utcnow


def derive_status(hackathon: Hackathon, now: Optional[datetime] = None) -> str:
    if hackathon.status == "cancelled":
        return "cancelled"
    now = as_utc(now) if now else utcnow()
    if now < hackathon.start_date:
        return "upcoming"
    if now <= hackathon.end_date:
        return "ongoing"
    return "completed"


def apply_status(hackathon: Hackathon, now: Optional[datetime] = None) -> Hackathon:
    """Refresh ``hackathon.status`` in place and return it."""
    hackathon.status = derive_status(hackathon, now)
    return hackathon


def participant_count(hackathon: Hackathon) -> int:
    return sum(team.size for team in hackathon.teams) + len(hackathon.participants)


def spots_remaining(hackathon: Hackathon) -> int:
    return max(0, hackathon.max_participants - participant_count(hackathon))


def deadline_open(hackathon: Hackathon, now: Optional[datetime] = None) -> bool:
    """Approval and deadline gate, the first check every registration applies."""
    now = as_utc(now) if now else utcnow()
    return (
        hackathon.is_approved
        and hackathon.status != "cancelled"
        and now <= hackathon.registration_deadline
    )


def is_registration_open(hackathon: Hackathon, now: Optional[datetime] = None) -> bool:
    now = as_utc(now) if now else utcnow()
    return (
        hackathon.is_approved
        and now <= hackathon.registration_deadline
        and participant_count(hackathon) < hackathon.max_participants
        and derive_status(hackathon, now) == "upcoming"
    )


def registered_user_ids(hackathon: Hackathon) -> set[str]:
    ids = set(hackathon.participants)
    for team in hackathon.teams:
        ids.update(m.user for m in team.members if m.user)
    return ids


def registered_emails(hackathon: Hackathon) -> set[str]:
    return {m.email.lower() for team in hackathon.teams for m in team.members}


def is_user_registered(hackathon: Hackathon, user_id: str) -> bool:
    return user_id in registered_user_ids(hackathon)


def public_hackathon(hackathon: Hackathon, now: Optional[datetime] = None) -> Dict[str, Any]:
    """JSON view of a hackathon with freshly derived fields.

    Teams are summarized; member contact details are only served by the roster endpoint.
    """
    now = as_utc(now) if now else utcnow()
    data = hackathon.to_json_dict()
    data["teams"] = [
        {
            "teamName": team.team_name,
            "memberCount": team.size,
            "registeredAt": data["teams"][i]["registeredAt"],
        }
        for i, team in enumerate(hackathon.teams)
    ]
    data["status"] = derive_status(hackathon, now)
    data["participantCount"] = participant_count(hackathon)
    data["spotsRemaining"] = spots_remaining(hackathon)
    data["isRegistrationOpen"] = is_registration_open(hackathon, now)
    return data

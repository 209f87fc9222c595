from typing import Optional

from fastapi import APIRouter, Depends, Query

from .common import current_identity, error_response, message, optional_identity, require_roles
from models.lifecycle import participant_count, public_hackathon, spots_remaining
from models.schemas import HackathonIn, HackathonStatus, TeamRegistrationIn
from services.errors import HackHubError
from services.hackathons import (
    approve_hackathon,
    browse_hackathons,
    cancel_hackathon,
    create_hackathon,
    delete_hackathon,
    get_hackathon,
    get_managed_hackathon,
    hackathons_for,
    register_participant,
    remove_team,
    unregister_participant,
    update_hackathon,
)
from services.identity import Identity
from services.registration import register_team


router = APIRouter()


@router.get("/hackathons")
def list_hackathons_route(
    status: Optional[HackathonStatus] = Query(None),
    include_all: bool = Query(False, alias="all"),
    identity: Optional[Identity] = Depends(optional_identity),
):
    hackathons = browse_hackathons(identity, status=status, include_unapproved=include_all)
    return {"hackathons": [public_hackathon(h) for h in hackathons], "total": len(hackathons)}


@router.get("/hackathons/user/my-hackathons")
def my_hackathons(identity: Identity = Depends(current_identity)):
    return [public_hackathon(h) for h in hackathons_for(identity)]


@router.get("/hackathons/{hackathon_id}")
def get_hackathon_route(hackathon_id: str, identity: Optional[Identity] = Depends(optional_identity)):
    try:
        return public_hackathon(get_hackathon(hackathon_id, identity))
    except HackHubError as e:
        return error_response(e)


@router.post("/hackathons", status_code=201)
def create_hackathon_route(
    body: HackathonIn, identity: Identity = Depends(require_roles("organizer", "admin"))
):
    try:
        return public_hackathon(create_hackathon(identity, body.provided()))
    except HackHubError as e:
        return error_response(e)


@router.put("/hackathons/{hackathon_id}")
def update_hackathon_route(
    hackathon_id: str, body: HackathonIn, identity: Identity = Depends(current_identity)
):
    try:
        return public_hackathon(update_hackathon(hackathon_id, identity, body.provided()))
    except HackHubError as e:
        return error_response(e)


@router.delete("/hackathons/{hackathon_id}")
def delete_hackathon_route(hackathon_id: str, identity: Identity = Depends(current_identity)):
    try:
        delete_hackathon(hackathon_id, identity)
    except HackHubError as e:
        return error_response(e)
    return message("Hackathon deleted successfully")


@router.post("/hackathons/{hackathon_id}/approve")
def approve_hackathon_route(hackathon_id: str, identity: Identity = Depends(require_roles("admin"))):
    try:
        approve_hackathon(hackathon_id, identity)
    except HackHubError as e:
        return error_response(e)
    return message("Hackathon approved successfully")


@router.post("/hackathons/{hackathon_id}/cancel")
def cancel_hackathon_route(hackathon_id: str, identity: Identity = Depends(current_identity)):
    try:
        hackathon = cancel_hackathon(hackathon_id, identity)
    except HackHubError as e:
        return error_response(e)
    return message("Hackathon cancelled", hackathon=public_hackathon(hackathon))


@router.post("/hackathons/{hackathon_id}/register")
def register_route(hackathon_id: str, identity: Identity = Depends(current_identity)):
    try:
        hackathon = register_participant(hackathon_id, identity.user_id)
    except HackHubError as e:
        return error_response(e)
    return message(
        "Successfully registered for hackathon",
        participantCount=participant_count(hackathon),
        spotsRemaining=spots_remaining(hackathon),
    )


@router.post("/hackathons/{hackathon_id}/unregister")
def unregister_route(hackathon_id: str, identity: Identity = Depends(current_identity)):
    try:
        unregister_participant(hackathon_id, identity.user_id)
    except HackHubError as e:
        return error_response(e)
    return message("Successfully unregistered from hackathon")


@router.post("/hackathons/{hackathon_id}/register-team", status_code=201)
def register_team_route(
    hackathon_id: str, body: TeamRegistrationIn, identity: Identity = Depends(current_identity)
):
    try:
        hackathon, team = register_team(hackathon_id, body.team_name, body.members)
    except HackHubError as e:
        return error_response(e)
    return {
        **team.to_json_dict(),
        "participantCount": participant_count(hackathon),
        "spotsRemaining": spots_remaining(hackathon),
    }


@router.get("/hackathons/{hackathon_id}/teams")
def list_teams_route(hackathon_id: str, identity: Identity = Depends(current_identity)):
    try:
        hackathon = get_managed_hackathon(hackathon_id, identity)
    except HackHubError as e:
        return error_response(e)
    return {
        "teams": [team.to_json_dict() for team in hackathon.teams],
        "participants": hackathon.participants,
        "participantCount": participant_count(hackathon),
        "spotsRemaining": spots_remaining(hackathon),
        "maxParticipants": hackathon.max_participants,
    }


@router.delete("/hackathons/{hackathon_id}/teams/{team_name}")
def remove_team_route(hackathon_id: str, team_name: str, identity: Identity = Depends(current_identity)):
    try:
        hackathon = remove_team(hackathon_id, identity, team_name)
    except HackHubError as e:
        return error_response(e)
    return message(
        "Team removed",
        participantCount=participant_count(hackathon),
        spotsRemaining=spots_remaining(hackathon),
    )

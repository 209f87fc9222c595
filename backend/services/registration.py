"""Team registration: validate a team against one hackathon and append it atomically."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from models.lifecycle import (
    deadline_open,
    participant_count,
    registered_emails,
    registered_user_ids,
)
from models.schemas import Hackathon, Member, MemberIn, Team, as_utc, utcnow
from services.errors import (
    DuplicateMember,
    HackathonFull,
    RegistrationClosed,
    ValidationFailed,
)
from services.hackathons import closed_reason, mutate_hackathon
from utils.validation import clean_strings, is_valid_email, is_valid_phone


logger = logging.getLogger(__name__)

MemberPayload = Union[MemberIn, Mapping[str, Any]]

REQUIRED_MESSAGES = {
    "name": "Name is required",
    "email": "Email is required",
    "phone": "Phone number is required",
    "college": "College is required",
    "year": "Year is required",
}


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _skills(value: Any) -> Optional[List[str]]:
    """Skills as a list of strings, or None when the payload is not a list of scalars."""
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        return None
    if any(isinstance(item, (dict, list, tuple)) for item in value):
        return None
    return clean_strings(_text(item) for item in value)


def _coerce_members(members: Sequence[MemberPayload]) -> List[MemberIn]:
    coerced: List[MemberIn] = []
    errors: Dict[str, str] = {}
    for index, member in enumerate(members):
        if isinstance(member, MemberIn):
            coerced.append(member)
            continue
        try:
            coerced.append(MemberIn.model_validate(member))
        except ValidationError as exc:
            for err in exc.errors():
                key = f"member[{index}]"
                if err.get("loc"):
                    key += f".{err['loc'][0]}"
                errors.setdefault(key, "Invalid value")
    if errors:
        raise ValidationFailed(errors, message="Some member details are invalid")
    return coerced


def _member_field_errors(members: Sequence[MemberIn]) -> Dict[str, str]:
    """Every problem with every member, keyed ``member[i].<field>``."""
    errors: Dict[str, str] = {}
    seen_emails: set[str] = set()
    leaders = 0
    for index, member in enumerate(members):
        prefix = f"member[{index}]"
        for field, message in REQUIRED_MESSAGES.items():
            if not _text(getattr(member, field)):
                errors[f"{prefix}.{field}"] = message

        email = _text(member.email).lower()
        if email:
            if not is_valid_email(email):
                errors[f"{prefix}.email"] = "Invalid email format"
            elif email in seen_emails:
                errors[f"{prefix}.email"] = "Email is repeated within the team"
            seen_emails.add(email)

        phone = _text(member.phone)
        if phone and not is_valid_phone(phone):
            errors[f"{prefix}.phone"] = "Invalid Indian phone number"

        if _skills(member.skills) is None:
            errors[f"{prefix}.skills"] = "Skills must be a list of strings"

        role = _text(member.role).lower()
        if role not in ("", "leader", "member"):
            errors[f"{prefix}.role"] = "Role must be leader or member"
        elif role == "leader":
            leaders += 1
            if leaders > 1:
                errors[f"{prefix}.role"] = "A team has exactly one leader"
    return errors


def _to_members(members: Sequence[MemberIn]) -> List[Member]:
    """Build stored members; the first entrant leads when nobody was named leader."""
    has_leader = any(_text(m.role).lower() == "leader" for m in members)
    built: List[Member] = []
    for index, member in enumerate(members):
        role = _text(member.role).lower()
        if not has_leader:
            role = "leader" if index == 0 else "member"
        built.append(
            Member(
                user=_text(member.user) or None,
                name=_text(member.name),
                email=_text(member.email).lower(),
                phone=_text(member.phone),
                college=_text(member.college),
                year=_text(member.year),
                skills=_skills(member.skills),
                role=role or "member",
            )
        )
    return built


def validate_team(
    hackathon: Hackathon,
    team_name: str,
    members: Sequence[MemberPayload],
    now: Optional[datetime] = None,
) -> Team:
    """Run registration checks 2-7 against an already loaded hackathon.

    Raises the first failing check's error. Member field errors are collected
    for all members before raising.
    """
    now = as_utc(now) if now else utcnow()

    if not deadline_open(hackathon, now):
        raise RegistrationClosed(closed_reason(hackathon))

    name = _text(team_name)
    if not name:
        raise ValidationFailed({"teamName": "Team name is required"})
    if name.lower() in {t.team_name.lower() for t in hackathon.teams}:
        raise ValidationFailed({"teamName": "Team name is already taken for this hackathon"})

    bounds = hackathon.team_size
    if not bounds.min <= len(members) <= bounds.max:
        raise ValidationFailed(
            {"teamSize": f"Team must have between {bounds.min} and {bounds.max} members"}
        )

    members = _coerce_members(members)
    field_errors = _member_field_errors(members)
    if field_errors:
        raise ValidationFailed(field_errors, message="Some member details are invalid")

    new_members = _to_members(members)
    taken_ids = registered_user_ids(hackathon)
    taken_emails = registered_emails(hackathon)
    for member in new_members:
        if member.user and member.user in taken_ids:
            raise DuplicateMember(f"{member.name} is already registered for this hackathon")
        if member.email in taken_emails:
            raise DuplicateMember(f"{member.email} is already registered for this hackathon")

    if participant_count(hackathon) + len(new_members) > hackathon.max_participants:
        raise HackathonFull()

    return Team(team_name=name, members=new_members, registered_at=now)


def register_team(
    hackathon_id: str,
    team_name: str,
    members: Sequence[MemberPayload],
    now: Optional[datetime] = None,
) -> Tuple[Hackathon, Team]:
    """Validate and append a team in one conditional write; returns (hackathon, team)."""
    now = as_utc(now) if now else utcnow()

    def _append(hackathon: Hackathon) -> Team:
        team = validate_team(hackathon, team_name, members, now)
        hackathon.teams.append(team)
        return team

    try:
        hackathon, team = mutate_hackathon(hackathon_id, _append, now)
    except (RegistrationClosed, ValidationFailed, DuplicateMember, HackathonFull) as exc:
        logger.info(f"Team registration for hackathon {hackathon_id} rejected: {exc.message}")
        raise
    logger.info(
        f"Team '{team.team_name}' ({team.size} members) registered for hackathon {hackathon_id}; "
        f"{participant_count(hackathon)}/{hackathon.max_participants} spots taken"
    )
    return hackathon, team

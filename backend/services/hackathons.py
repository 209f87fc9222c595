"""Hackathon registry: read-modify-write cycles and the management operations built on them.

Every write to a hackathon record goes through ``mutate_hackathon``: it holds a
per-hackathon lock for the whole load/check/write cycle and commits with a
compare-and-swap on the record version, retrying version conflicts a bounded
number of times.
"""

from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, TypeVar

from pydantic import ValidationError

from config.settings import CAS_MAX_ATTEMPTS
from models.db import (
    compare_and_swap_hackathon,
    delete_hackathon as delete_hackathon_db,
    insert_hackathon,
    list_hackathons,
    load_hackathon,
)
from models.lifecycle import deadline_open, derive_status, is_user_registered, participant_count
from models.schemas import Hackathon, as_utc, utcnow
from services.errors import (
    Conflict,
    DuplicateMember,
    Forbidden,
    HackathonFull,
    NotFound,
    RegistrationClosed,
    ValidationFailed,
    VersionConflict,
)
from services.identity import Identity


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fields an organizer may edit; roster, approval and status change through dedicated operations
EDITABLE_FIELDS = (
    "title",
    "description",
    "start_date",
    "end_date",
    "registration_deadline",
    "location",
    "max_participants",
    "team_size",
    "tags",
    "prizes",
    "requirements",
    "rules",
    "contact_email",
    "website",
    "image_url",
)

# hackathon id -> [lock, holders]; an entry lives only while someone holds or waits on it
_locks: Dict[str, List[Any]] = {}
_locks_guard = threading.Lock()


@contextmanager
def hackathon_lock(hackathon_id: str) -> Iterator[None]:
    with _locks_guard:
        entry = _locks.get(hackathon_id)
        if entry is None:
            entry = _locks[hackathon_id] = [threading.Lock(), 0]
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _locks_guard:
            entry[1] -= 1
            if entry[1] == 0:
                _locks.pop(hackathon_id, None)


def _commit(hackathon_id: str, expected_version: int, hackathon: Hackathon, now: Optional[datetime]) -> None:
    if not compare_and_swap_hackathon(hackathon_id, expected_version, hackathon, now):
        raise VersionConflict()


def mutate_hackathon(
    hackathon_id: str,
    mutate: Callable[[Hackathon], T],
    now: Optional[datetime] = None,
    max_attempts: int = CAS_MAX_ATTEMPTS,
) -> Tuple[Hackathon, T]:
    """Load, mutate in place and conditionally write one hackathon record.

    ``mutate`` may raise a domain error to reject the change; nothing is written
    in that case. Returns the written record and whatever ``mutate`` returned.
    """
    with hackathon_lock(hackathon_id):
        for attempt in range(1, max_attempts + 1):
            hackathon = load_hackathon(hackathon_id)
            if hackathon is None:
                raise NotFound()
            expected_version = hackathon.version
            result = mutate(hackathon)
            try:
                _commit(hackathon_id, expected_version, hackathon, now)
            except VersionConflict:
                logger.warning(
                    f"Version conflict on hackathon {hackathon_id} "
                    f"(expected v{expected_version}, attempt {attempt}/{max_attempts})"
                )
                continue
            return hackathon, result
    raise Conflict()


def validation_errors(exc: ValidationError) -> Dict[str, str]:
    """Flatten pydantic errors into a path -> message map."""
    errors: Dict[str, str] = {}
    for err in exc.errors():
        path = ".".join(str(part) for part in err.get("loc", ())) or "hackathon"
        message = err.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(path, message)
    return errors


def _build(data: Dict[str, Any]) -> Hackathon:
    try:
        return Hackathon.model_validate(data)
    except ValidationError as exc:
        raise ValidationFailed(validation_errors(exc)) from exc


# --- Reads ---

def _visible_to(hackathon: Hackathon, actor: Optional[Identity]) -> bool:
    if hackathon.is_approved:
        return True
    return actor is not None and actor.can_manage(hackathon.organizer)


def get_hackathon(hackathon_id: str, actor: Optional[Identity] = None) -> Hackathon:
    """Unapproved hackathons are hidden from everyone but admins and their organizer."""
    hackathon = load_hackathon(hackathon_id)
    if hackathon is None or not _visible_to(hackathon, actor):
        raise NotFound()
    return hackathon


def get_managed_hackathon(hackathon_id: str, actor: Identity) -> Hackathon:
    hackathon = load_hackathon(hackathon_id)
    if hackathon is None:
        raise NotFound()
    if not actor.can_manage(hackathon.organizer):
        raise Forbidden()
    return hackathon


def browse_hackathons(
    actor: Optional[Identity] = None,
    status: Optional[str] = None,
    include_unapproved: bool = False,
    now: Optional[datetime] = None,
) -> List[Hackathon]:
    approved_only = not (include_unapproved and actor is not None and actor.is_admin)
    hackathons = list_hackathons(approved_only=approved_only)
    if status:
        hackathons = [h for h in hackathons if derive_status(h, now) == status]
    return hackathons


def hackathons_for(actor: Identity) -> List[Hackathon]:
    """Organizers and admins see what they organize, students what they joined."""
    if actor.has_role("organizer", "admin"):
        return list_hackathons(approved_only=False, organizer_id=actor.user_id)
    return [h for h in list_hackathons(approved_only=False) if is_user_registered(h, actor.user_id)]


# --- Organizer / admin writes ---

def create_hackathon(actor: Identity, payload: Dict[str, Any], now: Optional[datetime] = None) -> Hackathon:
    data = {key: value for key, value in payload.items() if value is not None}
    data.update({"id": uuid.uuid4().hex, "organizer": actor.user_id, "isApproved": False})
    hackathon = insert_hackathon(_build(data), now)
    logger.info(f"Hackathon {hackathon.id} created by {actor.user_id}")
    return hackathon


def update_hackathon(
    hackathon_id: str,
    actor: Identity,
    changes: Dict[str, Any],
    now: Optional[datetime] = None,
) -> Hackathon:
    def _apply(hackathon: Hackathon) -> None:
        if not actor.can_manage(hackathon.organizer):
            raise Forbidden()
        merged = hackathon.model_dump(by_alias=True, mode="json")
        merged.update(changes)
        edited = _build(merged)
        if edited.max_participants < participant_count(hackathon):
            raise ValidationFailed(
                {"maxParticipants": "Cannot be lower than the number of registered participants"}
            )
        for field in EDITABLE_FIELDS:
            setattr(hackathon, field, getattr(edited, field))

    hackathon, _ = mutate_hackathon(hackathon_id, _apply, now)
    logger.info(f"Hackathon {hackathon_id} updated by {actor.user_id}")
    return hackathon


def approve_hackathon(hackathon_id: str, actor: Identity, now: Optional[datetime] = None) -> Hackathon:
    def _approve(hackathon: Hackathon) -> None:
        if not actor.is_admin:
            raise Forbidden("Admin access required")
        hackathon.is_approved = True

    hackathon, _ = mutate_hackathon(hackathon_id, _approve, now)
    logger.info(f"Hackathon {hackathon_id} approved by {actor.user_id}")
    return hackathon


def cancel_hackathon(hackathon_id: str, actor: Identity, now: Optional[datetime] = None) -> Hackathon:
    def _cancel(hackathon: Hackathon) -> None:
        if not actor.can_manage(hackathon.organizer):
            raise Forbidden()
        hackathon.status = "cancelled"

    hackathon, _ = mutate_hackathon(hackathon_id, _cancel, now)
    logger.info(f"Hackathon {hackathon_id} cancelled by {actor.user_id}")
    return hackathon


def delete_hackathon(hackathon_id: str, actor: Identity) -> None:
    with hackathon_lock(hackathon_id):
        get_managed_hackathon(hackathon_id, actor)
        delete_hackathon_db(hackathon_id)
    logger.info(f"Hackathon {hackathon_id} deleted by {actor.user_id}")


def remove_team(
    hackathon_id: str,
    actor: Identity,
    team_name: str,
    now: Optional[datetime] = None,
) -> Hackathon:
    wanted = team_name.strip().lower()

    def _remove(hackathon: Hackathon) -> None:
        if not actor.can_manage(hackathon.organizer):
            raise Forbidden()
        kept = [t for t in hackathon.teams if t.team_name.lower() != wanted]
        if len(kept) == len(hackathon.teams):
            raise NotFound("Team not found")
        hackathon.teams = kept

    hackathon, _ = mutate_hackathon(hackathon_id, _remove, now)
    logger.info(f"Team '{team_name}' removed from hackathon {hackathon_id} by {actor.user_id}")
    return hackathon


# --- Individual registration ---

def closed_reason(hackathon: Hackathon) -> str:
    if not hackathon.is_approved:
        return "Hackathon is not open for registration"
    if hackathon.status == "cancelled":
        return "Hackathon has been cancelled"
    return "Registration deadline has passed"


def register_participant(hackathon_id: str, user_id: str, now: Optional[datetime] = None) -> Hackathon:
    now = as_utc(now) if now else utcnow()

    def _join(hackathon: Hackathon) -> None:
        if not deadline_open(hackathon, now):
            raise RegistrationClosed(closed_reason(hackathon))
        if is_user_registered(hackathon, user_id):
            raise DuplicateMember("Already registered for this hackathon")
        if participant_count(hackathon) + 1 > hackathon.max_participants:
            raise HackathonFull()
        hackathon.participants.append(user_id)

    hackathon, _ = mutate_hackathon(hackathon_id, _join, now)
    logger.info(f"User {user_id} registered for hackathon {hackathon_id}")
    return hackathon


def unregister_participant(hackathon_id: str, user_id: str, now: Optional[datetime] = None) -> bool:
    """Remove an individual registration; returns False if the user was not on the list."""

    def _leave(hackathon: Hackathon) -> bool:
        before = len(hackathon.participants)
        hackathon.participants = [p for p in hackathon.participants if p != user_id]
        return len(hackathon.participants) != before

    _, removed = mutate_hackathon(hackathon_id, _leave, now)
    if removed:
        logger.info(f"User {user_id} unregistered from hackathon {hackathon_id}")
    return removed

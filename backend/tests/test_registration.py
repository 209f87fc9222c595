from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

import services.hackathons as hackathons_module
from conftest import member, team_members
from models.db import load_hackathon
from models.lifecycle import participant_count
from models.schemas import utcnow
from services.errors import (
    Conflict,
    DuplicateMember,
    HackathonFull,
    NotFound,
    RegistrationClosed,
    ValidationFailed,
    VersionConflict,
)
from services.registration import register_team


def test_valid_team_increases_participant_count_by_team_size(make_hackathon):
    h = make_hackathon(maxParticipants=10)
    hackathon, team = register_team(h.id, "Byte Me", team_members(0, 3))
    assert participant_count(hackathon) == 3
    assert team.team_name == "Byte Me"
    assert [m.name for m in team.members] == ["Member 0", "Member 1", "Member 2"]

    stored = load_hackathon(h.id)
    assert participant_count(stored) == 3
    assert stored.version == h.version + 1
    assert stored.teams[0].registered_at == team.registered_at


def test_team_name_is_trimmed(make_hackathon):
    h = make_hackathon()
    _, team = register_team(h.id, "  Null Pointers  ", team_members(0, 1))
    assert team.team_name == "Null Pointers"


def test_full_hackathon_rejects_and_leaves_record_unchanged(make_hackathon):
    h = make_hackathon(maxParticipants=5)
    register_team(h.id, "First", team_members(0, 4))
    before = load_hackathon(h.id)

    with pytest.raises(HackathonFull):
        register_team(h.id, "Second", team_members(10, 2))

    after = load_hackathon(h.id)
    assert participant_count(after) == 4
    assert after.version == before.version
    assert after.model_dump() == before.model_dump()


@pytest.mark.parametrize("size", [1, 4])
def test_team_size_outside_bounds_fails_regardless_of_capacity(make_hackathon, size):
    h = make_hackathon(maxParticipants=1, teamSize={"min": 2, "max": 3})
    with pytest.raises(ValidationFailed) as exc:
        register_team(h.id, "Sized", team_members(0, size))
    assert exc.value.fields == ["teamSize"]


def test_registration_after_deadline_is_closed(make_hackathon):
    now = utcnow()
    h = make_hackathon(registrationDeadline=now - timedelta(hours=1))
    with pytest.raises(RegistrationClosed):
        register_team(h.id, "Late", team_members(0, 2), now=now)


def test_unapproved_hackathon_is_closed(make_hackathon):
    h = make_hackathon(isApproved=False)
    with pytest.raises(RegistrationClosed):
        register_team(h.id, "Eager", team_members(0, 2))


def test_unknown_hackathon_is_not_found(temp_db):
    with pytest.raises(NotFound):
        register_team("does-not-exist", "Ghosts", team_members(0, 2))


def test_check_order_closed_before_field_errors(make_hackathon):
    now = utcnow()
    h = make_hackathon(registrationDeadline=now - timedelta(minutes=1))
    with pytest.raises(RegistrationClosed):
        register_team(h.id, "", [], now=now)


def test_check_order_team_name_before_team_size(make_hackathon):
    h = make_hackathon(teamSize={"min": 2, "max": 2})
    with pytest.raises(ValidationFailed) as exc:
        register_team(h.id, "   ", team_members(0, 5))
    assert exc.value.fields == ["teamName"]


def test_check_order_team_size_before_member_fields(make_hackathon):
    h = make_hackathon(teamSize={"min": 2, "max": 2})
    with pytest.raises(ValidationFailed) as exc:
        register_team(h.id, "Sized", [member(0, email="nope")])
    assert exc.value.fields == ["teamSize"]


def test_check_order_member_fields_before_duplicates(make_hackathon):
    h = make_hackathon()
    register_team(h.id, "First", [member(0, user="u-1")])
    with pytest.raises(ValidationFailed):
        register_team(h.id, "Second", [member(1, user="u-1", phone="12345")])


def test_check_order_duplicate_before_capacity(make_hackathon):
    h = make_hackathon(maxParticipants=2)
    register_team(h.id, "First", [member(0, user="u-1"), member(1)])
    with pytest.raises(DuplicateMember):
        register_team(h.id, "Second", [member(2, user="u-1")])


def test_member_errors_are_collected_for_every_member(make_hackathon):
    h = make_hackathon()
    members = [
        member(0, email="not-an-email", college=""),
        member(1, phone="5123456789"),
        member(2, name="  ", year=None),
    ]
    with pytest.raises(ValidationFailed) as exc:
        register_team(h.id, "Typos", members)
    assert exc.value.field_errors == {
        "member[0].email": "Invalid email format",
        "member[0].college": "College is required",
        "member[1].phone": "Invalid Indian phone number",
        "member[2].name": "Name is required",
        "member[2].year": "Year is required",
    }
    assert load_hackathon(h.id).teams == []


@pytest.mark.parametrize("phone", ["9876543210", "+919876543210", "919876543210", "6000000000"])
def test_accepted_phone_formats(make_hackathon, phone):
    h = make_hackathon()
    _, team = register_team(h.id, "Dialers", [member(0, phone=phone)])
    assert team.members[0].phone == phone


@pytest.mark.parametrize("phone", ["9२१०००००००", "９８７６５４３２１０", "98765 43210", "+9198765432101"])
def test_rejected_phone_formats(make_hackathon, phone):
    h = make_hackathon()
    with pytest.raises(ValidationFailed) as exc:
        register_team(h.id, "Digits", [member(0, phone=phone)])
    assert exc.value.field_errors == {"member[0].phone": "Invalid Indian phone number"}
    assert load_hackathon(h.id).teams == []


def test_numeric_member_fields_are_read_as_text(make_hackathon):
    h = make_hackathon()
    _, team = register_team(h.id, "Numbers", [member(0, phone=9876543210, year=3)])
    assert team.members[0].phone == "9876543210"
    assert team.members[0].year == "3"


def test_non_list_skills_is_a_field_error(make_hackathon):
    h = make_hackathon()
    with pytest.raises(ValidationFailed) as exc:
        register_team(h.id, "Skilled", [member(0, skills="python")])
    assert set(exc.value.field_errors) == {"member[0].skills"}


def test_user_already_in_another_team_is_duplicate(make_hackathon):
    h = make_hackathon()
    register_team(h.id, "First", [member(0, user="u-1")])
    with pytest.raises(DuplicateMember):
        register_team(h.id, "Second", [member(1), member(2, user="u-1")])


def test_same_user_twice_in_one_new_team_passes_user_check(make_hackathon):
    h = make_hackathon()
    _, team = register_team(h.id, "Twins", [member(0, user="u-1"), member(1, user="u-1")])
    assert [m.user for m in team.members] == ["u-1", "u-1"]


def test_guest_email_in_another_team_is_duplicate(make_hackathon):
    h = make_hackathon()
    register_team(h.id, "First", [member(0)])
    with pytest.raises(DuplicateMember):
        register_team(h.id, "Second", [member(1), member(7, email="MEMBER0@example.com")])


def test_email_repeated_within_team_is_a_field_error(make_hackathon):
    h = make_hackathon()
    with pytest.raises(ValidationFailed) as exc:
        register_team(h.id, "Echo", [member(0), member(1, email="member0@example.com")])
    assert exc.value.fields == ["member[1].email"]


def test_team_name_must_be_unique_within_hackathon(make_hackathon):
    h = make_hackathon()
    register_team(h.id, "Code Monkeys", [member(0)])
    with pytest.raises(ValidationFailed) as exc:
        register_team(h.id, "code monkeys", [member(1)])
    assert exc.value.fields == ["teamName"]


def test_first_member_leads_when_no_leader_named(make_hackathon):
    h = make_hackathon()
    _, team = register_team(h.id, "Leaderless", team_members(0, 3))
    assert [m.role for m in team.members] == ["leader", "member", "member"]


def test_explicit_leader_is_kept(make_hackathon):
    h = make_hackathon()
    members = [member(0), member(1, role="leader"), member(2)]
    _, team = register_team(h.id, "Chosen", members)
    assert [m.role for m in team.members] == ["member", "leader", "member"]


def test_two_leaders_rejected(make_hackathon):
    h = make_hackathon()
    members = [member(0, role="leader"), member(1, role="leader")]
    with pytest.raises(ValidationFailed) as exc:
        register_team(h.id, "Coups", members)
    assert exc.value.fields == ["member[1].role"]


def test_skills_keep_order_and_drop_repeats(make_hackathon):
    h = make_hackathon()
    _, team = register_team(h.id, "Skilled", [member(0, skills=["rust", " go ", "rust", ""])])
    assert team.members[0].skills == ["rust", "go"]


def test_four_seats_two_teams_of_two_then_full(make_hackathon):
    h = make_hackathon(maxParticipants=4, teamSize={"min": 2, "max": 2})
    register_team(h.id, "Alpha", team_members(0, 2))
    hackathon, _ = register_team(h.id, "Beta", team_members(2, 2))
    assert participant_count(hackathon) == 4
    with pytest.raises(HackathonFull):
        register_team(h.id, "Gamma", team_members(4, 2))
    assert participant_count(load_hackathon(h.id)) == 4


def test_concurrent_registrations_never_overshoot_capacity(make_hackathon):
    team_size = 2
    full_teams = 5
    h = make_hackathon(maxParticipants=team_size * full_teams, teamSize={"min": 2, "max": 2})
    attempts = full_teams + 1
    barrier = threading.Barrier(attempts)

    def attempt(i: int) -> str:
        barrier.wait()
        try:
            register_team(h.id, f"Team {i}", team_members(i * 10, team_size))
            return "ok"
        except HackathonFull:
            return "full"

    with ThreadPoolExecutor(max_workers=attempts) as pool:
        outcomes = list(pool.map(attempt, range(attempts)))

    assert outcomes.count("ok") == full_teams
    assert outcomes.count("full") == 1
    stored = load_hackathon(h.id)
    assert participant_count(stored) == team_size * full_teams
    assert len(stored.teams) == full_teams


def test_version_conflict_is_retried(make_hackathon, monkeypatch):
    h = make_hackathon()
    real_cas = hackathons_module.compare_and_swap_hackathon
    calls = {"n": 0}

    def flaky_cas(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            return False
        return real_cas(*args, **kwargs)

    monkeypatch.setattr(hackathons_module, "compare_and_swap_hackathon", flaky_cas)
    hackathon, _ = register_team(h.id, "Retry", team_members(0, 2))
    assert calls["n"] == 2
    assert participant_count(hackathon) == 2


def test_persistent_version_conflict_surfaces_as_conflict(make_hackathon, monkeypatch):
    h = make_hackathon()
    monkeypatch.setattr(hackathons_module, "compare_and_swap_hackathon", lambda *a, **k: False)
    with pytest.raises(Conflict):
        register_team(h.id, "Stuck", team_members(0, 2))
    assert load_hackathon(h.id).teams == []


def test_stale_write_raises_version_conflict(make_hackathon):
    h = make_hackathon()
    stale = load_hackathon(h.id)
    register_team(h.id, "Fresh", team_members(0, 2))
    with pytest.raises(VersionConflict):
        hackathons_module._commit(h.id, stale.version, stale, utcnow())


def test_lock_registry_is_released_after_writes(make_hackathon):
    hackathons = [make_hackathon() for _ in range(3)]
    with ThreadPoolExecutor(max_workers=6) as pool:
        list(pool.map(lambda i: register_team(hackathons[i % 3].id, f"T{i}", [member(i)]), range(6)))
    assert hackathons_module._locks == {}

"""Tests for server-side phase resolution."""

from datetime import timedelta

from caption_impostor.core.config import settings
from caption_impostor.core.utils import utc_now
from caption_impostor.models.room import Room
from caption_impostor.models.round_model import Round
from caption_impostor.services import round_state


def _started_round(now):
    round_obj = Round(round_number=1)
    round_state.start_round_clock(round_obj, now)
    return round_obj


def test_lobby_and_dormant_rooms_are_in_lobby():
    now = utc_now()
    assert round_state.resolve_phase(Room(status="lobby"), None, now) == "lobby"
    assert round_state.resolve_phase(Room(status="dormant"), None, now) == "lobby"


def test_phase_follows_deadlines():
    now = utc_now()
    room = Room(status="in_progress", current_round=1)
    round_obj = _started_round(now)

    assert round_state.resolve_phase(room, round_obj, now) == "captioning"
    after_captions = now + timedelta(seconds=settings.CAPTION_SECONDS)
    assert round_state.resolve_phase(room, round_obj, after_captions) == "voting"
    after_voting = after_captions + timedelta(seconds=settings.VOTING_SECONDS)
    assert round_state.resolve_phase(room, round_obj, after_voting) == "results"


def test_skips_rewrite_deadlines():
    now = utc_now()
    room = Room(status="in_progress", current_round=1)
    round_obj = _started_round(now)

    round_state.skip_captioning(round_obj, now)
    assert round_state.resolve_phase(room, round_obj, now) == "voting"
    assert round_obj.voting_deadline_at == now + timedelta(seconds=settings.VOTING_SECONDS)

    round_state.skip_voting(round_obj, now)
    assert round_state.resolve_phase(room, round_obj, now) == "results"


def test_completed_rooms():
    now = utc_now()
    finished = Room(status="completed", current_round=settings.TOTAL_ROUNDS)
    abandoned = Room(status="completed", current_round=2)

    assert round_state.resolve_phase(finished, None, now) == "final_results"
    assert round_state.resolve_phase(abandoned, None, now) == "completed"


def test_in_progress_without_round_data():
    room = Room(status="in_progress", current_round=3)
    unstarted = Round(round_number=3)

    assert round_state.resolve_phase(room, None, utc_now()) == "lobby"
    assert round_state.is_round_missing(room, None) is True
    assert round_state.is_round_missing(room, unstarted) is True
    assert round_state.is_round_missing(Room(status="lobby"), None) is False

"""
Round phase resolution.

The phase of a room is derived on the server from the persisted round
timestamps, so every client polling or subscribing to a room sees the same
phase:

    lobby -> captioning -> voting -> results -> (captioning of next round | final_results)

Host skip actions rewrite the deadlines instead of flipping a flag, so the
phase stays a pure function of (room, current round, now).
"""

from datetime import datetime, timedelta
from typing import Optional
from caption_impostor.core.config import settings
from caption_impostor.models.room import Room, LOBBY, DORMANT, IN_PROGRESS, COMPLETED
from caption_impostor.models.round_model import Round

LOBBY_PHASE = "lobby"
CAPTIONING = "captioning"
VOTING = "voting"
RESULTS = "results"
FINAL_RESULTS = "final_results"
COMPLETED_PHASE = "completed"


def resolve_phase(room: Room, round_obj: Optional[Round], now: datetime) -> str:
    """Phase of a room at ``now``"""
    status = room.status
    if status in (LOBBY, DORMANT):
        return LOBBY_PHASE

    if status == COMPLETED:
        if room.current_round and room.current_round >= settings.TOTAL_ROUNDS:
            return FINAL_RESULTS
        return COMPLETED_PHASE

    # in_progress without round data: callers report round_missing
    if round_obj is None or round_obj.deadline_at is None:
        return LOBBY_PHASE

    if now < round_obj.deadline_at:
        return CAPTIONING
    if round_obj.voting_deadline_at is None or now < round_obj.voting_deadline_at:
        return VOTING
    return RESULTS


def is_round_missing(room: Room, round_obj: Optional[Round]) -> bool:
    return room.status == IN_PROGRESS and (round_obj is None or round_obj.deadline_at is None)


def start_round_clock(round_obj: Round, now: datetime) -> None:
    """Open captioning now and schedule the end of voting"""
    round_obj.started_at = now
    round_obj.deadline_at = now + timedelta(seconds=settings.CAPTION_SECONDS)
    round_obj.voting_deadline_at = round_obj.deadline_at + timedelta(seconds=settings.VOTING_SECONDS)


def skip_captioning(round_obj: Round, now: datetime) -> None:
    """End captioning now; voting gets its full duration from now"""
    round_obj.deadline_at = now
    round_obj.voting_deadline_at = now + timedelta(seconds=settings.VOTING_SECONDS)


def skip_voting(round_obj: Round, now: datetime) -> None:
    round_obj.voting_deadline_at = now

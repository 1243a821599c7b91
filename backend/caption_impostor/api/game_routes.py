"""
Game API routes: start, rounds, captions, votes and results
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Optional
from caption_impostor.core.database import get_db
from caption_impostor.core.errors import error_response
from caption_impostor.services.game_service import GameService
from caption_impostor.schemas.room_schemas import (
    StartGameRequest, RoundMetaRequest, HostActionRequest, CaptionSubmitRequest, VoteSubmitRequest,
    RoomInfo, RoundInfo, CaptionInfo, VoteInfo
)

router = APIRouter()

@router.post("/start-game")
async def start_game(request: StartGameRequest, db: Session = Depends(get_db)):
    """Start the game in a lobby room"""
    try:
        result = await GameService(db).start_game(request.room_id, request.user_id)
        return {
            "success": True,
            "room": RoomInfo.model_validate(result["room"]).model_dump(),
            "round": RoundInfo.from_round(result["round"]).model_dump(),
        }
    except Exception as e:
        return error_response(e)

@router.get("/round-image-url")
async def round_image_url(key: Optional[int] = None, userId: str = "", db: Session = Depends(get_db)):
    """Image of the current round for the caller's role"""
    try:
        image = await GameService(db).get_round_image(key, userId)
        return {"success": True, **image}
    except Exception as e:
        return error_response(e)

@router.get("/round-meta")
async def round_meta(gameId: Optional[int] = None, round: Optional[int] = None, userId: str = "",
                     db: Session = Depends(get_db)):
    try:
        meta = await GameService(db).get_round_meta(gameId, round, userId)
        return {"success": True, **meta}
    except Exception as e:
        return error_response(e)

@router.post("/round-meta")
async def round_host_action(request: RoundMetaRequest, db: Session = Depends(get_db)):
    """Host phase controls: skip_timer and skip_voting"""
    try:
        result = await GameService(db).host_action(request.room_id, request.user_id, request.action, request.round_id)
        return {"success": True, **result}
    except Exception as e:
        return error_response(e)

@router.post("/next-round")
async def next_round(request: HostActionRequest, db: Session = Depends(get_db)):
    try:
        result = await GameService(db).next_round(request.room_id, request.user_id)
        return {
            "success": True,
            "finished": result["finished"],
            "room": RoomInfo.model_validate(result["room"]).model_dump(),
            "round": RoundInfo.from_round(result["round"]).model_dump() if result["round"] else None,
        }
    except Exception as e:
        return error_response(e)

@router.post("/return-to-lobby")
async def return_to_lobby(request: HostActionRequest, db: Session = Depends(get_db)):
    try:
        room = await GameService(db).return_to_lobby(request.room_id, request.user_id)
        return {"success": True, "room": RoomInfo.model_validate(room).model_dump()}
    except Exception as e:
        return error_response(e)

@router.post("/caption-submit")
async def caption_submit(request: CaptionSubmitRequest, db: Session = Depends(get_db)):
    try:
        caption = await GameService(db).submit_caption(
            request.round_id, request.player_id, request.user_id, request.caption_text
        )
        return JSONResponse(status_code=201, content={
            "success": True,
            "data": CaptionInfo.model_validate(caption).model_dump(),
        })
    except Exception as e:
        return error_response(e)

@router.post("/vote-submit")
async def vote_submit(request: VoteSubmitRequest, db: Session = Depends(get_db)):
    try:
        vote = await GameService(db).submit_vote(
            request.room_id, request.user_id, request.voter_id, request.voted_for_id, request.round_id
        )
        return {"success": True, "vote": VoteInfo.model_validate(vote).model_dump()}
    except Exception as e:
        return error_response(e)

@router.get("/round-results")
async def round_results(roundId: Optional[int] = None, db: Session = Depends(get_db)):
    """Captions of a round ranked by points"""
    try:
        results = GameService(db).get_round_results(roundId)
        return {"success": True, "results": [r.model_dump() for r in results]}
    except Exception as e:
        return error_response(e)

@router.get("/final-results")
async def final_results(roomId: Optional[int] = None, db: Session = Depends(get_db)):
    try:
        results = GameService(db).get_final_results(roomId)
        winner = results["gameWinner"]
        return {
            "success": True,
            "gameWinner": winner.model_dump() if winner else None,
            "playerScores": [s.model_dump() for s in results["playerScores"]],
            "totalRounds": results["totalRounds"],
        }
    except Exception as e:
        return error_response(e)

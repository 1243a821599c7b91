"""
Game service: start game, round progression, captions, votes and results
"""

import random
from typing import Dict, List, Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from caption_impostor.core.config import settings
from caption_impostor.core.errors import Conflict, DataIntegrityError, InvalidRequest, NotAuthorized, NotFound
from caption_impostor.core.utils import format_timestamp_with_timezone, utc_now
from caption_impostor.models.room import Room, LOBBY, IN_PROGRESS, COMPLETED
from caption_impostor.models.player import Player
from caption_impostor.models.round_model import Round
from caption_impostor.models.caption import Caption
from caption_impostor.models.vote import Vote
from caption_impostor.schemas.room_schemas import (
    PlayerGameScore, PlayerInfo, PlayerRoundResult, RoomInfo, RoomState, RoundInfo, RoundResultEntry
)
from caption_impostor.services import round_state
from caption_impostor.services.image_service import ImageService
from caption_impostor.services.room_service import RoomService
from caption_impostor.services.websocket_service import WebSocketManager, get_websocket_manager

IMPOSTOR_VOTE_MULTIPLIER = 2

class GameService:
    """Game service"""

    HOST_ACTIONS = ("skip_timer", "skip_voting")

    def __init__(self, db: Session, websocket_manager: Optional[WebSocketManager] = None,
                 rng: Optional[random.Random] = None):
        self.db = db
        self.ws = websocket_manager or get_websocket_manager()
        self.rng = rng or random
        self.room_service = RoomService(db, self.ws, self.rng)
        self.image_service = ImageService(db)

    # ---------- lookups ----------

    def _require_host(self, room: Room, user_id: str) -> None:
        if not user_id or room.host_id != user_id:
            raise NotAuthorized("Only the host can do this")

    def get_round(self, room_id: int, round_number: int) -> Optional[Round]:
        if not round_number:
            return None
        return self.db.query(Round).filter(
            Round.room_id == room_id,
            Round.round_number == round_number
        ).first()

    def get_current_round(self, room: Room) -> Optional[Round]:
        return self.get_round(room.id, room.current_round)

    def _player_for_user(self, room_id: int, user_id: str) -> Optional[Player]:
        if not user_id:
            return None
        return self.db.query(Player).filter(
            Player.room_id == room_id,
            Player.user_id == user_id
        ).first()

    def get_room_state(self, room_id: int, user_id: Optional[str] = None,
                       include_offline: bool = False) -> RoomState:
        """Room, players, current round and phase as one snapshot"""
        room = self.room_service.get_room(room_id)
        round_obj = self.get_current_round(room)
        players = self.room_service.get_players(room_id, include_offline=include_offline)
        now = utc_now()
        return RoomState(
            room=RoomInfo.model_validate(room),
            players=[PlayerInfo.model_validate(p) for p in players],
            current_round=RoundInfo.from_round(round_obj) if round_obj else None,
            phase=round_state.resolve_phase(room, round_obj, now),
            round_missing=round_state.is_round_missing(room, round_obj),
            is_impostor=bool(user_id) and room.impostor_id == user_id,
            server_time=now,
        )

    # ---------- start game ----------

    async def start_game(self, room_id: int, user_id: str) -> dict:
        """Start a game: pick the impostor and pre-select every round's images"""
        if not room_id or not user_id:
            raise InvalidRequest("Missing roomId or userId")

        room = self.room_service.get_room(room_id)
        if room.host_id != user_id:
            raise NotAuthorized("Only the host can start the game")
        if room.status != LOBBY:
            raise Conflict("Game is already in progress")

        online_players = self.room_service.get_players(room_id)
        if len(online_players) < settings.MIN_PLAYERS:
            raise InvalidRequest(f"Need at least {settings.MIN_PLAYERS} players to start")

        impostor = self.rng.choice(online_players)

        # Fails before anything is written when the catalog cannot supply a game
        pairs = self.image_service.select_pairs_for_game(self.rng)

        now = utc_now()
        try:
            self._clear_game_data(room_id)
            rounds = []
            for round_number, (real_image, fake_image) in enumerate(pairs, start=1):
                round_obj = Round(
                    room_id=room_id,
                    round_number=round_number,
                    real_image_url=real_image.file_path,
                    fake_image_url=fake_image.file_path,
                )
                if round_number == 1:
                    round_state.start_round_clock(round_obj, now)
                self.db.add(round_obj)
                rounds.append(round_obj)
                print(f"Round {round_number}: {real_image.title} / {fake_image.title} ({real_image.category})")

            room.status = IN_PROGRESS
            room.impostor_id = impostor.user_id
            room.current_round = 1
            room.started_at = now
            room.completed_at = None
            room.last_heartbeat = now
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            print(f"❌ Failed to start game in room {room_id}: {e}")
            raise DataIntegrityError(f"Failed to initialize rounds with images: {e}")

        self.db.refresh(room)
        first_round = rounds[0]
        self.db.refresh(first_round)
        print(f"✅ Game started in room {room_id} with {len(online_players)} players and {len(rounds)} rounds")

        await self.ws.notify("room_updated", room_id, status=room.status, current_round=1)
        await self.ws.notify("round_updated", room_id, round_number=1)
        return {"room": room, "round": first_round}

    def _clear_game_data(self, room_id: int) -> None:
        """Remove rounds, captions and votes of a previous game; caller commits"""
        round_ids = [rid for (rid,) in self.db.query(Round.id).filter(Round.room_id == room_id)]
        if round_ids:
            self.db.query(Caption).filter(Caption.round_id.in_(round_ids)).delete(synchronize_session=False)
        self.db.query(Vote).filter(Vote.room_id == room_id).delete(synchronize_session=False)
        self.db.query(Round).filter(Round.room_id == room_id).delete(synchronize_session=False)

    # ---------- images ----------

    async def get_round_image(self, room_id: int, user_id: str) -> dict:
        """Image for the caller's role, filling in the current round's pair if missing"""
        if not room_id:
            raise InvalidRequest("Missing key parameter")

        room = self.room_service.get_room(room_id)
        is_impostor = bool(user_id) and room.impostor_id == user_id
        if not room.current_round:
            raise Conflict("Game has not started")

        round_obj = self.get_current_round(room)
        if round_obj is None or not round_obj.real_image_url or not round_obj.fake_image_url:
            real_image, fake_image = self.image_service.pick_category_pair(self.rng)
            if round_obj is None:
                round_obj = Round(room_id=room.id, round_number=room.current_round)
                round_state.start_round_clock(round_obj, utc_now())
                self.db.add(round_obj)
            round_obj.real_image_url = real_image.file_path
            round_obj.fake_image_url = fake_image.file_path
            self.db.commit()
            self.db.refresh(round_obj)
            print(f"⚠️ Round {room.current_round} of room {room.id} had no images, filled from {real_image.category}")
            await self.ws.notify("round_updated", room.id, round_number=round_obj.round_number)

        path = round_obj.fake_image_url if is_impostor else round_obj.real_image_url
        image = self.image_service.find_by_path(path)
        return {
            "url": path,
            "title": image.title if image else None,
            "file_name": image.file_name if image else None,
            "category": image.category if image else None,
            "isImpostor": is_impostor,
            "roundId": round_obj.id,
        }

    async def get_round_meta(self, room_id: int, round_number: int, user_id: str) -> dict:
        """Round id and the image key the caller should see"""
        if not room_id or not round_number:
            raise InvalidRequest("Missing gameId or round parameter")

        if not self._player_for_user(room_id, user_id):
            raise NotFound("Player not found in this game room")

        room = self.room_service.get_room(room_id)
        round_obj = self.get_round(room_id, round_number)
        if not round_obj:
            raise NotFound("Round not found")

        is_impostor = room.impostor_id == user_id
        return {
            "roundId": round_obj.id,
            "promptKey": round_obj.fake_image_url if is_impostor else round_obj.real_image_url,
            "isImpostor": is_impostor,
        }

    # ---------- host round actions ----------

    async def host_action(self, room_id: int, user_id: str, action: str,
                          round_id: Optional[int] = None) -> dict:
        """skip_timer ends captioning, skip_voting ends voting"""
        if not room_id or not action:
            raise InvalidRequest("Missing required parameters")

        room = self.room_service.get_room(room_id)
        if room.host_id != user_id:
            raise NotAuthorized("Only the host can control round phases")
        if action not in self.HOST_ACTIONS:
            raise InvalidRequest("Unknown action")

        if round_id:
            round_obj = self.db.query(Round).filter(Round.id == round_id, Round.room_id == room_id).first()
        else:
            round_obj = self.get_current_round(room)
        if not round_obj:
            raise NotFound("Round not found")

        now = utc_now()
        phase = round_state.resolve_phase(room, round_obj, now)
        if action == "skip_timer":
            if phase != round_state.CAPTIONING:
                raise Conflict("Captioning is already over")
            round_state.skip_captioning(round_obj, now)
            message = "Host skipped the timer! Moving to voting phase."
        else:
            if phase != round_state.VOTING:
                raise Conflict("Voting is not open")
            round_state.skip_voting(round_obj, now)
            message = "Host skipped voting! Moving to results."
        self.db.commit()

        await self.ws.notify(
            "host_action", room_id,
            action=action,
            message=message,
            round_number=round_obj.round_number,
            timestamp=format_timestamp_with_timezone(now),
        )
        await self.ws.notify("round_updated", room_id, round_number=round_obj.round_number)
        return {"action": action, "message": message.split("!")[0] + " successfully"}

    async def next_round(self, room_id: int, user_id: str) -> dict:
        """Advance past a finished round, or end the game after the last one"""
        room = self.room_service.get_room(room_id)
        self._require_host(room, user_id)
        if room.status != IN_PROGRESS:
            raise Conflict("Game is not in progress")

        now = utc_now()
        current = self.get_current_round(room)
        if round_state.resolve_phase(room, current, now) != round_state.RESULTS:
            raise Conflict("Current round is not finished")

        if room.current_round >= settings.TOTAL_ROUNDS:
            room.status = COMPLETED
            room.completed_at = now
            self.db.commit()
            print(f"🏁 Game in room {room_id} finished")
            await self.ws.notify("room_updated", room_id, status=room.status)
            return {"finished": True, "room": room, "round": None}

        next_round = self.get_round(room_id, room.current_round + 1)
        if not next_round:
            raise DataIntegrityError(f"Missing round data for round {room.current_round + 1}")
        round_state.start_round_clock(next_round, now)
        room.current_round = next_round.round_number
        self.db.commit()
        self.db.refresh(next_round)

        await self.ws.notify("room_updated", room_id, current_round=room.current_round)
        await self.ws.notify("round_updated", room_id, round_number=next_round.round_number)
        return {"finished": False, "room": room, "round": next_round}

    async def return_to_lobby(self, room_id: int, user_id: str) -> Room:
        """Reset a room to the lobby, dropping the last game's data"""
        room = self.room_service.get_room(room_id)
        self._require_host(room, user_id)

        try:
            self._clear_game_data(room_id)
            room.status = LOBBY
            room.current_round = 0
            room.impostor_id = None
            room.started_at = None
            room.completed_at = None
            room.last_heartbeat = utc_now()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise DataIntegrityError(f"Failed to return to lobby: {e}")

        self.db.refresh(room)
        await self.ws.notify("room_updated", room_id, status=room.status)
        return room

    # ---------- captions and votes ----------

    async def submit_caption(self, round_id: int, player_id: int, user_id: str, caption_text: Optional[str]) -> Caption:
        if not round_id or not player_id or not isinstance(caption_text, str) or not caption_text.strip():
            raise InvalidRequest("Missing required fields: roundId, playerId, and captionText are required.")
        if len(caption_text) > settings.MAX_CAPTION_LENGTH:
            raise InvalidRequest(f"Caption is too long (max {settings.MAX_CAPTION_LENGTH} characters).")

        player = self.db.query(Player).filter(Player.id == player_id, Player.user_id == user_id).first()
        if not player:
            raise NotAuthorized("Player ID does not match user or player not found.")

        round_obj = self.db.query(Round).filter(Round.id == round_id).first()
        if not round_obj:
            raise NotFound("Round not found.")
        if player.room_id != round_obj.room_id:
            raise NotAuthorized("Player not part of the round's game room.")

        room = self.room_service.get_room(round_obj.room_id)
        if round_obj.round_number != room.current_round or \
                round_state.resolve_phase(room, round_obj, utc_now()) != round_state.CAPTIONING:
            raise Conflict("Too late to submit caption for this round.")

        caption = Caption(round_id=round_id, player_id=player_id, caption=caption_text.strip(), submitted_at=utc_now())
        self.db.add(caption)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict("Caption already submitted for this round.")

        self.db.refresh(caption)
        await self.ws.notify("round_updated", room.id, round_number=round_obj.round_number, captions=True)
        return caption

    async def submit_vote(self, room_id: int, user_id: str, voter_id: int, voted_for_id: int,
                          round_id: Optional[int] = None) -> Vote:
        if not room_id or not voter_id or not voted_for_id:
            raise InvalidRequest("Missing required fields: roomId, voterId and votedForId are required.")

        room = self.room_service.get_room(room_id)
        voter = self.db.query(Player).filter(
            Player.id == voter_id,
            Player.user_id == user_id,
            Player.room_id == room_id
        ).first()
        if not voter:
            raise NotAuthorized("Voter does not match user or is not in this room.")

        if round_id:
            round_obj = self.db.query(Round).filter(Round.id == round_id, Round.room_id == room_id).first()
        else:
            round_obj = self.get_current_round(room)
        if not round_obj:
            raise NotFound("Round not found.")

        if round_obj.round_number != room.current_round or \
                round_state.resolve_phase(room, round_obj, utc_now()) != round_state.VOTING:
            raise Conflict("Voting is not open for this round.")
        if voter_id == voted_for_id:
            raise InvalidRequest("You cannot vote for your own caption.")

        has_caption = self.db.query(Caption.id).filter(
            Caption.round_id == round_obj.id,
            Caption.player_id == voted_for_id
        ).first()
        if not has_caption:
            raise InvalidRequest("That player has no caption in this round.")

        if self.db.query(Vote.id).filter(Vote.round_id == round_obj.id, Vote.voter_id == voter_id).first():
            raise Conflict("Vote already submitted for this round.")

        vote = Vote(room_id=room_id, round_id=round_obj.id, voter_id=voter_id,
                    voted_for_id=voted_for_id, voted_at=utc_now())
        self.db.add(vote)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent vote from the same voter
            self.db.rollback()
            raise Conflict("Vote already submitted for this round.")

        self.db.refresh(vote)
        await self.ws.notify("round_updated", room_id, round_number=round_obj.round_number, votes=True)
        return vote

    # ---------- results ----------

    def get_round_results(self, round_id: int) -> List[RoundResultEntry]:
        """Per-caption votes and points; the impostor's votes count double"""
        if not round_id:
            raise InvalidRequest("Missing roundId")
        round_obj = self.db.query(Round).filter(Round.id == round_id).first()
        if not round_obj:
            raise NotFound("Round not found")
        room = self.db.query(Room).filter(Room.id == round_obj.room_id).first()
        impostor_id = room.impostor_id if room else None

        vote_counts: Dict[int, int] = {}
        for vote in self.db.query(Vote).filter(Vote.round_id == round_id):
            vote_counts[vote.voted_for_id] = vote_counts.get(vote.voted_for_id, 0) + 1

        entries = []
        captions = self.db.query(Caption).filter(Caption.round_id == round_id).all()
        for caption in captions:
            author = caption.player
            vote_count = vote_counts.get(caption.player_id, 0)
            is_impostor = author is not None and author.user_id == impostor_id
            entries.append((caption.submitted_at, RoundResultEntry(
                id=caption.id,
                caption=caption.caption,
                player_id=caption.player_id,
                player_alias=author.game_alias if author else "Unknown",
                vote_count=vote_count,
                points=vote_count * IMPOSTOR_VOTE_MULTIPLIER if is_impostor else vote_count,
                is_impostor=is_impostor,
            )))

        entries.sort(key=lambda item: (-item[1].points, -item[1].vote_count, item[0] or utc_now()))
        return [entry for _, entry in entries]

    def get_final_results(self, room_id: int) -> dict:
        """Totals across every played round, ranked by rounds won then votes"""
        room = self.room_service.get_room(room_id)
        players = self.room_service.get_players(room_id, include_offline=True)

        scores: Dict[int, PlayerGameScore] = {
            p.id: PlayerGameScore(playerId=p.id, playerAlias=p.game_alias, roundResults=[])
            for p in players
        }

        rounds = self.db.query(Round).filter(
            Round.room_id == room_id,
            Round.started_at.isnot(None)
        ).order_by(Round.round_number).all()

        for round_obj in rounds:
            results = self.get_round_results(round_obj.id)
            winner = results[0] if results and results[0].vote_count > 0 else None
            for result in results:
                score = scores.get(result.player_id)
                if score is None:
                    continue
                is_winner = winner is not None and result.player_id == winner.player_id
                score.totalVotes += result.vote_count
                score.totalPoints += result.points
                score.roundResults.append(PlayerRoundResult(
                    roundNumber=round_obj.round_number,
                    caption=result.caption,
                    voteCount=result.vote_count,
                    isWinner=is_winner,
                ))
                if is_winner:
                    score.roundsWon += 1

        ranked = sorted(scores.values(), key=lambda s: (-s.roundsWon, -s.totalVotes))
        return {
            "gameWinner": ranked[0] if ranked else None,
            "playerScores": ranked,
            "totalRounds": len(rounds),
            "roomStatus": room.status,
        }

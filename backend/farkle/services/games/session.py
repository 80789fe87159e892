import random
import time
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Union

from .errors import (
    GameNotActive,
    InvalidSelection,
    NotYourTurn,
    SelectionRequired,
    TurnResolving,
    ZeroBank,
)
from .scoring import has_any_scoring_move, is_legal_selection, score

WAITING = 'waiting'
PLAYING = 'playing'
FINISHED = 'finished'
TIE = 'tie'

FULL_HAND = 6
DEFAULT_CAPACITY = 5
DEFAULT_MIN_PLAYERS = 2
DEFAULT_WIN_SCORE = 10000


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Die:
    value: int
    id: str = field(default_factory=_new_id)
    selected: bool = False

    def to_dict(self):
        return {'id': self.id, 'value': self.value, 'selected': self.selected}


@dataclass
class Seat:
    connection_id: str
    name: str
    user_id: Optional[str] = None
    score: int = 0
    connected: bool = True
    best_round_score: int = 0
    bust_count: int = 0
    seat_id: str = field(default_factory=_new_id)
    disconnected_at: Optional[float] = None

    def to_dict(self):
        return {
            'id': self.connection_id,
            'seat_id': self.seat_id,
            'name': self.name,
            'score': self.score,
            'connected': self.connected,
        }


@dataclass
class RollResult:
    dice: List[Die]
    busted: bool
    hot_dice: bool
    generation: int


class GameSession:
    """Authoritative turn-by-turn state for one room.

    Not thread-safe on its own: callers serialize access per room (see
    ``Room.lock``). Rejected actions raise a ``GameError`` before any field
    is touched.
    """

    def __init__(self, room_name: str, capacity: int = DEFAULT_CAPACITY,
                 min_players: int = DEFAULT_MIN_PLAYERS,
                 win_score: int = DEFAULT_WIN_SCORE, rng=None, clock=None):
        self.room_name = room_name
        self.capacity = capacity
        self.min_players = min_players
        self.win_score = win_score
        self.rng = rng or random.SystemRandom()
        self.clock = clock or time.monotonic
        self.last_action_at = self.clock()

        self.seats: List[Seat] = []
        self.current_index = 0
        self.status = WAITING
        self.winner: Union[Seat, str, None] = None
        self.final_lap = False
        self.final_lap_seat: Optional[int] = None
        # Bumped at every turn boundary; deferred actions carry the value
        # they were scheduled under.
        self.generation = 0
        self.roster_version = 0
        self._reset_round()

    # ---- Roster ----

    @property
    def connected_count(self) -> int:
        return sum(1 for s in self.seats if s.connected)

    @property
    def current_seat(self) -> Optional[Seat]:
        if not self.seats:
            return None
        return self.seats[self.current_index]

    def seat_for(self, connection_id: str) -> Optional[Seat]:
        return next((s for s in self.seats if s.connection_id == connection_id), None)

    def add_seat(self, connection_id: str, name: str, user_id: Optional[str] = None) -> bool:
        if len(self.seats) >= self.capacity:
            return False
        self.seats.append(Seat(connection_id=connection_id, name=self._unique_name(name), user_id=user_id))
        self.roster_version += 1
        return True

    def reattach(self, connection_id: str, name: str) -> Optional[Seat]:
        """Hand a disconnected seat back to its owner, matched by display name.

        Seat order breaks ties between seats sharing a name.
        """
        seat = next((s for s in self.seats if not s.connected and s.name == name), None)
        if seat is None:
            return None
        seat.connection_id = connection_id
        seat.connected = True
        self.roster_version += 1
        return seat

    def release(self, connection_id: str) -> Optional[Seat]:
        """Drop a connection from the room.

        While the roster is still forming the seat is removed so the room
        list stays accurate; once play has begun the seat is kept for a
        later reattach. If it was that seat's turn, the turn passes on.
        """
        seat = self.seat_for(connection_id)
        if seat is None:
            return None
        if self.status == WAITING:
            self.seats.remove(seat)
        else:
            seat.connected = False
            seat.disconnected_at = self.clock()
            if self.status == PLAYING and seat is self.current_seat and not self.bust_pending:
                self.round_score = 0
                self._advance_turn()
        self.roster_version += 1
        return seat

    def expire_seat(self, seat_id: str, disconnected_at: float) -> Optional[Seat]:
        """Remove a seat that has stayed disconnected since ``disconnected_at``.

        Returns None when the seat is gone, reconnected or disconnected
        again later.
        """
        seat = next((s for s in self.seats if s.seat_id == seat_id), None)
        if seat is None or seat.connected or seat.disconnected_at != disconnected_at:
            return None
        index = self.seats.index(seat)
        was_current = index == self.current_index
        self.seats.pop(index)
        self.roster_version += 1
        if not self.seats:
            self.reset()
            return seat

        if self.final_lap_seat is not None:
            if index < self.final_lap_seat:
                self.final_lap_seat -= 1
            elif index == self.final_lap_seat:
                # The lap now ends at whoever followed the departed seat
                self.final_lap_seat = index % len(self.seats)
        if was_current and self.status == PLAYING:
            self.current_index = (index - 1) % len(self.seats)
            self._advance_turn()
        elif index < self.current_index or self.current_index >= len(self.seats):
            self.current_index = max(self.current_index - 1, 0)
        return seat

    def _unique_name(self, name: str) -> str:
        taken = {s.name for s in self.seats}
        name = (name or '').strip()
        if not name:
            n = 1
            while f"Player {n}" in taken:
                n += 1
            return f"Player {n}"
        candidate, counter = name, 1
        while candidate in taken:
            counter += 1
            candidate = f"{name} ({counter})"
        return candidate

    # ---- Lifecycle ----

    def start(self) -> bool:
        if self.status != WAITING or len(self.seats) < self.min_players:
            return False
        self.status = PLAYING
        self.current_index = 0
        self._reset_round()
        self.generation += 1
        return True

    def restart(self) -> bool:
        if self.status != FINISHED:
            return False
        for seat in self.seats:
            seat.score = 0
            seat.best_round_score = 0
            seat.bust_count = 0
        self.final_lap = False
        self.final_lap_seat = None
        self.winner = None
        self.current_index = 0
        self.status = PLAYING
        self._reset_round()
        self.generation += 1
        if not self.current_seat.connected:
            self._advance_turn()
        return True

    def reset(self) -> None:
        """Empty the room and reopen it for a new roster."""
        self.seats = []
        self.current_index = 0
        self.status = WAITING
        self.winner = None
        self.final_lap = False
        self.final_lap_seat = None
        self._reset_round()
        self.generation += 1
        self.roster_version += 1

    # ---- Turn actions ----

    def roll(self, connection_id: str) -> RollResult:
        seat = self._require_turn(connection_id)
        self.last_action_at = self.clock()
        hot_dice = False

        if self.dice:
            selected = [d.value for d in self.dice if d.selected]
            if not selected:
                raise SelectionRequired()
            if not is_legal_selection(selected):
                raise InvalidSelection()
            gained = score(selected)
            self.round_score += gained
            remaining = len(self.dice) - len(selected)
            self.dice_to_roll = remaining or FULL_HAND
            hot_dice = remaining == 0 and gained > 0

        self.dice = [Die(value=self.rng.randint(1, 6)) for _ in range(self.dice_to_roll)]
        busted = not has_any_scoring_move(d.value for d in self.dice)
        if busted:
            # Round state stays visible until resolve_bust runs.
            self.bust_pending = True
            seat.bust_count += 1
        return RollResult(dice=list(self.dice), busted=busted, hot_dice=hot_dice,
                          generation=self.generation)

    def toggle_selection(self, connection_id: str, die_id: str) -> bool:
        self._require_turn(connection_id)
        self.last_action_at = self.clock()
        die = next((d for d in self.dice if d.id == die_id), None)
        if die is None:
            return False
        die.selected = not die.selected
        return True

    def bank(self, connection_id: str) -> int:
        seat = self._require_turn(connection_id)
        selected = [d.value for d in self.dice if d.selected]
        gained = 0
        if selected:
            if not is_legal_selection(selected):
                raise InvalidSelection()
            gained = score(selected)
        elif self.dice and self.round_score == 0:
            raise ZeroBank()

        banked = self.round_score + gained
        seat.score += banked
        seat.best_round_score = max(seat.best_round_score, banked)
        self._check_final_lap()
        self._advance_turn()
        return banked

    def resolve_bust(self, generation: int) -> bool:
        """Forfeit the round after a bust. Stale generations are ignored."""
        if self.status != PLAYING or not self.bust_pending or generation != self.generation:
            return False
        self.round_score = 0
        self._advance_turn()
        return True

    def skip_turn(self, generation: int) -> Optional[Seat]:
        """Pass over an idle current seat, forfeiting its round.

        Ignored while a bust is pending or once the turn has already moved on.
        """
        if self.status != PLAYING or self.bust_pending or generation != self.generation:
            return None
        seat = self.current_seat
        self.round_score = 0
        self._advance_turn()
        return seat

    @property
    def idle_seconds(self) -> float:
        """Time since the current turn began or its owner last acted."""
        return self.clock() - self.last_action_at

    # ---- Internals ----

    def _require_turn(self, connection_id: str) -> Seat:
        if self.status != PLAYING:
            raise GameNotActive()
        if self.bust_pending:
            raise TurnResolving()
        seat = self.current_seat
        if seat is None or seat.connection_id != connection_id:
            raise NotYourTurn()
        return seat

    def _reset_round(self) -> None:
        self.last_action_at = self.clock()
        self.round_score = 0
        self.dice: List[Die] = []
        self.dice_to_roll = FULL_HAND
        self.bust_pending = False

    def _check_final_lap(self) -> None:
        seat = self.current_seat
        if seat.score >= self.win_score and not self.final_lap:
            self.final_lap = True
            self.final_lap_seat = self.current_index

    def _advance_turn(self) -> None:
        count = len(self.seats)
        index = self.current_index
        for _ in range(count):
            index = (index + 1) % count
            if self.final_lap and index == self.final_lap_seat:
                self.current_index = index
                self._finish()
                return
            if self.seats[index].connected:
                break
        self.current_index = index
        self._reset_round()
        self.generation += 1

    def _finish(self) -> None:
        self.status = FINISHED
        self._reset_round()
        self.generation += 1
        top = max(s.score for s in self.seats)
        leaders = [s for s in self.seats if s.score == top]
        self.winner = leaders[0] if len(leaders) == 1 else TIE

    def to_dict(self):
        if isinstance(self.winner, Seat):
            winner = self.winner.to_dict()
            del winner['connected']
        else:
            winner = self.winner
        return {
            'room_name': self.room_name,
            'seats': [s.to_dict() for s in self.seats],
            'current_index': self.current_index,
            'round_score': self.round_score,
            'dice_to_roll': self.dice_to_roll,
            'dice': [d.to_dict() for d in self.dice],
            'status': self.status,
            'winner': winner,
            'final_lap': self.final_lap,
            'bust_pending': self.bust_pending,
        }

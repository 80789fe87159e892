from flask import current_app, request
from flask_socketio import emit, join_room, leave_room
from sqlalchemy.exc import SQLAlchemyError

from farkle import db
from farkle.messages import ChatLine, JoinGame, RoomAction, ToggleDie
from farkle.services.games.errors import GameError, NotSeated, RoomFull
from farkle.services.games.registry import Room, RoomRegistry
from farkle.services.games.scheduler import TurnScheduler
from farkle.services.games.session import FINISHED, PLAYING, TIE, WAITING, Seat
from farkle.services import stats as stats_service


class SessionGateway:
    """Binds Socket.IO connections to rooms and routes actions to sessions.

    Sessions are only ever changed through their own operations, while
    holding the room lock; every broadcast that follows a change is sent
    under the same lock so clients see updates in order.
    """

    def __init__(self, registry: RoomRegistry, socketio, scheduler: TurnScheduler,
                 namespace: str = '/ws', visitors=None):
        self.registry = registry
        self.socketio = socketio
        self.scheduler = scheduler
        self.namespace = namespace
        self.visitors = visitors

    def register_handlers(self) -> None:
        on = self.socketio.on_event
        on('connect', self.handle_connect, namespace=self.namespace)
        on('disconnect', self.handle_disconnect, namespace=self.namespace)
        on('get_room_list', self.handle_get_room_list, namespace=self.namespace)
        on('join_game', self.handle_join_game, namespace=self.namespace)
        on('start_game', self.handle_start_game, namespace=self.namespace)
        on('roll', self.handle_roll, namespace=self.namespace)
        on('toggle_die', self.handle_toggle_die, namespace=self.namespace)
        on('bank', self.handle_bank, namespace=self.namespace)
        on('restart', self.handle_restart, namespace=self.namespace)
        on('leave_game', self.handle_leave_game, namespace=self.namespace)
        on('send_chat', self.handle_send_chat, namespace=self.namespace)

    # ---- Broadcast helpers ----

    def _emit_room(self, room: Room, event: str, payload) -> None:
        self.socketio.emit(event, payload, to=room.channel, namespace=self.namespace)

    def broadcast_state(self, room: Room) -> None:
        self._emit_room(room, 'game_state_update', room.session.to_dict())

    def broadcast_room_list(self) -> None:
        self.socketio.emit('room_list', self.registry.summaries(), namespace=self.namespace)

    def _reject(self, exc: GameError) -> None:
        current_app.logger.info(f"[reject] sid={request.sid} error={type(exc).__name__} message={exc}")
        emit('error', {'message': str(exc)})
    def _system_chat(self, room: Room, message: str) -> None:
        self._emit_room(room, 'chat_message', {'sender': 'System', 'message': message, 'is_system': True})

    # ---- Connection lifecycle ----

    def handle_connect(self, auth=None):
        if self.visitors is not None and not self.visitors.is_allowed(request.remote_addr):
            current_app.logger.info(f"[firewall] refused socket from {request.remote_addr}")
            return False
        emit('room_list', self.registry.summaries())

    def handle_get_room_list(self, data=None):
        emit('room_list', self.registry.summaries())

    def handle_disconnect(self, reason=None):
        self._release_everywhere(request.sid, explicit=False)

    def handle_leave_game(self, data=None):
        self._release_everywhere(request.sid, explicit=True)

    def _release_everywhere(self, sid: str, explicit: bool) -> None:
        changed = False
        for room in self.registry:
            with room.lock:
                session = room.session
                generation = session.generation
                seat = session.release(sid)
                if seat is None:
                    continue
                changed = True
                current_app.logger.info(
                    f"[release] room={room.name} seat={seat.name} explicit={explicit} status={session.status}"
                )
                if explicit:
                    leave_room(room.channel)
                self.broadcast_state(room)
                if session.status == WAITING:
                    continue
                if session.generation != generation:
                    self._after_turn_change(room)
                if session.connected_count == 0:
                    self.scheduler.schedule_room_reset(room, session.roster_version, self._on_room_reset)
                else:
                    self.scheduler.schedule_seat_expiry(room, seat, self._on_seat_expired)
        if changed:
            self.broadcast_room_list()

    def _on_room_reset(self, room: Room) -> None:
        self.broadcast_state(room)
        self.broadcast_room_list()

    def _on_seat_expired(self, room: Room, seat: Seat, turn_changed: bool) -> None:
        self._system_chat(room, f"{seat.name} was removed after staying disconnected.")
        self.broadcast_state(room)
        if turn_changed:
            self._after_turn_change(room)
        self.broadcast_room_list()

    # ---- Join ----

    def handle_join_game(self, data):
        try:
            action = JoinGame.from_payload(data)
            room = self.registry.get(action.room_name)
        except GameError as exc:
            self._reject(exc)
            return
        sid = request.sid
        with room.lock:
            session = room.session
            seat = session.seat_for(sid) or session.reattach(sid, action.player_name)
            if seat is None:
                if not session.add_seat(sid, action.player_name, action.user_id):
                    self._reject(RoomFull())
                    return
                seat = session.seat_for(sid)
            current_app.logger.info(f"[join] room={room.name} seat={seat.name} sid={sid} status={session.status}")
            join_room(room.channel)
            emit('joined', {'player_id': sid, 'seat_id': seat.seat_id, 'state': session.to_dict()})
            self.broadcast_state(room)
        self.broadcast_room_list()

    # ---- Turn actions ----

    def _require_seat(self, room: Room) -> Seat:
        """Caller holds the room lock."""
        seat = room.session.seat_for(request.sid)
        if seat is None:
            raise NotSeated()
        return seat

    def _arm_turn_timer(self, room: Room) -> None:
        session = room.session
        if session.status == PLAYING:
            self.scheduler.schedule_turn_timeout(
                room, session.generation, self._on_turn_skipped, self._on_turn_reminder
            )

    def _after_turn_change(self, room: Room) -> None:
        """Follow-up once the turn has moved on. Caller holds the room lock."""
        if room.session.status == FINISHED:
            self._game_over(room)
        else:
            self._arm_turn_timer(room)

    def _on_turn_skipped(self, room: Room, seat: Seat) -> None:
        self._system_chat(room, f"{seat.name}'s turn was skipped due to inactivity.")
        self.broadcast_state(room)
        self._after_turn_change(room)

    def _on_turn_reminder(self, room: Room, seat: Seat) -> None:
        self.socketio.emit('turn_reminder', {'room_name': room.name}, to=seat.connection_id,
                           namespace=self.namespace)

    def handle_start_game(self, data):
        try:
            action = RoomAction.from_payload(data)
            room = self.registry.get(action.room_name)
            with room.lock:
                self._require_seat(room)
                if not room.session.start():
                    raise GameError(f"Need at least {room.session.min_players} players to start")
                current_app.logger.info(f"[start] room={room.name} players={len(room.session.seats)}")
                self._emit_room(room, 'game_start', room.session.to_dict())
                self._arm_turn_timer(room)
        except GameError as exc:
            self._reject(exc)
            return
        self.broadcast_room_list()

    def handle_roll(self, data):
        try:
            action = RoomAction.from_payload(data)
            room = self.registry.get(action.room_name)
            with room.lock:
                self._require_seat(room)
                session = room.session
                result = session.roll(request.sid)
                current_app.logger.info(
                    f"[roll] room={room.name} seat={session.current_seat.name} "
                    f"dice={[d.value for d in result.dice]} busted={result.busted} hot_dice={result.hot_dice}"
                )
                self._emit_room(room, 'roll_result', {
                    'dice': [d.to_dict() for d in result.dice],
                    'busted': result.busted,
                    'hot_dice': result.hot_dice,
                    'state': session.to_dict(),
                })
                if result.busted:
                    self.scheduler.schedule_bust_resolution(room, result.generation, self._on_bust_resolved)
        except GameError as exc:
            self._reject(exc)

    def _on_bust_resolved(self, room: Room) -> None:
        self.broadcast_state(room)
        self._after_turn_change(room)

    def handle_toggle_die(self, data):
        try:
            action = ToggleDie.from_payload(data)
            room = self.registry.get(action.room_name)
            with room.lock:
                self._require_seat(room)
                room.session.toggle_selection(request.sid, action.die_id)
                self.broadcast_state(room)
        except GameError as exc:
            self._reject(exc)

    def handle_bank(self, data):
        try:
            action = RoomAction.from_payload(data)
            room = self.registry.get(action.room_name)
            with room.lock:
                self._require_seat(room)
                session = room.session
                name = session.current_seat.name if session.current_seat else None
                banked = session.bank(request.sid)
                current_app.logger.info(
                    f"[bank] room={room.name} seat={name} banked={banked} final_lap={session.final_lap}"
                )
                self.broadcast_state(room)
                self._after_turn_change(room)
        except GameError as exc:
            self._reject(exc)

    def handle_restart(self, data):
        try:
            action = RoomAction.from_payload(data)
            room = self.registry.get(action.room_name)
            with room.lock:
                self._require_seat(room)
                if not room.session.restart():
                    raise GameError('Game is not finished')
                current_app.logger.info(f"[restart] room={room.name}")
                self._emit_room(room, 'game_start', room.session.to_dict())
                self._arm_turn_timer(room)
        except GameError as exc:
            self._reject(exc)
            return
        self.broadcast_room_list()

    # ---- Chat ----

    def handle_send_chat(self, data):
        try:
            action = ChatLine.from_payload(data)
            room = self.registry.get(action.room_name)
            with room.lock:
                seat = self._require_seat(room)
                self._emit_room(room, 'chat_message', {
                    'sender': seat.name,
                    'message': action.message,
                    'is_system': False,
                })
        except GameError as exc:
            self._reject(exc)

    # ---- Game end ----

    def _game_over(self, room: Room) -> None:
        """Announce the result and hand the final scores to stats storage.

        Caller holds the room lock.
        """
        session = room.session
        winner = session.winner
        winner_name = 'Tie' if winner == TIE else winner.name
        current_app.logger.info(f"[game-over] room={room.name} winner={winner_name}")
        rows = [
            (s.user_id, winner is s, s.score, s.best_round_score, s.bust_count, s.name)
            for s in session.seats if s.user_id
        ]
        if rows:
            self._record_results(rows)
        self._emit_room(room, 'game_over', {
            'winner': winner_name,
            'scores': [{'name': s.name, 'score': s.score} for s in session.seats],
        })
        self.broadcast_room_list()

    def _record_results(self, rows) -> None:
        app = current_app._get_current_object()

        def _persist():
            with app.app_context():
                for row in rows:
                    try:
                        stats_service.record_game_end(*row)
                    except SQLAlchemyError:
                        db.session.rollback()
                        app.logger.exception(f"[stats-error] user={row[0]}")

        if app.config.get('TESTING'):
            _persist()
        else:
            self.socketio.start_background_task(_persist)


def register_socketio_handlers(gateway: SessionGateway) -> None:
    """Register the gateway's Socket.IO event handlers on its namespace."""
    gateway.register_handlers()

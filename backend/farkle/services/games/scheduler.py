from typing import Callable

from .registry import Room
from .session import PLAYING, Seat


class TurnScheduler:
    """Deferred per-room actions run as Socket.IO background tasks.

    Each task sleeps without holding the room lock, then re-checks the
    session under the lock before acting, so a restart or reset that
    happened in the meantime turns it into a no-op.
    """

    def __init__(self, socketio, app):
        self.socketio = socketio
        self.app = app

    def schedule_bust_resolution(self, room: Room, generation: int,
                                 on_resolved: Callable[[Room], None]) -> None:
        delay = float(self.app.config.get('BUST_DELAY_SEC', 2.0))
        self.app.logger.info(f"[timer-set] room={room.name} kind=bust generation={generation} delay={delay}s")

        def _worker():
            self.socketio.sleep(delay)
            with self.app.app_context():
                with room.lock:
                    if not room.session.resolve_bust(generation):
                        self.app.logger.info(
                            f"[bust-abort] room={room.name} expected_generation={generation} "
                            f"actual_generation={room.session.generation} status={room.session.status}"
                        )
                        return
                    self.app.logger.info(f"[bust-fire] room={room.name} generation={generation}")
                    on_resolved(room)

        self.socketio.start_background_task(_worker)

    def schedule_room_reset(self, room: Room, roster_version: int,
                            on_reset: Callable[[Room], None]) -> None:
        delay = float(self.app.config.get('ROOM_RESET_GRACE_SEC', 120))
        self.app.logger.info(f"[timer-set] room={room.name} kind=reset roster={roster_version} delay={delay}s")

        def _worker():
            self.socketio.sleep(delay)
            with self.app.app_context():
                with room.lock:
                    session = room.session
                    if session.roster_version != roster_version or session.connected_count:
                        self.app.logger.info(f"[reset-abort] room={room.name} roster changed")
                        return
                    session.reset()
                    self.app.logger.info(f"[room-reset] room={room.name}")
                    on_reset(room)

        self.socketio.start_background_task(_worker)

    def schedule_turn_timeout(self, room: Room, generation: int,
                              on_skip: Callable[[Room, Seat], None],
                              on_remind: Callable[[Room, Seat], None]) -> None:
        """Remind, then skip, a current seat that stops acting.

        Idle time restarts whenever the seat acts, so the worker keeps
        sleeping until either deadline is really due or the turn moves on.
        """
        timeout = float(self.app.config.get('TURN_TIMEOUT_SEC', 90))
        if timeout <= 0:
            return
        reminder = float(self.app.config.get('TURN_REMINDER_SEC', 60))
        if reminder <= 0 or reminder >= timeout:
            reminder = None
        self.app.logger.info(f"[timer-set] room={room.name} kind=turn generation={generation} timeout={timeout}s")

        def _worker():
            reminded = reminder is None
            wait = timeout if reminded else reminder
            while True:
                self.socketio.sleep(wait)
                with self.app.app_context():
                    with room.lock:
                        session = room.session
                        if session.status != PLAYING or session.generation != generation:
                            return
                        idle = session.idle_seconds
                        if idle >= timeout:
                            seat = session.skip_turn(generation)
                            if seat is None:
                                self.app.logger.info(f"[skip-abort] room={room.name} generation={generation}")
                                return
                            self.app.logger.info(f"[turn-skip] room={room.name} seat={seat.name} idle={idle:.1f}s")
                            on_skip(room, seat)
                            return
                        if not reminded and idle >= reminder:
                            reminded = True
                            if session.current_seat.connected:
                                on_remind(room, session.current_seat)
                        wait = (timeout if reminded else reminder) - idle

        self.socketio.start_background_task(_worker)

    def schedule_seat_expiry(self, room: Room, seat: Seat,
                             on_expired: Callable[[Room, Seat, bool], None]) -> None:
        delay = float(self.app.config.get('SEAT_EXPIRY_SEC', 300))
        if delay <= 0:
            return
        seat_id, disconnected_at = seat.seat_id, seat.disconnected_at
        self.app.logger.info(f"[timer-set] room={room.name} kind=expiry seat={seat.name} delay={delay}s")

        def _worker():
            self.socketio.sleep(delay)
            with self.app.app_context():
                with room.lock:
                    generation = room.session.generation
                    removed = room.session.expire_seat(seat_id, disconnected_at)
                    if removed is None:
                        return
                    self.app.logger.info(f"[seat-expired] room={room.name} seat={removed.name}")
                    on_expired(room, removed, room.session.generation != generation)

        self.socketio.start_background_task(_worker)

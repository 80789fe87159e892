import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from .errors import UnknownRoom
from .session import GameSession

DEFAULT_CATEGORY = 'casual'
DEFAULT_DESCRIPTION = 'Standard'


@dataclass
class Room:
    name: str
    session: GameSession
    category: str = DEFAULT_CATEGORY
    description: str = DEFAULT_DESCRIPTION
    # Every session mutation happens under this lock
    lock: threading.RLock = field(default_factory=threading.RLock)

    @property
    def channel(self) -> str:
        """Socket.IO room that all of this room's connections join."""
        return f"room:{self.name}"

    def summary(self):
        return {
            'name': self.name,
            'connected_count': self.session.connected_count,
            'capacity': self.session.capacity,
            'status': self.session.status,
            'win_score': self.session.win_score,
            'category': self.category,
            'description': self.description,
        }


class RoomRegistry:
    """The fixed set of rooms, created once at app start.

    ``rules`` maps a room name to its preset (``win_score``, ``category``,
    ``description``); rooms without one use the shared session options.
    """

    def __init__(self, names: Iterable[str], rules: Optional[Mapping[str, dict]] = None,
                 **session_options):
        rules = rules or {}
        self._rooms: Dict[str, Room] = {}
        for name in names:
            if name in self._rooms:
                raise ValueError(f"Duplicate room name: {name!r}")
            preset = rules.get(name, {})
            options = dict(session_options)
            if 'win_score' in preset:
                options['win_score'] = int(preset['win_score'])
            self._rooms[name] = Room(
                name=name,
                session=GameSession(name, **options),
                category=preset.get('category', DEFAULT_CATEGORY),
                description=preset.get('description', DEFAULT_DESCRIPTION),
            )

    def get(self, name: str) -> Room:
        room = self._rooms.get(name) if isinstance(name, str) else None
        if room is None:
            raise UnknownRoom()
        return room

    def __iter__(self) -> Iterator[Room]:
        return iter(self._rooms.values())

    def __len__(self) -> int:
        return len(self._rooms)

    def summaries(self) -> List[dict]:
        return [room.summary() for room in self]

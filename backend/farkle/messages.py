"""Inbound Socket.IO payloads, validated before they reach a session."""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from farkle.services.games.errors import InvalidMessage

MAX_NAME_LENGTH = 32
MAX_CHAT_LENGTH = 200


def _payload(data: Any) -> Dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidMessage()
    return data


def _required_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidMessage(f"{key} is required")
    return value.strip()


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        raise InvalidMessage(f"{key} must be a string")
    return value.strip() or None


@dataclass(frozen=True)
class JoinGame:
    room_name: str
    player_name: str = ''
    user_id: Optional[str] = None

    @classmethod
    def from_payload(cls, data):
        data = _payload(data)
        name = _optional_str(data, 'player_name') or ''
        return cls(
            room_name=_required_str(data, 'room_name'),
            player_name=name[:MAX_NAME_LENGTH],
            user_id=_optional_str(data, 'user_id'),
        )


@dataclass(frozen=True)
class RoomAction:
    """start_game, roll, bank and restart only name their room."""
    room_name: str

    @classmethod
    def from_payload(cls, data):
        return cls(room_name=_required_str(_payload(data), 'room_name'))


@dataclass(frozen=True)
class ToggleDie:
    room_name: str
    die_id: str

    @classmethod
    def from_payload(cls, data):
        data = _payload(data)
        return cls(
            room_name=_required_str(data, 'room_name'),
            die_id=_required_str(data, 'die_id'),
        )


@dataclass(frozen=True)
class ChatLine:
    room_name: str
    message: str

    @classmethod
    def from_payload(cls, data):
        data = _payload(data)
        return cls(
            room_name=_required_str(data, 'room_name'),
            message=_required_str(data, 'message')[:MAX_CHAT_LENGTH],
        )

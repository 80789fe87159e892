"""Rejections a player action can run into.

None of these are fatal: the session is left exactly as it was and the
message is reported back to the connection that sent the action.
"""


class GameError(Exception):
    default_message = 'Action not allowed'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)


class NotYourTurn(GameError):
    default_message = 'Not your turn'


class GameNotActive(GameError):
    default_message = 'Game not active'


class TurnResolving(GameError):
    default_message = 'Turn is resolving, please wait'


class SelectionRequired(GameError):
    default_message = 'Must select dice to re-roll'


class InvalidSelection(GameError):
    default_message = 'Invalid selection'


class ZeroBank(GameError):
    default_message = 'Cannot bank zero'


class RoomFull(GameError):
    default_message = 'Room Full'


class UnknownRoom(GameError):
    default_message = 'Please select a room first'


class NotSeated(GameError):
    default_message = 'You are not a player in this room'


class InvalidMessage(GameError):
    default_message = 'Malformed request'

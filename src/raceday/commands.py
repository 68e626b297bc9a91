"""
Requests accepted by the tournament engine.

Incoming payloads are plain dicts tagged with a 'type'. parse_request
validates them once and returns one of the request classes below; the
engine never looks at raw payloads.
"""
from typing import Dict, List, Optional

from .errors import InvalidRequestError
from .models import ELIMINATION_TYPES


def _require_str(data: Dict, key: str, allow_empty=False) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise InvalidRequestError(f"'{key}' is required and must be a string")
    value = value.strip()
    if not value and not allow_empty:
        raise InvalidRequestError(f"'{key}' must not be empty")
    return value


def _optional_str(data: Dict, key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidRequestError(f"'{key}' must be a string")
    return value.strip() or None


def _require_int(data: Dict, key: str, minimum: int) -> int:
    value = data.get(key)
    if isinstance(value, bool):
        raise InvalidRequestError(f"'{key}' must be an integer")
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise InvalidRequestError(f"'{key}' must be an integer, got {data.get(key)!r}") from None
    if not isinstance(value, int):
        raise InvalidRequestError(f"'{key}' is required and must be an integer")
    if value < minimum:
        raise InvalidRequestError(f"'{key}' must be at least {minimum}, got {value}")
    return value


def _tracks(data: Dict, key: str) -> List[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(t, str) and t.strip() for t in value):
        raise InvalidRequestError(f"'{key}' must be a list of track names")
    return [t.strip() for t in value]


class TournamentPreviewRequest:
    type = 'tournament_preview'

    def __init__(self, session, groups_count, advancement_count, elimination_type,
                 group_stage_tracks=None, bracket_tracks=None):
        self.session = session
        self.groups_count = groups_count
        self.advancement_count = advancement_count
        self.elimination_type = elimination_type
        self.group_stage_tracks = list(group_stage_tracks or [])
        self.bracket_tracks = list(bracket_tracks or [])

    @classmethod
    def _fields(cls, data):
        elimination_type = _require_str(data, 'elimination_type')
        if elimination_type not in ELIMINATION_TYPES:
            raise InvalidRequestError(
                f"'elimination_type' must be one of {', '.join(ELIMINATION_TYPES)}, got {elimination_type!r}"
            )
        return {
            'session': _require_str(data, 'session'),
            'groups_count': _require_int(data, 'groups_count', 1),
            'advancement_count': _require_int(data, 'advancement_count', 1),
            'elimination_type': elimination_type,
            'group_stage_tracks': _tracks(data, 'group_stage_tracks'),
            'bracket_tracks': _tracks(data, 'bracket_tracks'),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(**cls._fields(data))

    def __repr__(self):
        return (f"{type(self).__name__}(session={self.session}, groups_count={self.groups_count}, "
                f"advancement_count={self.advancement_count}, elimination_type={self.elimination_type})")


class CreateTournamentRequest(TournamentPreviewRequest):
    type = 'create_tournament'

    def __init__(self, session, name, groups_count, advancement_count, elimination_type,
                 description=None, group_stage_tracks=None, bracket_tracks=None):
        super().__init__(session, groups_count, advancement_count, elimination_type,
                         group_stage_tracks, bracket_tracks)
        self.name = name
        self.description = description

    @classmethod
    def _fields(cls, data):
        fields = super()._fields(data)
        fields['name'] = _require_str(data, 'name')
        fields['description'] = _optional_str(data, 'description')
        return fields


class DeleteTournamentRequest:
    type = 'delete_tournament'

    def __init__(self, tournament_id):
        self.tournament_id = tournament_id

    @classmethod
    def from_dict(cls, data):
        return cls(tournament_id=_require_str(data, 'tournament_id'))

    def __repr__(self):
        return f"DeleteTournamentRequest(tournament_id={self.tournament_id})"


class ReportMatchResultRequest:
    type = 'report_match_result'

    def __init__(self, match_id, winner):
        self.match_id = match_id
        self.winner = winner

    @classmethod
    def from_dict(cls, data):
        return cls(match_id=_require_str(data, 'match_id'), winner=_require_str(data, 'winner'))

    def __repr__(self):
        return f"ReportMatchResultRequest(match_id={self.match_id}, winner={self.winner})"


REQUEST_TYPES = {
    cls.type: cls
    for cls in (CreateTournamentRequest, TournamentPreviewRequest, DeleteTournamentRequest,
                ReportMatchResultRequest)
}


def parse_request(data):
    """Validate a tagged payload and return the matching request object."""
    if not isinstance(data, dict):
        raise InvalidRequestError("Request must be a mapping")
    request_type = data.get('type')
    if request_type not in REQUEST_TYPES:
        raise InvalidRequestError(f"Unknown request type: {request_type!r}")
    return REQUEST_TYPES[request_type].from_dict(data)

"""Tagged intents accepted by the session actor.

Participants may only send the types in ``PARTICIPANT_INTENTS``; the host
(and the host scheduler) may send anything. Parsing checks shape only; phase
and ownership checks belong to the engine.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import InvalidTransition

SOURCE_HOST = 'host'
SOURCE_PARTICIPANT = 'participant'

# Participant intents
CLAIM_TEAM = 'claimTeam'
STOP_TIMER = 'stopTimer'
SELECT_CHEST = 'selectChest'
SUBMIT_BET = 'submitBet'
SUBMIT_FINAL_ANSWER = 'submitFinalAnswer'

# Host intents
ADVANCE = 'advance'
TIMER_EXPIRED = 'timerExpired'
MARK_CORRECT = 'markCorrect'
MARK_INCORRECT = 'markIncorrect'
UNDO_GRADING = 'undoGrading'
PASS_QUESTION = 'passQuestion'
ADJUST_SCORE = 'adjustScore'
RELEASE_CLAIM = 'releaseClaim'
SET_BET = 'setBet'
UNLOCK_BET = 'unlockBet'
SCORE_FINAL = 'scoreFinal'

PARTICIPANT_INTENTS = frozenset({CLAIM_TEAM, STOP_TIMER, SELECT_CHEST, SUBMIT_BET, SUBMIT_FINAL_ANSWER})
HOST_INTENTS = PARTICIPANT_INTENTS | frozenset({
    ADVANCE, TIMER_EXPIRED, MARK_CORRECT, MARK_INCORRECT, UNDO_GRADING, PASS_QUESTION,
    ADJUST_SCORE, RELEASE_CLAIM, SET_BET, UNLOCK_BET, SCORE_FINAL,
})

# Fields each type cannot do without
_REQUIRED = {
    CLAIM_TEAM: ('team_index', 'participant_ref'),
    STOP_TIMER: ('team_index',),
    SELECT_CHEST: ('team_index', 'chest_index'),
    SUBMIT_BET: ('team_index', 'bet_amount'),
    SUBMIT_FINAL_ANSWER: ('team_index', 'text'),
    TIMER_EXPIRED: ('timer_end',),
    PASS_QUESTION: ('team_index',),
    ADJUST_SCORE: ('team_index', 'delta'),
    RELEASE_CLAIM: ('team_index',),
    SET_BET: ('team_index', 'bet_amount'),
    UNLOCK_BET: ('team_index',),
    SCORE_FINAL: ('team_index', 'correct'),
}
_HOST_OPTIONAL_TEAM = (STOP_TIMER, SELECT_CHEST)

# Accept the browser clients' camelCase names too.
_ALIASES = {
    'teamIndex': 'team_index',
    'participantRef': 'participant_ref',
    'participantId': 'participant_ref',
    'chestIndex': 'chest_index',
    'betAmount': 'bet_amount',
    'amount': 'bet_amount',
    'intentId': 'intent_id',
    'timerEnd': 'timer_end',
}


@dataclass(frozen=True)
class Intent:
    type: str
    source: str = SOURCE_PARTICIPANT
    team_index: Optional[int] = None
    participant_ref: Optional[str] = None
    chest_index: Optional[int] = None
    bet_amount: Optional[int] = None
    delta: Optional[int] = None
    correct: Optional[bool] = None
    text: Optional[str] = None
    timer_end: Optional[int] = None
    intent_id: Optional[str] = None

    @property
    def from_host(self) -> bool:
        return self.source == SOURCE_HOST

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}


def _as_int(name: str, value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidTransition(f'{name} must be an integer')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidTransition(f'{name} must be an integer')


def parse_intent(payload: Optional[Dict[str, Any]], source: str = SOURCE_PARTICIPANT) -> Intent:
    data = {}
    for key, value in (payload or {}).items():
        data[_ALIASES.get(key, key)] = value
    kind = data.get('type')
    allowed = HOST_INTENTS if source == SOURCE_HOST else PARTICIPANT_INTENTS
    if kind not in allowed:
        raise InvalidTransition(f'unsupported {source} intent {kind!r}')

    required = _REQUIRED.get(kind, ())
    if source == SOURCE_HOST and kind in _HOST_OPTIONAL_TEAM:
        required = tuple(f for f in required if f != 'team_index')
    missing = [f for f in required if data.get(f) is None]
    if missing:
        raise InvalidTransition(f'{kind} is missing {", ".join(missing)}')

    correct = data.get('correct')
    text = data.get('text')
    participant_ref = data.get('participant_ref')
    intent_id = data.get('intent_id')
    return Intent(
        type=kind,
        source=source,
        team_index=_as_int('team_index', data.get('team_index')),
        participant_ref=str(participant_ref) if participant_ref is not None else None,
        chest_index=_as_int('chest_index', data.get('chest_index')),
        bet_amount=_as_int('bet_amount', data.get('bet_amount')),
        delta=_as_int('delta', data.get('delta')),
        correct=bool(correct) if correct is not None else None,
        text=str(text) if text is not None else None,
        timer_end=_as_int('timer_end', data.get('timer_end')),
        intent_id=str(intent_id) if intent_id is not None else None,
    )

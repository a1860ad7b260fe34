"""Canonical record of one game session.

``SessionState`` is plain data plus mutators. Every mutator validates its
input before touching anything, so a call either applies completely or
raises and leaves the record as it was. Nothing here does I/O; the actor in
``actor.py`` owns the single live instance per session and the engine works
on copies of it.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from . import constants as C
from .content import QuizContent, compute_total_questions
from .errors import ContentExhausted, InvalidTransition
from .timer import TimerSync


@dataclass
class Team:
    index: int
    display_name: str
    icon_ref: str
    score: int = 0
    participant_ref: Optional[str] = None

    @property
    def is_claimed(self) -> bool:
        return self.participant_ref is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'index': self.index,
            'display_name': self.display_name,
            'icon_ref': self.icon_ref,
            'score': self.score,
            'claim': {'participant_ref': self.participant_ref} if self.participant_ref else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Team':
        claim = data.get('claim') or {}
        return cls(
            index=int(data['index']),
            display_name=data.get('display_name', ''),
            icon_ref=data.get('icon_ref', ''),
            score=int(data.get('score', 0)),
            participant_ref=claim.get('participant_ref'),
        )


@dataclass
class BoxState:
    mode: str
    scores: List[int]
    selected_index: Optional[int] = None
    selected_score: Optional[int] = None

    @property
    def revealed(self) -> bool:
        return self.selected_index is not None

    def to_dict(self, public: bool = False) -> Dict[str, Any]:
        return {
            'mode': self.mode,
            # Chest values stay hidden from observers until one is opened.
            'scores': list(self.scores) if (self.revealed or not public) else [None] * len(self.scores),
            'selected_index': self.selected_index,
            'selected_score': self.selected_score,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BoxState':
        return cls(
            mode=data['mode'],
            scores=[int(s) for s in data.get('scores') or []],
            selected_index=data.get('selected_index'),
            selected_score=data.get('selected_score'),
        )


@dataclass
class BettingState:
    eligible: List[int] = field(default_factory=list)
    bets: Dict[int, int] = field(default_factory=dict)
    locked: List[int] = field(default_factory=list)
    revealed: bool = False
    results: Dict[int, bool] = field(default_factory=dict)

    @classmethod
    def open(cls, teams: Sequence[Team]) -> 'BettingState':
        """Start betting: teams without a positive score sit at a bet of 0."""
        state = cls()
        for team in teams:
            if team.score > 0:
                state.eligible.append(team.index)
            else:
                state.bets[team.index] = 0
        return state

    def all_bets_placed(self) -> bool:
        return all(i in self.bets for i in self.eligible)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'eligible': list(self.eligible),
            'bets': {str(k): v for k, v in self.bets.items()},
            'locked': list(self.locked),
            'revealed': self.revealed,
            'all_bets_placed': self.all_bets_placed(),
            'results': {str(k): v for k, v in self.results.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BettingState':
        return cls(
            eligible=[int(i) for i in data.get('eligible') or []],
            bets={int(k): int(v) for k, v in (data.get('bets') or {}).items()},
            locked=[int(i) for i in data.get('locked') or []],
            revealed=bool(data.get('revealed', False)),
            results={int(k): bool(v) for k, v in (data.get('results') or {}).items()},
        )


class SessionState:

    def __init__(self, code: str, host_ref: str, teams: List[Team], total_questions: int,
                 game_name: str = ''):
        self.code = code
        self.host_ref = host_ref
        self.game_name = game_name
        self.teams = teams
        self.active_team_index = 0
        self.question_cursor = 1
        self.total_questions = total_questions
        self.phase = C.PHASE_WAITING
        self.question_passed = False
        self.box_state: Optional[BoxState] = None
        self.betting_state: Optional[BettingState] = None
        self.timer_end: Optional[int] = None
        self.final_answers: Dict[int, str] = {}
        self.winners: List[int] = []

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def initialize(cls, config: Dict[str, Any], content: QuizContent,
                   team_roster: Sequence[Dict[str, str]]) -> 'SessionState':
        """Build a fresh session from setup options, content and roster.

        ``config`` needs ``code``, ``host_ref`` and ``number_of_teams``;
        roster entries are reused round-robin when there are more teams than
        entries.
        """
        number_of_teams = int(config.get('number_of_teams') or 0)
        if number_of_teams < 1:
            raise ValueError('at least one team is required')
        if not team_roster:
            raise ValueError('team roster is empty')
        total = compute_total_questions(len(content.questions), number_of_teams)
        if total == 0:
            raise ContentExhausted(
                f'{len(content.questions)} question(s) cannot cover a round of {number_of_teams} team(s)'
            )
        teams = []
        for i in range(number_of_teams):
            master = team_roster[i % len(team_roster)]
            teams.append(Team(index=i, display_name=master['name'], icon_ref=master['icon']))
        return cls(
            code=str(config['code']),
            host_ref=str(config['host_ref']),
            teams=teams,
            total_questions=total,
            game_name=config.get('game_name') or content.game_name,
        )

    def copy(self) -> 'SessionState':
        return SessionState.from_dict(self.to_dict())

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def team(self, index: Any) -> Team:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(self.teams):
            raise InvalidTransition(f'no team with index {index!r}')
        return self.teams[index]

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def adjust_score(self, team_index: int, delta: int) -> int:
        team = self.team(team_index)
        team.score += int(delta)
        return team.score

    def set_active_team(self, index: int) -> None:
        self.team(index)
        self.active_team_index = index

    def advance_question_cursor(self) -> int:
        self.question_cursor += 1
        return self.question_cursor

    def set_question_passed(self, value: bool) -> None:
        self.question_passed = bool(value)

    def set_timer_end(self, value: Optional[int]) -> None:
        try:
            self.timer_end = TimerSync.replace(self.timer_end, value)
        except ValueError as exc:
            raise InvalidTransition(str(exc))

    def set_phase(self, phase: str, sub_state: Any = None) -> None:
        """Move to ``phase``, installing or dropping the phase-scoped record.

        Box phases keep a ``BoxState`` and the final-round family keeps a
        ``BettingState``; leaving a family drops its record. Leaving
        ``question`` cancels any running timer.
        """
        if phase not in C.ALL_PHASES:
            raise InvalidTransition(f'unknown phase {phase!r}')
        box_state = self.box_state
        betting_state = self.betting_state
        if phase in C.BOX_PHASES:
            if isinstance(sub_state, BoxState):
                box_state = sub_state
            elif sub_state is not None or box_state is None:
                raise InvalidTransition(f'phase {phase} needs a box state')
        else:
            box_state = None
        if phase in C.FINAL_PHASES:
            if isinstance(sub_state, BettingState):
                betting_state = sub_state
            elif sub_state is not None or betting_state is None:
                raise InvalidTransition(f'phase {phase} needs a betting state')
        else:
            betting_state = None
            if sub_state is not None and phase not in C.BOX_PHASES:
                raise InvalidTransition(f'phase {phase} takes no sub-state')

        self.phase = phase
        self.box_state = box_state
        self.betting_state = betting_state
        if phase != C.PHASE_QUESTION:
            self.timer_end = TimerSync.cancel()
        if phase not in C.FINAL_PHASES:
            self.final_answers = {}
            self.winners = []

    def claim_team(self, team_index: int, participant_ref: str) -> bool:
        team = self.team(team_index)
        if not participant_ref:
            raise InvalidTransition('participant_ref is required to claim a team')
        if team.is_claimed:
            return False
        team.participant_ref = str(participant_ref)
        return True

    def release_claim(self, team_index: int) -> Optional[str]:
        team = self.team(team_index)
        previous = team.participant_ref
        team.participant_ref = None
        return previous

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self, public: bool = False) -> Dict[str, Any]:
        return {
            'code': self.code,
            'host_ref': self.host_ref,
            'game_name': self.game_name,
            'teams': [t.to_dict() for t in self.teams],
            'active_team_index': self.active_team_index,
            'question_cursor': self.question_cursor,
            'total_questions': self.total_questions,
            'phase': self.phase,
            'question_passed': self.question_passed,
            'box_state': self.box_state.to_dict(public=public) if self.box_state else None,
            'betting_state': self.betting_state.to_dict() if self.betting_state else None,
            'timer_end': self.timer_end,
            'final_answers': {str(k): v for k, v in self.final_answers.items()},
            'winners': list(self.winners),
        }

    def snapshot(self, public: bool = False) -> Dict[str, Any]:
        """Detached copy safe to serialise while the host keeps mutating."""
        return copy.deepcopy(self.to_dict(public=public))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SessionState':
        state = cls(
            code=str(data['code']),
            host_ref=str(data['host_ref']),
            teams=[Team.from_dict(t) for t in data.get('teams') or []],
            total_questions=int(data.get('total_questions', 0)),
            game_name=data.get('game_name') or '',
        )
        state.active_team_index = int(data.get('active_team_index') or 0)
        state.question_cursor = int(data.get('question_cursor') or 1)
        state.phase = data.get('phase') or C.PHASE_WAITING
        state.question_passed = bool(data.get('question_passed', False))
        box = data.get('box_state')
        state.box_state = BoxState.from_dict(box) if box else None
        betting = data.get('betting_state')
        state.betting_state = BettingState.from_dict(betting) if betting else None
        state.timer_end = data.get('timer_end')
        state.final_answers = {int(k): v for k, v in (data.get('final_answers') or {}).items()}
        state.winners = [int(i) for i in data.get('winners') or []]
        return state

    @classmethod
    def restore(cls, blob: Dict[str, Any]) -> 'SessionState':
        """Rebuild a session from a persisted blob.

        Transient flags (``question_passed``, a live timer) are always
        dropped. A turn interrupted before its chest was opened replays from
        the pre-question screen; an opened chest counts as a finished turn.
        """
        data = blob.get('session', blob)
        state = cls.from_dict(data)
        if not state.teams:
            raise ValueError('persisted session has no teams')
        if state.phase not in C.ALL_PHASES:
            state.phase = C.PHASE_WAITING
        state.question_passed = False
        state.timer_end = None

        if state.phase == C.PHASE_BOXES_REVEALED:
            state.advance_question_cursor()
            if state.question_cursor > state.total_questions:
                state.set_phase(C.PHASE_BETTING, BettingState.open(state.teams))
            else:
                state.active_team_index = (state.question_cursor - 1) % len(state.teams)
                state.set_phase(C.PHASE_WAITING)
        elif state.phase in C.MAIN_LOOP_PHASES:
            state.active_team_index = (state.question_cursor - 1) % len(state.teams)
            state.set_phase(C.PHASE_WAITING)
        elif state.betting_state is None:
            state.set_phase(C.PHASE_BETTING, BettingState.open(state.teams))
        return state

"""Turn engine: the phase machine as a reducer.

``TurnEngine.reduce(state, intent, now)`` never touches ``state``. It works
on a copy and returns a ``Transition``: the new state plus the snapshot to
broadcast when the intent was legal, or the untouched state plus the reason
when it was not. Stale, duplicated and out-of-phase intents are therefore
harmless to replay in any order.

Main loop::

    waiting -> question -> grading -> correctAnswer | incorrectAnswer
            -> [learningTime] -> boxes -> boxes-revealed -> question | betting

Final round::

    betting -> finalQuestion -> finalAnswerRevealed -> finalScoring -> finished
"""

import random
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from . import constants as C
from . import intents as I
from .claims import ClaimResolver
from .content import QuizContent
from .errors import DuplicateApplication, GameSessionError, InvalidTransition
from .rules import GameRules
from .scoring import box_mode_for, deal_chests, final_delta, reward_tier, round_bet, winners
from .state import BettingState, BoxState, SessionState
from .timer import TimerSync, now_ms


@dataclass
class Transition:
    state: SessionState
    snapshot: Optional[Dict[str, Any]] = None
    rejection: Optional[GameSessionError] = None
    cues: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.rejection is None


Handler = Callable[[SessionState, I.Intent, int], Optional[List[Dict[str, Any]]]]


class TurnEngine:

    def __init__(self, content: QuizContent, rules: Optional[GameRules] = None,
                 rng: Optional[random.Random] = None):
        self.content = content
        self.rules = rules or GameRules()
        self._rng = rng or random.Random()
        self._handlers: Dict[str, Handler] = {
            I.CLAIM_TEAM: self._claim_team,
            I.RELEASE_CLAIM: self._release_claim,
            I.ADVANCE: self._advance,
            I.STOP_TIMER: self._stop_timer,
            I.TIMER_EXPIRED: self._timer_expired,
            I.MARK_CORRECT: self._mark_correct,
            I.MARK_INCORRECT: self._mark_incorrect,
            I.UNDO_GRADING: self._undo_grading,
            I.PASS_QUESTION: self._pass_question,
            I.SELECT_CHEST: self._select_chest,
            I.ADJUST_SCORE: self._adjust_score,
            I.SUBMIT_BET: self._submit_bet,
            I.SET_BET: self._set_bet,
            I.UNLOCK_BET: self._unlock_bet,
            I.SUBMIT_FINAL_ANSWER: self._submit_final_answer,
            I.SCORE_FINAL: self._score_final,
        }

    def reduce(self, state: SessionState, intent: I.Intent, now: Optional[int] = None) -> Transition:
        now = now_ms() if now is None else int(now)
        handler = self._handlers.get(intent.type)
        if handler is None:
            return Transition(state=state, rejection=InvalidTransition(f'unknown intent {intent.type!r}'))
        if not intent.from_host and intent.type not in I.PARTICIPANT_INTENTS:
            return Transition(state=state, rejection=InvalidTransition(f'{intent.type} is host-only'))
        working = state.copy()
        try:
            cues = handler(working, intent, now) or []
        except GameSessionError as exc:
            return Transition(state=state, rejection=exc)
        except ValueError as exc:
            return Transition(state=state, rejection=InvalidTransition(str(exc)))
        return Transition(state=working, snapshot=working.snapshot(), cues=cues)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    @staticmethod
    def _require_phase(state: SessionState, *phases: str) -> None:
        if state.phase not in phases:
            raise InvalidTransition(f'not allowed while phase is {state.phase}')

    @staticmethod
    def _check_owner(state: SessionState, intent: I.Intent) -> None:
        """A participant may only speak for an unclaimed team or its own.

        An intent without a participant_ref never speaks for a claimed team.
        """
        if intent.from_host:
            return
        team = state.team(intent.team_index)
        if team.is_claimed and team.participant_ref != intent.participant_ref:
            raise InvalidTransition(f'team {team.index} belongs to another participant')

    def _check_active_team(self, state: SessionState, intent: I.Intent) -> None:
        if intent.from_host:
            return
        self._check_owner(state, intent)
        if intent.team_index != state.active_team_index:
            raise InvalidTransition(f'team {intent.team_index} does not hold the turn')

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def _arm_question(self, state: SessionState, now: int) -> None:
        duration = self.content.duration_for(state.question_cursor, self.rules.question_duration_sec)
        state.set_phase(C.PHASE_QUESTION)
        state.set_timer_end(TimerSync.arm(now, duration))

    def _open_boxes(self, state: SessionState, mode: str) -> List[Dict[str, Any]]:
        scores = deal_chests(self.rules.table_for(mode), self.rules.chest_count, self._rng)
        state.set_phase(C.PHASE_BOXES, BoxState(mode=mode, scores=scores))
        return [{'cue': 'boxes_opened', 'mode': mode, 'team_index': state.active_team_index}]

    def _next_turn(self, state: SessionState, now: int) -> List[Dict[str, Any]]:
        state.set_question_passed(False)
        cursor = state.advance_question_cursor()
        if cursor > state.total_questions:
            state.set_phase(C.PHASE_BETTING, BettingState.open(state.teams))
            return [{'cue': 'final_round'}]
        state.set_active_team((cursor - 1) % len(state.teams))
        self._arm_question(state, now)
        return [{'cue': 'question_started', 'question_cursor': cursor}]

    def _advance(self, state, intent, now):
        phase = state.phase
        if phase == C.PHASE_WAITING:
            self._arm_question(state, now)
            return [{'cue': 'question_started', 'question_cursor': state.question_cursor}]
        if phase == C.PHASE_CORRECT_ANSWER:
            return self._open_boxes(state, box_mode_for(True, state.question_passed))
        if phase == C.PHASE_INCORRECT_ANSWER:
            state.set_phase(C.PHASE_LEARNING_TIME)
            return [{'cue': 'answer_revealed'}]
        if phase == C.PHASE_LEARNING_TIME:
            return self._open_boxes(state, box_mode_for(False, state.question_passed))
        if phase == C.PHASE_BOXES_REVEALED:
            return self._next_turn(state, now)
        if phase == C.PHASE_BETTING:
            betting = state.betting_state
            if not betting.all_bets_placed():
                raise InvalidTransition('not every eligible team has placed a bet')
            betting.revealed = True
            state.set_phase(C.PHASE_FINAL_QUESTION)
            return [{'cue': 'bets_revealed'}]
        if phase == C.PHASE_FINAL_QUESTION:
            state.set_phase(C.PHASE_FINAL_ANSWER_REVEALED)
            return None
        if phase == C.PHASE_FINAL_ANSWER_REVEALED:
            state.set_phase(C.PHASE_FINAL_SCORING)
            return None
        raise InvalidTransition(f'nothing to advance to from {phase}')

    def _stop_timer(self, state, intent, now):
        self._require_phase(state, C.PHASE_QUESTION)
        self._check_active_team(state, intent)
        state.set_phase(C.PHASE_GRADING)
        return [{'cue': 'timer_stopped', 'team_index': state.active_team_index}]

    def _timer_expired(self, state, intent, now):
        self._require_phase(state, C.PHASE_QUESTION)
        if state.timer_end is None or intent.timer_end != state.timer_end:
            raise InvalidTransition('expiry does not match the running timer')
        state.set_phase(C.PHASE_GRADING)
        return [{'cue': 'time_up', 'team_index': state.active_team_index}]

    def _mark_correct(self, state, intent, now):
        self._require_phase(state, C.PHASE_GRADING)
        state.set_phase(C.PHASE_CORRECT_ANSWER)
        return [{'cue': 'correct', 'reward_tier': reward_tier(state.question_passed)}]

    def _mark_incorrect(self, state, intent, now):
        self._require_phase(state, C.PHASE_GRADING)
        state.set_phase(C.PHASE_INCORRECT_ANSWER)
        return [{'cue': 'incorrect', 'can_pass': not state.question_passed}]

    def _undo_grading(self, state, intent, now):
        self._require_phase(state, C.PHASE_CORRECT_ANSWER, C.PHASE_INCORRECT_ANSWER)
        state.set_phase(C.PHASE_GRADING)
        return None

    def _pass_question(self, state, intent, now):
        self._require_phase(state, C.PHASE_INCORRECT_ANSWER)
        if state.question_passed:
            raise InvalidTransition('this question was already passed once')
        target = state.team(intent.team_index)
        if target.index == state.active_team_index:
            raise InvalidTransition('a question cannot be passed to the team holding it')
        state.set_active_team(target.index)
        state.set_question_passed(True)
        self._arm_question(state, now)
        return [{'cue': 'question_passed', 'team_index': target.index}]

    def _select_chest(self, state, intent, now):
        if state.phase == C.PHASE_BOXES_REVEALED:
            raise DuplicateApplication('a chest was already opened for this question')
        self._require_phase(state, C.PHASE_BOXES)
        self._check_active_team(state, intent)
        box = state.box_state
        chest = intent.chest_index
        if chest is None or not 0 <= chest < len(box.scores):
            raise InvalidTransition(f'no chest with index {chest!r}')
        score = box.scores[chest]
        team_index = state.active_team_index
        box.selected_index = chest
        box.selected_score = score
        state.adjust_score(team_index, score)
        state.set_phase(C.PHASE_BOXES_REVEALED)
        return [{
            'cue': 'chest_revealed',
            'team_index': team_index,
            'chest_index': chest,
            'score': score,
            'treatment': 'failure' if score < 0 else 'chestOpen',
        }]

    def _adjust_score(self, state, intent, now):
        if state.phase not in C.MAIN_LOOP_PHASES:
            raise InvalidTransition(f'manual scoring is closed during {state.phase}')
        state.adjust_score(intent.team_index, intent.delta)
        return None

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def _claim_team(self, state, intent, now):
        if state.phase == C.PHASE_FINISHED:
            raise InvalidTransition('the game is over')
        ClaimResolver.try_claim(state, intent.team_index, intent.participant_ref)
        return [{'cue': 'participant_joined', 'team_index': intent.team_index}]

    def _release_claim(self, state, intent, now):
        if state.release_claim(intent.team_index) is None:
            raise DuplicateApplication(f'team {intent.team_index} has no participant')
        return [{'cue': 'participant_removed', 'team_index': intent.team_index}]

    # ------------------------------------------------------------------
    # Final round
    # ------------------------------------------------------------------

    def _open_betting(self, state: SessionState, team_index: int) -> BettingState:
        self._require_phase(state, C.PHASE_BETTING)
        betting = state.betting_state
        if betting.revealed:
            raise InvalidTransition('bets are already revealed')
        state.team(team_index)
        if team_index not in betting.eligible:
            raise InvalidTransition(f'team {team_index} has nothing to bet')
        return betting

    def _checked_amount(self, state: SessionState, team_index: int, amount: int) -> int:
        score = state.team(team_index).score
        if amount is None or amount < 0 or amount > score:
            raise InvalidTransition(f'bet must be between 0 and {score}')
        return round_bet(amount, score, self.rules.bet_increment)

    def _submit_bet(self, state, intent, now):
        betting = self._open_betting(state, intent.team_index)
        self._check_owner(state, intent)
        if intent.team_index in betting.locked:
            raise DuplicateApplication(f'team {intent.team_index} already locked its bet')
        betting.bets[intent.team_index] = self._checked_amount(state, intent.team_index, intent.bet_amount)
        betting.locked.append(intent.team_index)
        return [{'cue': 'bet_locked', 'team_index': intent.team_index}]

    def _set_bet(self, state, intent, now):
        betting = self._open_betting(state, intent.team_index)
        betting.bets[intent.team_index] = self._checked_amount(state, intent.team_index, intent.bet_amount)
        return None

    def _unlock_bet(self, state, intent, now):
        betting = self._open_betting(state, intent.team_index)
        if intent.team_index not in betting.locked:
            raise DuplicateApplication(f'team {intent.team_index} has no locked bet')
        betting.locked.remove(intent.team_index)
        betting.bets.pop(intent.team_index, None)
        return None

    def _submit_final_answer(self, state, intent, now):
        self._require_phase(state, C.PHASE_FINAL_QUESTION)
        state.team(intent.team_index)
        self._check_owner(state, intent)
        state.final_answers[intent.team_index] = (intent.text or '').strip()
        return [{'cue': 'final_answer_received', 'team_index': intent.team_index}]

    def _score_final(self, state, intent, now):
        self._require_phase(state, C.PHASE_FINAL_SCORING)
        team = state.team(intent.team_index)
        betting = state.betting_state
        if team.index in betting.results:
            raise DuplicateApplication(f'team {team.index} was already scored')
        bet = betting.bets.get(team.index, 0)
        state.adjust_score(team.index, final_delta(bet, bool(intent.correct)))
        betting.results[team.index] = bool(intent.correct)
        cues = [{'cue': 'correct' if intent.correct else 'incorrect', 'team_index': team.index}]
        if len(betting.results) == len(state.teams):
            state.set_phase(C.PHASE_FINISHED)
            state.winners = winners(state.teams)
            cues.append({'cue': 'winner', 'winners': list(state.winners)})
        return cues

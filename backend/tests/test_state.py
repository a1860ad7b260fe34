import pytest

from chestquiz.services.games import constants as C
from chestquiz.services.games.content import QuizContent, compute_total_questions, prepare_content
from chestquiz.services.games.errors import ContentExhausted, InvalidTransition
from chestquiz.services.games.state import BettingState, BoxState, SessionState

from conftest import make_content, make_state


def test_total_questions_is_whole_rounds():
    assert compute_total_questions(10, 4) == 8
    assert compute_total_questions(10, 3) == 9
    assert compute_total_questions(3, 4) == 0


def test_initialize_builds_teams_from_roster():
    state, _ = make_state(n_teams=4, n_questions=10)
    assert state.total_questions == 8
    assert [t.display_name for t in state.teams] == ['Owls', 'Foxes', 'Elephants', 'Frogs']
    assert all(t.score == 0 and not t.is_claimed for t in state.teams)
    assert state.phase == C.PHASE_WAITING
    assert state.question_cursor == 1
    assert state.active_team_index == 0
    assert state.game_name == 'Pub Night'


def test_initialize_rejects_too_little_content():
    content = QuizContent.from_dict(make_content(2))
    with pytest.raises(ContentExhausted):
        SessionState.initialize({'code': '1', 'host_ref': '1', 'number_of_teams': 3}, content, C.TEAMS_MASTER_DATA)


def test_prepare_content_cuts_to_rounds():
    content = prepare_content(QuizContent.from_dict(make_content(10)), 3)
    assert len(content.questions) == 9
    assert content.final_question.answer == 'Final answer'
    with pytest.raises(ContentExhausted):
        prepare_content(QuizContent.from_dict(make_content(1)), 2)


def test_snapshot_is_detached():
    state, _ = make_state()
    snap = state.snapshot()
    state.adjust_score(0, 25)
    state.claim_team(1, 'p-1')
    assert snap['teams'][0]['score'] == 0
    assert snap['teams'][1]['claim'] is None
    snap['teams'][2]['score'] = 999
    assert state.teams[2].score == 0


def test_public_snapshot_masks_unopened_chests():
    state, _ = make_state()
    state.set_phase(C.PHASE_BOXES, BoxState(mode=C.BOX_VICTORY, scores=[10, 20, 30]))
    assert state.snapshot(public=True)['box_state']['scores'] == [None, None, None]
    assert state.snapshot()['box_state']['scores'] == [10, 20, 30]
    state.box_state.selected_index = 1
    state.box_state.selected_score = 20
    state.set_phase(C.PHASE_BOXES_REVEALED)
    assert state.snapshot(public=True)['box_state']['scores'] == [10, 20, 30]


def test_leaving_question_clears_timer():
    state, _ = make_state()
    state.set_phase(C.PHASE_QUESTION)
    state.set_timer_end(1_000_000)
    state.set_phase(C.PHASE_GRADING)
    assert state.timer_end is None


def test_timer_end_only_moves_later():
    state, _ = make_state()
    state.set_phase(C.PHASE_QUESTION)
    state.set_timer_end(2_000)
    with pytest.raises(InvalidTransition):
        state.set_timer_end(1_000)
    assert state.timer_end == 2_000


def test_box_phase_requires_box_state():
    state, _ = make_state()
    with pytest.raises(InvalidTransition):
        state.set_phase(C.PHASE_BOXES)


def test_team_lookup_rejects_bad_indexes():
    state, _ = make_state(n_teams=2)
    for bad in (-1, 2, True, '0', None):
        with pytest.raises(InvalidTransition):
            state.team(bad)


def test_restore_clears_transient_flags_and_replays_turn():
    state, _ = make_state()
    state.question_cursor = 3
    state.active_team_index = 3
    state.set_phase(C.PHASE_QUESTION)
    state.set_timer_end(5_000)
    state.question_passed = True
    restored = SessionState.restore({'session': state.snapshot(), 'options': {}})
    assert restored.question_passed is False
    assert restored.timer_end is None
    assert restored.phase == C.PHASE_WAITING
    assert restored.question_cursor == 3
    assert restored.active_team_index == 2


def test_restore_after_opened_chest_moves_on():
    state, _ = make_state()
    state.question_cursor = 2
    state.set_phase(C.PHASE_BOXES, BoxState(mode=C.BOX_VICTORY, scores=[10, 20, 30], selected_index=0, selected_score=10))
    state.set_phase(C.PHASE_BOXES_REVEALED)
    restored = SessionState.restore(state.snapshot())
    assert restored.phase == C.PHASE_WAITING
    assert restored.question_cursor == 3
    assert restored.active_team_index == 2
    assert restored.box_state is None


def test_restore_after_last_chest_opens_betting():
    state, _ = make_state()
    state.question_cursor = state.total_questions
    state.adjust_score(0, 40)
    state.set_phase(C.PHASE_BOXES, BoxState(mode=C.BOX_VICTORY, scores=[10, 20, 30], selected_index=0, selected_score=10))
    state.set_phase(C.PHASE_BOXES_REVEALED)
    restored = SessionState.restore(state.snapshot())
    assert restored.phase == C.PHASE_BETTING
    assert restored.betting_state.eligible == [0]


def test_restore_keeps_final_round_progress():
    state, _ = make_state(n_teams=2)
    state.adjust_score(0, 50)
    betting = BettingState.open(state.teams)
    betting.bets[0] = 20
    betting.revealed = True
    state.set_phase(C.PHASE_FINAL_QUESTION, betting)
    state.final_answers[0] = 'Paris'
    restored = SessionState.restore(state.snapshot())
    assert restored.phase == C.PHASE_FINAL_QUESTION
    assert restored.betting_state.bets == {0: 20, 1: 0}
    assert restored.final_answers == {0: 'Paris'}

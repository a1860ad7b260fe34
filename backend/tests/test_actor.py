import threading

from chestquiz.services.games import intents as I
from chestquiz.services.games.actor import SessionActor
from chestquiz.services.games.engine import TurnEngine
from chestquiz.services.games.errors import AlreadyClaimed, DuplicateApplication

from conftest import NoShuffle, make_state

T0 = 1_700_000_000_000


def make_actor(**kwargs):
    state, content = make_state()
    return SessionActor(state, TurnEngine(content, rng=NoShuffle()), clock=lambda: T0, **kwargs)


def test_concurrent_claims_have_one_winner():
    actor = make_actor()
    results = []
    barrier = threading.Barrier(8)

    def claim(ref):
        barrier.wait()
        results.append(actor.apply(I.Intent(type=I.CLAIM_TEAM, team_index=1, participant_ref=ref), timeout=5))

    threads = [threading.Thread(target=claim, args=(f'p{i}',)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    winners = [r for r in results if r.accepted]
    losers = [r for r in results if not r.accepted]
    assert len(winners) == 1
    assert len(losers) == 7
    assert all(isinstance(r.rejection, AlreadyClaimed) for r in losers)
    assert actor.state.teams[1].participant_ref == winners[0].state.teams[1].participant_ref


def test_replayed_intent_id_applies_once():
    actor = make_actor()
    adjust = I.Intent(type=I.ADJUST_SCORE, source=I.SOURCE_HOST, team_index=0, delta=5, intent_id='abc')
    assert actor.apply(adjust).accepted
    replay = actor.apply(adjust)
    assert isinstance(replay.rejection, DuplicateApplication)
    assert actor.state.teams[0].score == 5


def test_dedup_window_is_bounded():
    actor = make_actor(dedup_window=2)
    for key in ('a', 'b', 'c'):
        actor.apply(I.Intent(type=I.ADJUST_SCORE, source=I.SOURCE_HOST, team_index=0, delta=5, intent_id=key))
    # 'a' fell out of the window
    assert actor.apply(I.Intent(type=I.ADJUST_SCORE, source=I.SOURCE_HOST, team_index=0, delta=5, intent_id='a')).accepted
    assert actor.state.teams[0].score == 20


def test_hook_sees_every_accepted_transition():
    seen = []
    actor = make_actor(on_transition=lambda a, t, prev: seen.append((prev.phase, t.state.phase)))
    actor.apply(I.Intent(type=I.ADVANCE, source=I.SOURCE_HOST))
    actor.apply(I.Intent(type=I.MARK_CORRECT, source=I.SOURCE_HOST))
    assert seen == [('waiting', 'question')]
    assert actor.snapshot()['timer_end'] == T0 + 30_000


def test_failing_hook_keeps_new_state():
    def boom(actor, transition, previous):
        raise RuntimeError('socket gone')

    actor = make_actor(on_transition=boom)
    assert actor.apply(I.Intent(type=I.ADVANCE, source=I.SOURCE_HOST)).accepted
    assert actor.state.phase == 'question'

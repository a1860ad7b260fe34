import pytest

from chestquiz.services.games.claims import ClaimResolver
from chestquiz.services.games.errors import AlreadyClaimed, InvalidTransition

from conftest import make_state


def test_first_claim_wins():
    state, _ = make_state()
    ClaimResolver.try_claim(state, 2, 'alice')
    with pytest.raises(AlreadyClaimed):
        ClaimResolver.try_claim(state, 2, 'bob')
    assert state.teams[2].participant_ref == 'alice'


def test_claim_retry_by_winner_is_rejected_too():
    state, _ = make_state()
    ClaimResolver.try_claim(state, 0, 'alice')
    with pytest.raises(AlreadyClaimed):
        ClaimResolver.try_claim(state, 0, 'alice')


def test_claim_unknown_team():
    state, _ = make_state(n_teams=2)
    with pytest.raises(InvalidTransition):
        ClaimResolver.try_claim(state, 5, 'alice')


def test_release_frees_the_team():
    state, _ = make_state()
    ClaimResolver.try_claim(state, 1, 'alice')
    assert state.release_claim(1) == 'alice'
    ClaimResolver.try_claim(state, 1, 'bob')
    assert state.teams[1].participant_ref == 'bob'

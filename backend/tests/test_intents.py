import pytest

from chestquiz.services.games import intents as I
from chestquiz.services.games.errors import InvalidTransition


def test_parses_camel_case_payload():
    intent = I.parse_intent({'type': 'selectChest', 'teamIndex': '1', 'chestIndex': 2, 'intentId': 'x1'})
    assert intent.team_index == 1
    assert intent.chest_index == 2
    assert intent.intent_id == 'x1'
    assert intent.source == I.SOURCE_PARTICIPANT


def test_participant_cannot_send_host_types():
    with pytest.raises(InvalidTransition):
        I.parse_intent({'type': 'advance'})
    assert I.parse_intent({'type': 'advance'}, source=I.SOURCE_HOST).from_host


def test_missing_fields_are_rejected():
    with pytest.raises(InvalidTransition):
        I.parse_intent({'type': 'claimTeam', 'team_index': 0})
    with pytest.raises(InvalidTransition):
        I.parse_intent({'type': 'submitBet', 'team_index': 0, 'bet_amount': 'lots'})
    with pytest.raises(InvalidTransition):
        I.parse_intent({'type': 'stopTimer', 'team_index': True})


def test_host_may_act_for_the_active_team():
    intent = I.parse_intent({'type': 'selectChest', 'chest_index': 0}, source=I.SOURCE_HOST)
    assert intent.team_index is None

from .errors import AlreadyClaimed
from .state import SessionState


class ClaimResolver:
    """Check-then-commit team claims.

    Safe against two participants racing for the same team only because the
    session actor applies intents one at a time; the resolver itself never
    locks, retries or queues. The first claim applied wins and every later
    one, including a retry from the winner, sees AlreadyClaimed.
    """

    @staticmethod
    def try_claim(session: SessionState, team_index: int, participant_ref: str) -> SessionState:
        team = session.team(team_index)
        if team.is_claimed:
            raise AlreadyClaimed(f'team {team_index} is already claimed')
        session.claim_team(team_index, participant_ref)
        return session

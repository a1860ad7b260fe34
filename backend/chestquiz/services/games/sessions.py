"""Live session registry: wires actors to persistence, broadcast and timers.

One ``LiveSession`` per active join code lives in this process. Its actor's
transition hook saves the blob, pushes the public snapshot to the room and
arms the expiry worker when a new ``timer_end`` appears.
"""

import logging
import threading
from concurrent.futures import TimeoutError as FuturesTimeout
from contextlib import nullcontext
from typing import Any, Dict, List, Optional

from flask import current_app, has_app_context

from chestquiz import db, socketio
from chestquiz.models import GameSession, SESSION_ACTIVE, SESSION_ENDED, generate_session_code

from .actor import SessionActor
from .broadcast import BroadcastChannel, build_payload
from .constants import TEAMS_MASTER_DATA
from .content import QuizContent, prepare_content
from .engine import Transition, TurnEngine
from .errors import NotSessionHost, SessionNotFound
from .intents import Intent
from .rules import GameRules
from .scheduler import schedule_question_timer
from .state import SessionState

logger = logging.getLogger(__name__)

channel = BroadcastChannel(socketio)

_live: Dict[str, 'LiveSession'] = {}
_registry_lock = threading.RLock()


def _app_context(app):
    """Reuse the caller's context for ``app`` so one db session sees every write."""
    if has_app_context() and current_app._get_current_object() is app:
        return nullcontext()
    return app.app_context()


class LiveSession:

    def __init__(self, app, actor: SessionActor, content: QuizContent, options: Dict[str, Any]):
        self.app = app
        self.actor = actor
        self.content = content
        self.options = options

    @property
    def code(self) -> str:
        return self.actor.code

    @property
    def host_ref(self) -> str:
        return self.actor.state.host_ref

    def payload(self) -> Dict[str, Any]:
        default = int(self.app.config.get('QUESTION_DURATION_SEC', 30))
        return build_payload(self.actor.state, self.content, default)

    def submit(self, intent: Intent) -> Optional[Transition]:
        """Apply ``intent`` and wait for the outcome.

        Returns None when the actor is still busy after ACTION_TIMEOUT_SEC; the
        intent stays queued and will be applied, so callers report it as pending.
        """
        timeout = float(self.app.config.get('ACTION_TIMEOUT_SEC', 5))
        try:
            return self.actor.apply(intent, timeout=timeout)
        except FuturesTimeout:
            logger.warning(f"[intent-pending] session={self.code} type={intent.type} waited={timeout}s")
            return None

    def require_host(self, user_id) -> None:
        if str(user_id) != self.host_ref:
            raise NotSessionHost(f'user {user_id} does not host session {self.code}')


def _persist(code: str, state: SessionState, options: Dict[str, Any]) -> None:
    row = GameSession.active_by_code(code)
    if row is None:
        logger.warning(f"[persist-skip] session={code} no active row")
        return
    row.store(state.snapshot(), options)
    db.session.add(row)
    db.session.commit()


def _make_hook(app, options: Dict[str, Any]):
    def on_transition(actor: SessionActor, transition: Transition, previous: SessionState) -> None:
        state = transition.state
        live = _live.get(actor.code)
        with _app_context(app):
            try:
                _persist(actor.code, state, options)
            except Exception:
                db.session.rollback()
                logger.exception(f"[persist-failed] session={actor.code}")
        if live is not None:
            channel.publish(actor.code, live.payload())
        for cue in transition.cues:
            channel.notify(actor.code, 'cue', cue)
        if state.timer_end is not None and state.timer_end != previous.timer_end:
            schedule_question_timer(app, actor.code, state.timer_end)
    return on_transition


def _register(app, state: SessionState, content: QuizContent, options: Dict[str, Any]) -> LiveSession:
    engine = TurnEngine(content, GameRules.from_config(app.config))
    actor = SessionActor(
        state,
        engine,
        on_transition=_make_hook(app, options),
        dedup_window=int(app.config.get('INTENT_DEDUP_WINDOW', 512)),
    )
    live = LiveSession(app, actor, content, options)
    with _registry_lock:
        _live[state.code] = live
    return live


def create_session(app, host_id: int, content_data: Dict[str, Any], number_of_teams: int,
                   shuffle: Optional[bool] = None, game_name: Optional[str] = None) -> LiveSession:
    """Validate the setup, write the session row and start the live actor.

    ContentExhausted is raised before anything is written.
    """
    max_teams = int(app.config.get('MAX_TEAMS', 8))
    if not 1 <= number_of_teams <= max_teams:
        raise ValueError(f'number_of_teams must be between 1 and {max_teams}')
    if shuffle is None:
        shuffle = bool(app.config.get('SHUFFLE_QUESTIONS', False))
    content = prepare_content(QuizContent.from_dict(content_data), number_of_teams, shuffle=shuffle)

    code = generate_session_code()
    state = SessionState.initialize(
        {'code': code, 'host_ref': host_id, 'number_of_teams': number_of_teams, 'game_name': game_name},
        content,
        TEAMS_MASTER_DATA,
    )
    options = dict(content.to_dict(), game_name=state.game_name,
                   number_of_teams=number_of_teams, shuffle_questions=shuffle)
    row = GameSession(code=code, host_id=host_id, status=SESSION_ACTIVE)
    row.store(state.snapshot(), options)
    db.session.add(row)
    db.session.commit()

    live = _register(app, state, content, options)
    logger.info(f"[session-created] session={code} host={host_id} teams={number_of_teams} total={state.total_questions}")
    channel.publish(code, live.payload())
    return live


def _restore_row(app, row: GameSession) -> LiveSession:
    data = row.data
    state = SessionState.restore(data)
    options = data.get('options') or {}
    content = QuizContent.from_dict(options)
    live = _register(app, state, content, options)
    row.store(state.snapshot(), options)
    db.session.add(row)
    db.session.commit()
    logger.info(f"[session-restored] session={row.code} phase={state.phase} cursor={state.question_cursor}")
    return live


def get_live(app, code: str) -> Optional[LiveSession]:
    """Live session for ``code``, restoring it from its row if this process
    has not seen it yet (e.g. after a restart)."""
    code = str(code or '').strip()
    live = _live.get(code)
    if live is not None:
        return live
    with _registry_lock:
        if code in _live:
            return _live[code]
        row = GameSession.active_by_code(code)
        if row is None:
            return None
        return _restore_row(app, row)


def require_live(app, code: str) -> LiveSession:
    live = get_live(app, code)
    if live is None:
        raise SessionNotFound(f'no active session with code {code}')
    return live


def resume_session(app, code: str, host_id: int) -> LiveSession:
    """Bring back a host's session from its persisted blob."""
    code = str(code or '').strip()
    live = _live.get(code)
    if live is not None:
        live.require_host(host_id)
        channel.publish(code, live.payload())
        return live
    row = (GameSession.query.filter_by(code=code, host_id=host_id)
           .order_by(GameSession.updated_at.desc()).first())
    if row is None:
        raise SessionNotFound(f'no session with code {code} for this host')
    if row.status != SESSION_ACTIVE:
        if GameSession.active_by_code(code) is not None:
            raise SessionNotFound(f'code {code} is in use by another session')
        row.status = SESSION_ACTIVE
    live = _restore_row(app, row)
    channel.publish(code, live.payload())
    return live


def end_session(code: str, reason: str = 'ended') -> bool:
    """Retire the live actor, mark the row ended and tell the room."""
    with _registry_lock:
        live = _live.pop(code, None)
    row = GameSession.active_by_code(code)
    if row is not None:
        if live is not None:
            row.store(live.actor.snapshot(), live.options)
        row.status = SESSION_ENDED
        db.session.add(row)
        db.session.commit()
    if live is None and row is None:
        return False
    logger.info(f"[session-ended] session={code} reason={reason}")
    channel.notify(code, 'session_ended', {'game_code': code, 'reason': reason})
    return True


def active_sessions_for(host_id: int) -> List[GameSession]:
    return (GameSession.query.filter_by(host_id=host_id, status=SESSION_ACTIVE)
            .order_by(GameSession.updated_at.desc()).all())


def clear_registry() -> None:
    with _registry_lock:
        _live.clear()

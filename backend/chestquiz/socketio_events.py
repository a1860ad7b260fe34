from flask import current_app, request
from flask_login import current_user
from flask_socketio import join_room, leave_room, emit
from chestquiz import socketio
from chestquiz.services.games.broadcast import room_for
from chestquiz.services.games.errors import (
    AlreadyClaimed,
    DuplicateApplication,
    GameSessionError,
    NotSessionHost,
)
from chestquiz.services.games.intents import SOURCE_HOST, SOURCE_PARTICIPANT, parse_intent
from chestquiz.services.games.sessions import end_session, get_live
from typing import Dict, Any
import time


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    # A host socket going away starts the abandonment clock once no other
    # host device is left in the room
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx:
        return
    if ctx.get('is_session_owner'):
        _release_owner(ctx['game_code'])


def handle_join_game(data):
    data = data or {}
    game_code = str(data.get('game_code') or '').strip().upper()
    is_session_owner = bool(data.get('is_session_owner'))
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    live = get_live(current_app._get_current_object(), game_code)
    if live is None:
        emit('error', {'message': f'No active session {game_code}'})
        return
    if is_session_owner:
        if not current_user.is_authenticated:
            emit('error', {'message': 'Host login required'})
            return
        try:
            live.require_host(current_user.id)
        except NotSessionHost as exc:
            emit('error', {'message': str(exc)})
            return

    room = room_for(game_code)
    join_room(room)
    participant_ref = data.get('participant_ref') or data.get('participantRef')
    _sid_to_ctx[_get_sid()] = {
        'game_code': game_code,
        'is_session_owner': is_session_owner,
        'participant_ref': str(participant_ref) if participant_ref else _get_sid(),
    }
    if is_session_owner:
        _owner_count[game_code] = _owner_count.get(game_code, 0) + 1
        _cancel_scheduled_end(game_code)
    current_app.logger.info(
        f"[join] session={game_code} sid={_get_sid()} owner={is_session_owner} owners={_owner_count.get(game_code, 0)}"
    )
    emit('joined', {'room': room, 'game_code': game_code,
                    'participant_ref': _sid_to_ctx[_get_sid()]['participant_ref']})
    # Late joiners catch up from the current snapshot
    emit('state_update', live.payload())


def handle_leave_game(data):
    game_code = str((data or {}).get('game_code') or '').strip().upper()
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    room = room_for(game_code)
    leave_room(room)
    emit('left', {'room': room})
    ctx = _sid_to_ctx.get(_get_sid())
    if ctx and ctx.get('game_code') == game_code:
        _sid_to_ctx.pop(_get_sid(), None)
        if ctx.get('is_session_owner'):
            _release_owner(game_code)


def handle_action(data):
    """Route an intent from a socket to the session actor.

    Host sockets submit with host authority; everyone else is a participant
    and has its participant_ref filled in from the join context.
    """
    data = dict(data or {})
    ctx = _sid_to_ctx.get(_get_sid()) or {}
    game_code = str(data.pop('game_code', None) or ctx.get('game_code') or '').strip().upper()
    live = get_live(current_app._get_current_object(), game_code) if game_code else None
    if live is None:
        emit('action_rejected', {'type': data.get('type'), 'error': 'session_not_found'})
        return

    source = SOURCE_HOST if ctx.get('is_session_owner') and ctx.get('game_code') == game_code else SOURCE_PARTICIPANT
    if source == SOURCE_PARTICIPANT and not (data.get('participant_ref') or data.get('participantRef')):
        data['participant_ref'] = ctx.get('participant_ref') or _get_sid()
    try:
        intent = parse_intent(data, source=source)
    except GameSessionError as exc:
        emit('action_rejected', {'type': data.get('type'), 'error': exc.code, 'message': str(exc)})
        return

    transition = live.submit(intent)
    if transition is None:
        emit('action_ack', {'type': intent.type, 'intent_id': intent.intent_id, 'applied': None})
        return
    rejection = transition.rejection
    if rejection is None:
        emit('action_ack', {'type': intent.type, 'intent_id': intent.intent_id})
    elif isinstance(rejection, AlreadyClaimed):
        emit('claim_rejected', {'team_index': intent.team_index, 'error': rejection.code, 'message': str(rejection)})
    elif isinstance(rejection, DuplicateApplication):
        emit('action_ack', {'type': intent.type, 'intent_id': intent.intent_id, 'applied': False})
    else:
        emit('action_rejected', {'type': intent.type, 'error': rejection.code, 'message': str(rejection)})


def handle_ping(data):
    emit('pong', data or {})

# ---- Session owner lifecycle helpers ----

_sid_to_ctx: Dict[str, Dict[str, Any]] = {}
_owner_count: Dict[str, int] = {}
_end_deadline: Dict[str, float] = {}

def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore

def _release_owner(game_code: str) -> None:
    _owner_count[game_code] = max(0, _owner_count.get(game_code, 0) - 1)
    if _owner_count[game_code] > 0:
        return
    # In tests, end immediately for determinism; in prod, allow grace period
    if current_app.config.get('TESTING'):
        _end_session(game_code)
        return
    app = current_app._get_current_object()
    _schedule_end_if_no_owner(app, game_code, float(app.config.get('HOST_ABANDON_GRACE_SEC', 120)))

def _end_session(game_code: str) -> None:
    try:
        end_session(game_code, reason='abandoned')
    finally:
        _owner_count.pop(game_code, None)
        _end_deadline.pop(game_code, None)

def _schedule_end_if_no_owner(app, game_code: str, delay_sec: float) -> None:
    if _owner_count.get(game_code, 0) > 0:
        return
    _end_deadline[game_code] = time.time() + delay_sec
    app.logger.info(f"[abandon-timer-set] session={game_code} in={delay_sec:.0f}s")

    def _runner(code: str, deadline: float):
        sleep_for = max(0.0, deadline - time.time())
        if sleep_for:
            socketio.sleep(sleep_for)
        if _owner_count.get(code, 0) == 0 and _end_deadline.get(code) == deadline:
            with app.app_context():
                app.logger.info(f"[abandon-timer-fire] session={code}")
                _end_session(code)

    socketio.start_background_task(_runner, game_code, _end_deadline[game_code])

def _cancel_scheduled_end(game_code: str) -> None:
    _end_deadline.pop(game_code, None)


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = {
        'connect': handle_connect,
        'disconnect': handle_disconnect,
        'join_game': handle_join_game,
        'leave_game': handle_leave_game,
        'action': handle_action,
        'ping': handle_ping,
    }
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        for event, handler in handlers.items():
            socketio.on_event(event, handler, namespace=namespace)

from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user, login_required

from chestquiz.services.games.errors import (
    ContentExhausted,
    DuplicateApplication,
    GameSessionError,
    NotSessionHost,
    SessionNotFound,
)
from chestquiz.services.games.intents import SOURCE_HOST, SOURCE_PARTICIPANT, parse_intent
from chestquiz.services.games.sessions import (
    active_sessions_for,
    create_session,
    end_session,
    require_live,
    resume_session,
)


games = Blueprint('games', __name__)


def _error(exc: GameSessionError, status: int):
    return jsonify({'error': exc.code, 'message': str(exc)}), status


def _transition_response(live, transition):
    """Map an engine outcome onto an HTTP answer.

    Replays are not errors for the caller: they get the current snapshot with
    ``applied: false`` so retries are safe. An intent still queued behind a
    busy actor is answered 202 with ``applied: null``; the room broadcast
    carries its outcome.
    """
    if transition is None:
        return jsonify({'game_code': live.code, 'applied': None, 'pending': True}), 202
    rejection = transition.rejection
    if rejection is None:
        return jsonify(dict(live.payload(), applied=True)), 200
    if isinstance(rejection, DuplicateApplication):
        return jsonify(dict(live.payload(), applied=False, reason=rejection.code)), 200
    return jsonify({'error': rejection.code, 'message': str(rejection), 'applied': False}), 409


@games.route('/create', methods=['POST'])
@login_required
def create_game():
    data = request.get_json(silent=True) or {}
    content = data.get('content') or data.get('game_data') or {}
    try:
        number_of_teams = int(data.get('number_of_teams') or 0)
    except (TypeError, ValueError):
        return jsonify({'error': 'number_of_teams must be an integer'}), 400
    shuffle = data.get('shuffle_questions')
    try:
        live = create_session(
            current_app._get_current_object(),
            current_user.id,
            content,
            number_of_teams,
            shuffle=bool(shuffle) if shuffle is not None else None,
            game_name=data.get('game_name'),
        )
    except ContentExhausted as exc:
        current_app.logger.info(f"[create-rejected] host={current_user.id} {exc}")
        return _error(exc, 400)
    except ValueError as exc:
        return jsonify({'error': str(exc)}), 400
    return jsonify(dict(live.payload(), game_code=live.code)), 201


@games.route('/<string:game_code>/state', methods=['GET'])
def get_game_state(game_code):
    try:
        live = require_live(current_app._get_current_object(), game_code)
    except SessionNotFound as exc:
        return _error(exc, 404)
    payload = live.payload()
    # Include durations so clients can show countdowns
    payload['durations'] = {'question': int(current_app.config.get('QUESTION_DURATION_SEC', 30))}
    rules = live.actor.engine.rules
    payload['controls'] = {'score_step': rules.score_step, 'bet_increment': rules.bet_increment}
    return jsonify(payload), 200


@games.route('/<string:game_code>/host', methods=['POST'])
@login_required
def host_action(game_code):
    app = current_app._get_current_object()
    try:
        live = require_live(app, game_code)
        live.require_host(current_user.id)
        intent = parse_intent(request.get_json(silent=True), source=SOURCE_HOST)
    except SessionNotFound as exc:
        return _error(exc, 404)
    except NotSessionHost as exc:
        app.logger.info(f"[host-denied] session={game_code} user={current_user.id}")
        return _error(exc, 403)
    except GameSessionError as exc:
        return _error(exc, 400)
    transition = live.submit(intent)
    return _transition_response(live, transition)


@games.route('/<string:game_code>/actions', methods=['POST'])
def participant_action(game_code):
    app = current_app._get_current_object()
    try:
        live = require_live(app, game_code)
        intent = parse_intent(request.get_json(silent=True), source=SOURCE_PARTICIPANT)
    except SessionNotFound as exc:
        return _error(exc, 404)
    except GameSessionError as exc:
        return _error(exc, 400)
    transition = live.submit(intent)
    return _transition_response(live, transition)


@games.route('/<string:game_code>/resume', methods=['POST'])
@login_required
def resume_game(game_code):
    try:
        live = resume_session(current_app._get_current_object(), game_code, current_user.id)
    except SessionNotFound as exc:
        return _error(exc, 404)
    except NotSessionHost as exc:
        return _error(exc, 403)
    current_app.logger.info(f"[resume] session={live.code} host={current_user.id} phase={live.actor.state.phase}")
    return jsonify(dict(live.payload(), game_code=live.code)), 200


@games.route('/<string:game_code>/end', methods=['POST'])
@login_required
def end_game(game_code):
    app = current_app._get_current_object()
    try:
        live = require_live(app, game_code)
        live.require_host(current_user.id)
    except SessionNotFound as exc:
        return _error(exc, 404)
    except NotSessionHost as exc:
        return _error(exc, 403)
    end_session(live.code, reason='ended')
    return jsonify({'game_code': live.code, 'status': 'ended'}), 200


@games.route('/active', methods=['GET'])
@login_required
def list_active_games():
    return jsonify([row.to_dict() for row in active_sessions_for(current_user.id)]), 200

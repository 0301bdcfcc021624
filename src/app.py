"""
Flask web application for Kumite Bracket.

Thin JSON API over the bracket and scoring service, plus Server-Sent
Events streams that push score and bracket notifications to viewers.
"""
import os
import json
import logging
import time
from filelock import Timeout
from flask import Flask, Response, jsonify, request, stream_with_context, abort
from core.errors import BracketError
from core.bracket import get_bracket_metadata, get_round_name, MAX_PARTICIPANTS
from core.notifications import NotificationHub, event_channel, match_channel
from core.service import TournamentService
from core.storage import EventStore, DEFAULT_LOCK_TIMEOUT

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('BRACKET_DATA_DIR', os.path.join(BASE_DIR, 'data'))
LOCK_TIMEOUT = float(os.environ.get('BRACKET_LOCK_TIMEOUT', DEFAULT_LOCK_TIMEOUT))

# Seconds between SSE heartbeats when no notification arrives
STREAM_HEARTBEAT_SECONDS = 15

_hub = NotificationHub()
_service = None


def get_service() -> TournamentService:
    """Return the service for the current DATA_DIR, creating it on first use."""
    global _service
    if _service is None or _service.store.data_dir != DATA_DIR:
        _service = TournamentService(EventStore(DATA_DIR, lock_timeout=LOCK_TIMEOUT), _hub)
    return _service


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(400, description='No data provided')
    return data


@app.errorhandler(BracketError)
def handle_bracket_error(error):
    """Return taxonomy errors as structured JSON failures."""
    app.logger.warning(f'{request.method} {request.path} rejected: {error}')
    return jsonify({'success': False, 'error': str(error)}), error.status_code


@app.errorhandler(Timeout)
def handle_lock_timeout(error):
    app.logger.warning(f'{request.method} {request.path} timed out waiting for {error.lock_file}')
    return jsonify({'success': False, 'error': 'Match is busy, please retry'}), 503


@app.errorhandler(400)
def handle_bad_request(error):
    return jsonify({'success': False, 'error': error.description}), 400


@app.errorhandler(404)
def handle_not_found(error):
    return jsonify({'success': False, 'error': 'Not found'}), 404


@app.errorhandler(500)
def handle_server_error(error):
    app.logger.exception('Unhandled error')
    return jsonify({'success': False, 'error': 'Internal server error'}), 500


@app.route('/api/bracket-metadata')
def api_bracket_metadata():
    """Layout numbers for a bracket of ?participants=N, without generating it."""
    count = request.args.get('participants', type=int)
    if count is None or count < 1 or count > MAX_PARTICIPANTS:
        return jsonify({'success': False, 'error': f'participants must be between 1 and {MAX_PARTICIPANTS}'}), 400
    meta = get_bracket_metadata(count)
    meta['round_names'] = [get_round_name(r, meta['total_rounds'])
                           for r in range(1, meta['total_rounds'] + 1)]
    return jsonify(meta)


@app.route('/api/events', methods=['GET'])
def api_list_events():
    return jsonify([e.to_dict() for e in get_service().list_events()])


@app.route('/api/events', methods=['POST'])
def api_create_event():
    """Create an event. Requires: name. Optional: start_date, end_date, location."""
    data = _json_body()
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'success': False, 'error': 'Event name is required'}), 400
    try:
        event = get_service().create_event(
            name,
            start_date=data.get('start_date'),
            end_date=data.get('end_date'),
            location=data.get('location'),
        )
    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    return jsonify(event.to_dict()), 201


@app.route('/api/events/<event_id>')
def api_get_event(event_id):
    return jsonify(get_service().get_event(event_id))


@app.route('/api/events/<event_id>/competitors', methods=['POST'])
def api_register_competitors(event_id):
    """Register competitors to an event.

    Requires: competitors, a list of {id, name, affiliation?, status?}.
    """
    data = _json_body()
    competitors = data.get('competitors')
    if not isinstance(competitors, list) or not competitors:
        return jsonify({'success': False, 'error': 'competitors list is required'}), 400
    for item in competitors:
        if not isinstance(item, dict) or not str(item.get('id') or '').strip():
            return jsonify({'success': False, 'error': 'Each competitor needs an id'}), 400

    roster = get_service().register_competitors(event_id, competitors)
    return jsonify({
        'success': True,
        'message': f'Registered {len(competitors)} competitor(s)',
        'competitors': [c.to_dict() for c in roster],
    })


@app.route('/api/events/<event_id>/generate-bracket', methods=['POST'])
def api_generate_bracket(event_id):
    """Draw a new bracket for the event, replacing all of its matches and scores."""
    matches = get_service().generate_event_bracket(event_id)
    app.logger.info(f'Bracket generated for event {event_id}: {len(matches)} matches')
    return jsonify({'success': True, 'message': 'Bracket generated', 'matches': matches})


@app.route('/api/events/<event_id>/matches')
def api_event_matches(event_id):
    return jsonify(get_service().list_event_matches(event_id))


@app.route('/api/matches/<match_id>')
def api_get_match(match_id):
    return jsonify(get_service().get_match(match_id))


@app.route('/api/matches/<match_id>/scores', methods=['POST'])
def api_score_action(match_id):
    """Apply a scoring action. Requires: competitor_id, action."""
    data = _json_body()
    competitor_id = str(data.get('competitor_id') or '').strip()
    action = str(data.get('action') or '').strip()
    if not competitor_id or not action:
        return jsonify({'success': False, 'error': 'competitor_id and action are required'}), 400

    result = get_service().apply_score_action(match_id, competitor_id, action,
                                              performed_by=data.get('performed_by'))
    return jsonify({'success': True, 'match': result, 'scores': result['scores']})


@app.route('/api/matches/<match_id>/undo', methods=['POST'])
def api_undo(match_id):
    """Revert the most recent scoring action of the match."""
    result = get_service().undo_last_action(match_id)
    return jsonify({
        'success': True,
        'match': result,
        'scores': result['scores'],
        'message': f"Undid action: {result['undone_action']}",
    })


@app.route('/api/matches/<match_id>/winner', methods=['POST'])
def api_set_winner(match_id):
    """Declare the winner. Requires: winner_id, method."""
    data = _json_body()
    winner_id = str(data.get('winner_id') or '').strip()
    method = str(data.get('method') or '').strip()
    if not winner_id or not method:
        return jsonify({'success': False, 'error': 'winner_id and method are required'}), 400

    result = get_service().set_winner(match_id, winner_id, method)
    return jsonify({
        'success': True,
        'match': result,
        'method': method,
        'event_completed': result['event_completed'],
    })


def _stream(channel: str):
    """Server-Sent Events response relaying notifications on ``channel``."""
    subscription = _hub.subscribe(channel)

    def generate():
        # Send immediate connected event so client shows "Live" status right away
        yield "event: connected\ndata: ok\n\n"
        try:
            last_sent = time.time()
            while True:
                message = subscription.get(timeout=1)
                if message is not None:
                    last_sent = time.time()
                    yield f"event: {message['event']}\ndata: {json.dumps(message['data'])}\n\n"
                elif time.time() - last_sent >= STREAM_HEARTBEAT_SECONDS:
                    last_sent = time.time()
                    yield ": heartbeat\n\n"
        finally:
            subscription.close()

    return Response(
        stream_with_context(generate()),
        mimetype='text/event-stream',
        headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'},
    )


@app.route('/api/events/<event_id>/stream')
def api_event_stream(event_id):
    """SSE stream of every notification for an event."""
    get_service().store.load(event_id)
    return _stream(event_channel(event_id))


@app.route('/api/matches/<match_id>/stream')
def api_match_stream(match_id):
    """SSE stream of the notifications for a single match."""
    get_service().store.event_for_match(match_id)
    return _stream(match_channel(match_id))


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    app.run(debug=True, port=5000)

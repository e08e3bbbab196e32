# views/status.py

import logging
import time

from flask import Blueprint, current_app, jsonify, request

from utils.logging_setup import RECENT_LOGS

LOGGER = logging.getLogger(__name__)

status_bp = Blueprint('status', __name__)

PROCESS_STARTED_AT = time.time()


@status_bp.route('/api/health/ping', methods=['GET'])
def ping():
    return jsonify({
        'status': 'ok',
        'uptime': time.time() - PROCESS_STARTED_AT,
        'timestamp': time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime()),
    })


@status_bp.route('/api/status', methods=['GET'])
def get_status():
    """
    Returns cache sizes, the last publish time, refresh-cycle state and recent logs.
    """
    try:
        manager = current_app.extensions['title_cache']
        snapshots = current_app.extensions['title_snapshots']
        refresh = current_app.extensions.get('background_refresh')
        log_limit = request.args.get('logs', default=50, type=int)

        payload = {
            'status': 'ok',
            'cache_counts': {name: len(items) for name, items in snapshots.current.items()},
            'last_published_at': manager.last_published_at,
            'recent_logs': RECENT_LOGS.entries(limit=max(0, log_limit or 0)),
        }
        scheduler = getattr(refresh, 'scheduler', None)
        if scheduler is not None:
            payload['refresh'] = {
                'fetch_errors': scheduler.total_errors.count,
                'last_cycle_errors': dict(scheduler.last_cycle_errors),
            }
        return jsonify(payload)
    except Exception:
        LOGGER.exception("Error building status payload", extra={"source": "routes"})
        return jsonify({
            'status': 'error',
            'message': 'internal error'
        }), 500

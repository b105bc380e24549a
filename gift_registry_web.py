#!/usr/bin/env python3
"""
Gift Registry Web - JSON API for the gift registry.
Public endpoints list items and claim them; admin endpoints (guarded by the
``x-admin-code`` header) manage items, recipients and email diagnostics.
"""

import argparse
import hmac
import json
import logging
import queue
from functools import wraps
from typing import Callable, Dict, Iterator, List, Optional

from flask import Blueprint, Flask, Response, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

import database
import gift_registry
from email_notifier import EmailNotifier
from registry.errors import RegistryError, StoreError, UnauthorizedError
from registry.services import (
    ChangeFeed, ClaimService, EmailDiagnosticsService, ItemService,
    RecipientService,
)

web_logger = logging.getLogger('gift_registry.web')

ADMIN_HEADER = 'x-admin-code'
DEFAULT_HEARTBEAT_SECONDS = 25
EXTENSION_KEY = 'gift_registry'

registry_bp = Blueprint('registry', __name__)


# ===========================================================================================
# Helpers
# ===========================================================================================

def _services() -> Dict:
    return current_app.extensions[EXTENSION_KEY]


def _json_body() -> Dict:
    """Request JSON as a dict; malformed or missing bodies become ``{}``."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _open_db():
    db = next(database.get_db())
    if db is None:
        raise StoreError('Database not available')
    return db


def is_admin_code(provided: Optional[str], expected: Optional[str]) -> bool:
    """Exact, constant-time comparison of the admin shared secret.

    An empty expected value disables the admin API entirely.
    """
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode('utf-8'), expected.encode('utf-8'))


def require_admin(f):
    """Decorator to require the admin shared secret on this request"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        provided = request.headers.get(ADMIN_HEADER)
        if not is_admin_code(provided, current_app.config.get('ADMIN_CODE')):
            web_logger.warning('Rejected admin request to %s from %s',
                               request.path, request.remote_addr)
            raise UnauthorizedError()
        return f(*args, **kwargs)
    return decorated_function


def item_event_stream(feed: ChangeFeed, load_items: Callable[[], List[Dict]],
                      heartbeat: float = DEFAULT_HEARTBEAT_SECONDS) -> Iterator[str]:
    """Yield Server-Sent Events carrying the full item list.

    One ``items`` event is sent immediately, then one after every change
    published on *feed*; each re-fetches the whole list.  A ``heartbeat``
    event is sent after *heartbeat* idle seconds to keep proxies from
    closing the connection.
    """
    sub_queue = feed.subscribe()
    try:
        yield f"event: items\ndata: {json.dumps(load_items())}\n\n"
        while True:
            try:
                sub_queue.get(timeout=heartbeat)
            except queue.Empty:
                yield "event: heartbeat\ndata: {}\n\n"
                continue
            # Collapse bursts into a single re-fetch.
            while True:
                try:
                    sub_queue.get_nowait()
                except queue.Empty:
                    break
            yield f"event: items\ndata: {json.dumps(load_items())}\n\n"
    finally:
        feed.unsubscribe(sub_queue)


def _load_items_for_stream(item_service: ItemService) -> List[Dict]:
    db = _open_db()
    try:
        return item_service.list(db)
    finally:
        db.close()


# ===========================================================================================
# Public endpoints
# ===========================================================================================

@registry_bp.route('/status')
def api_status():
    """Get application status"""
    db = next(database.get_db())
    try:
        db_ok = database.check_connection(db)
    finally:
        if db:
            db.close()
    return jsonify({
        'ok': db_ok,
        'database': db_ok,
        'emailConfigured': _services()['notifier'].configured,
    })


@registry_bp.route('/items', methods=['GET'])
def api_items():
    """All items, newest first"""
    db = _open_db()
    try:
        return jsonify(_services()['items'].list(db))
    finally:
        db.close()


@registry_bp.route('/items/events')
def api_item_events():
    """Server-Sent Events stream of the item list.

    Clients connect once and receive the full list again whenever an item
    is created, deleted, claimed or released.
    """
    services = _services()
    item_service = services['items']
    heartbeat = current_app.config.get('SSE_HEARTBEAT_SECONDS', DEFAULT_HEARTBEAT_SECONDS)
    stream = item_event_stream(
        services['feed'],
        lambda: _load_items_for_stream(item_service),
        heartbeat=heartbeat,
    )
    return Response(
        stream,
        mimetype='text/event-stream',
        headers={
            'Cache-Control': 'no-cache',
            'X-Accel-Buffering': 'no',
        },
    )


@registry_bp.route('/config/recipients', methods=['GET'])
def api_recipients():
    """Currently configured owner recipients"""
    db = _open_db()
    try:
        return jsonify({'emails': _services()['recipients'].get_configured(db)})
    finally:
        db.close()


@registry_bp.route('/claim', methods=['POST'])
def api_claim():
    """Reserve an item: body ``{id, email}``"""
    data = _json_body()
    db = _open_db()
    try:
        result = _services()['claims'].claim(db, data.get('id'), data.get('email'))
    finally:
        db.close()
    return jsonify(result.to_dict())


# ===========================================================================================
# Admin endpoints
# ===========================================================================================

@registry_bp.route('/admin/items', methods=['POST'])
@require_admin
def api_admin_create_item():
    """Create an item: body ``{name|item, url?, price?, size?, notes?}``"""
    db = _open_db()
    try:
        item = _services()['items'].create(db, _json_body())
    finally:
        db.close()
    return jsonify(item)


@registry_bp.route('/admin/items', methods=['DELETE'])
@require_admin
def api_admin_delete_item():
    """Delete an item: body ``{id}`` or ``?id=``"""
    item_id = _json_body().get('id') or request.args.get('id')
    db = _open_db()
    try:
        _services()['items'].delete(db, item_id)
    finally:
        db.close()
    return jsonify({'ok': True})


@registry_bp.route('/admin/config', methods=['POST'])
@require_admin
def api_admin_config():
    """Replace the owner recipient list: body ``{emails}``"""
    db = _open_db()
    try:
        normalized = _services()['recipients'].save(db, _json_body().get('emails'))
    finally:
        db.close()
    return jsonify({'ok': True, 'emails': normalized})


@registry_bp.route('/admin/emails', methods=['POST'])
@require_admin
def api_admin_emails():
    """Email diagnostics: body ``{action: "test"|"status", ...}``"""
    data = _json_body()
    return jsonify(_services()['diagnostics'].run(data.get('action'), data))


@registry_bp.route('/admin/debug-email', methods=['GET'])
@require_admin
def api_admin_debug_email():
    """Send a plain test message to ``?to=``"""
    return jsonify(_services()['diagnostics'].debug_send(request.args.get('to')))


@registry_bp.route('/openapi.json')
def api_openapi_spec():
    """Return the OpenAPI 3.0 description of this API"""
    from openapi_spec import build_spec
    return jsonify(build_spec(server_url=request.host_url.rstrip('/')))


# ===========================================================================================
# Error handling
# ===========================================================================================

def _handle_registry_error(exc: RegistryError):
    if exc.status_code >= 500:
        web_logger.error('%s %s failed: %s', request.method, request.path, exc.message)
    return jsonify({'error': exc.message}), exc.status_code


def _handle_unexpected_error(exc: Exception):
    if isinstance(exc, HTTPException):
        return jsonify({'error': exc.description}), exc.code
    web_logger.exception('Unhandled error on %s %s', request.method, request.path)
    return jsonify({'error': str(exc) or 'Internal Error'}), 500


# ===========================================================================================
# Application factory
# ===========================================================================================

def create_app(config: Optional[Dict] = None) -> Flask:
    """Build the Flask application.

    Args:
        config: Application config dict as returned by
                :func:`gift_registry.load_config`.  Loaded from the
                environment when omitted.
    """
    if config is None:
        config = gift_registry.load_config()
    gift_registry.setup_logging(config.get('log_level', 'INFO'))

    database.configure(config.get('database_url'))
    if database.init_db():
        web_logger.info('Database initialized successfully')
    else:
        web_logger.warning('Database initialization reported failure')

    app = Flask(__name__)
    app.config['ADMIN_CODE'] = config.get('admin_code', '')
    app.config['SSE_HEARTBEAT_SECONDS'] = DEFAULT_HEARTBEAT_SECONDS

    feed = ChangeFeed()
    notifier = EmailNotifier(config)
    recipients = RecipientService(database, fallback=config.get('recipients_to', ''))
    app.extensions[EXTENSION_KEY] = {
        'feed': feed,
        'notifier': notifier,
        'recipients': recipients,
        'items': ItemService(database, change_feed=feed),
        'claims': ClaimService(database, notifier, recipients, change_feed=feed),
        'diagnostics': EmailDiagnosticsService(notifier),
    }

    # Served at the root and under /api.
    app.register_blueprint(registry_bp)
    app.register_blueprint(registry_bp, url_prefix='/api', name='registry_api')
    app.register_error_handler(RegistryError, _handle_registry_error)
    app.register_error_handler(Exception, _handle_unexpected_error)

    if not app.config['ADMIN_CODE']:
        web_logger.warning('ADMIN_CODE is not set; admin endpoints will reject every request')
    if not notifier.configured:
        web_logger.warning('RESEND_API_KEY is not set; claims will fail until email is configured')
    return app


def main():
    """Main entry point for the web server"""
    parser = argparse.ArgumentParser(description='Gift Registry web server')
    parser.add_argument('--config', default='config.json', help='Path to config file')
    parser.add_argument('--host', default='127.0.0.1')
    parser.add_argument('--port', type=int, default=5000)
    args = parser.parse_args()

    app = create_app(gift_registry.load_config(args.config))
    web_logger.info('Gift Registry listening on http://%s:%s', args.host, args.port)
    app.run(host=args.host, port=args.port, debug=False, threaded=True)


if __name__ == "__main__":
    main()

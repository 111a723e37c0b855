"""HTTP surface for roots and claims.

The service is expected to sit behind a gateway that authenticates the
caller and forwards its address in `X-Caller-Address`. Admin writes must
also carry `X-Admin-Signature`, an HMAC over `<book_id>:` followed by the raw
request body, made with the deployment key (see `crypto.sign_bytes`).
"""
import logging
from flask import Flask, request, jsonify
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from . import config, crypto, db
from .errors import BookClaimError, Unauthorized
from .registry import SqliteRootRegistry
from .service import from_settings, metrics_registry

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config['SERVICE'] = None
app.config['ADMIN_KEY_PATH'] = None

CALLER_HEADER = 'X-Caller-Address'
SIGNATURE_HEADER = 'X-Admin-Signature'
INVALID_BODY = {'error': 'invalid-body', 'detail': 'request body must be a JSON object'}


def admin_signing_payload(book_id, body: bytes) -> bytes:
    """Bytes an admin signs for a root update: the book id bound to the raw body."""
    return f'{book_id}:'.encode() + body


def get_service():
    svc = app.config.get('SERVICE')
    if svc is None:
        settings = config.get_settings()
        svc = app.config['SERVICE'] = from_settings(settings)
        if app.config.get('ADMIN_KEY_PATH') is None:
            app.config['ADMIN_KEY_PATH'] = settings['key_path']
    return svc


@app.errorhandler(BookClaimError)
def handle_claim_error(e):
    return jsonify(e.to_dict()), e.status


@app.route('/admin/books/<int:book_id>/root', methods=['POST'])
def admin_set_root(book_id):
    svc = get_service()
    body = request.get_data()
    if not crypto.verify_bytes(admin_signing_payload(book_id, body), request.headers.get(SIGNATURE_HEADER), app.config.get('ADMIN_KEY_PATH')):
        logger.warning('Bad admin signature on root update for book %s', book_id)
        raise Unauthorized('missing or invalid admin signature')
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return INVALID_BODY, 400
    root = data.get('root')
    if not root:
        return {'error': 'root required'}, 400
    try:
        svc.set_book_merkle_root(book_id, root, request.headers.get(CALLER_HEADER))
    except BookClaimError:
        raise
    except ValueError as e:
        return {'error': 'invalid-root', 'detail': str(e)}, 400
    return {'book_id': book_id, 'root': svc.get_book_merkle_root(book_id)}


@app.route('/books/<int:book_id>/root')
def get_root(book_id):
    return {'book_id': book_id, 'root': get_service().get_book_merkle_root(book_id)}


@app.route('/books/<int:book_id>/claim', methods=['POST'])
def claim(book_id):
    svc = get_service()
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return INVALID_BODY, 400
    proof = data.get('proof')
    if not isinstance(proof, list):
        return {'error': 'proof required', 'detail': 'proof must be a list of hex digests'}, 400
    result = svc.claim(request.headers.get(CALLER_HEADER, ''), book_id, proof)
    out = result.to_dict()
    if not result.minted:
        out['error'] = 'mint-failed'
        return out, 502
    return out


@app.route('/books/<int:book_id>/claims/<address>')
def has_claimed(book_id, address):
    return {'book_id': book_id, 'address': address, 'claimed': get_service().has_claimed(address, book_id)}


@app.route('/health')
def health():
    svc = get_service()
    if isinstance(svc.registry, SqliteRootRegistry):
        conn = db.get_conn(svc.registry.db_path)
        try:
            conn.execute('SELECT 1').fetchone()
        except Exception:
            logger.exception('Health check failed')
            return jsonify({'status': 'error'}), 500
        finally:
            conn.close()
    return jsonify({'status': 'ok'})


@app.route('/metrics')
def metrics():
    return generate_latest(metrics_registry), 200, {'Content-Type': CONTENT_TYPE_LATEST}

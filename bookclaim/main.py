import argparse
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from . import config
from .allowlist import read_addresses, build_allowlist, write_distribution, load_distribution, proof_for
from .crypto import leaf_hash
from .errors import BookClaimError
from .merkle import verify_proof
from .service import from_settings


def setup_logging(log_dir):
    # root logger with rotating file handler, attached once per log file
    logdir = Path(log_dir)
    logdir.mkdir(parents=True, exist_ok=True)
    logfile = os.path.abspath(str(logdir / 'bookclaim.log'))
    root = logging.getLogger()
    root.setLevel(logging.INFO)
    for h in root.handlers:
        if isinstance(h, RotatingFileHandler) and h.baseFilename == logfile:
            return h
    handler = RotatingFileHandler(logfile, maxBytes=5_000_000, backupCount=5)
    handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s'))
    root.addHandler(handler)
    return handler


def build_parser():
    parser = argparse.ArgumentParser(prog='bookclaim')
    sub = parser.add_subparsers(dest='cmd', required=True)
    bp = sub.add_parser('build', help='Build root and proofs from an address list')
    bp.add_argument('addresses')
    bp.add_argument('--category', type=int)
    bp.add_argument('--scope', choices=config.LEAF_SCOPES, default=None, help='Leaf scope (defaults to configured)')
    bp.add_argument('--out', default='allowlist.json')
    pp = sub.add_parser('proof')
    pp.add_argument('distribution')
    pp.add_argument('address')
    vp = sub.add_parser('verify')
    vp.add_argument('distribution')
    vp.add_argument('address')
    sr = sub.add_parser('set-root')
    sr.add_argument('category', type=int)
    sr.add_argument('root')
    sr.add_argument('--caller', required=True, help='Admin address performing the update')
    gr = sub.add_parser('get-root')
    gr.add_argument('category', type=int)
    hc = sub.add_parser('has-claimed')
    hc.add_argument('category', type=int)
    hc.add_argument('address')
    cp = sub.add_parser('claim')
    cp.add_argument('category', type=int)
    cp.add_argument('address')
    cp.add_argument('distribution', help='Distribution file holding the proof')
    ap = sub.add_parser('add-admin')
    ap.add_argument('address')
    webp = sub.add_parser('web')
    webp.add_argument('--host', default='127.0.0.1')
    webp.add_argument('--port', type=int, default=1212)
    return parser


def run(args, settings) -> int:
    if args.cmd == 'build':
        dist = build_allowlist(read_addresses(args.addresses), category=args.category,
                               leaf_scope=args.scope or settings['leaf_scope'])
        write_distribution(dist, args.out)
        print('root', dist['root'])
        print('members', len(dist['claims']), '->', args.out)
        return 0
    if args.cmd == 'proof':
        print(json.dumps(proof_for(load_distribution(args.distribution), args.address), indent=2))
        return 0
    if args.cmd == 'verify':
        dist = load_distribution(args.distribution)
        scope_category = dist.get('category') if dist.get('leaf_scope') == 'category' else None
        try:
            proof = proof_for(dist, args.address)
        except KeyError:
            proof = []
        ok = verify_proof(leaf_hash(args.address, scope_category), proof, dist['root'])
        print('valid' if ok else 'invalid')
        return 0 if ok else 1
    if args.cmd == 'add-admin':
        config.add_admin(args.address)
        print('admin added', args.address)
        return 0
    if args.cmd == 'web':
        from .api import app
        app.run(host=args.host, port=args.port)
        return 0
    svc = from_settings(settings)
    if args.cmd == 'set-root':
        svc.set_book_merkle_root(args.category, args.root, args.caller)
        print('root set for category', args.category)
    elif args.cmd == 'get-root':
        print(svc.get_book_merkle_root(args.category))
    elif args.cmd == 'has-claimed':
        claimed = svc.has_claimed(args.address, args.category)
        when = svc.ledger.claimed_at(args.address, args.category) if claimed else None
        print('claimed at ' + when if when else ('claimed' if claimed else 'not claimed'))
    elif args.cmd == 'claim':
        proof = proof_for(load_distribution(args.distribution), args.address)
        result = svc.claim(args.address, args.category, proof)
        print(json.dumps(result.to_dict(), indent=2, default=str))
        return 0 if result.minted else 1
    return 0


def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        settings = config.get_settings()
        setup_logging(settings['log_dir'])
        return run(args, settings)
    except BookClaimError as e:
        print(f'error: {e.code}: {e}', file=sys.stderr)
        return 1
    except (KeyError, ValueError) as e:
        print(f'error: {e}', file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())

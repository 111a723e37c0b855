import os
import json
from pathlib import Path

CFG_PATH = Path(os.environ.get('BOOKCLAIM_CONFIG', 'bookclaim_config.json'))

DEFAULTS = {
    'db_path': 'bookclaim.db',
    'log_dir': 'logs',
    'key_path': 'keys/admin_hmac.key',
    'admins': [],
    'leaf_scope': 'global',
    'minter_url': None,
}

LEAF_SCOPES = ('global', 'category')

# environment variable -> settings key
ENV_OVERRIDES = {
    'BOOKCLAIM_DB_PATH': 'db_path',
    'BOOKCLAIM_LOG_DIR': 'log_dir',
    'BOOKCLAIM_KEY_PATH': 'key_path',
    'BOOKCLAIM_ADMINS': 'admins',
    'BOOKCLAIM_LEAF_SCOPE': 'leaf_scope',
    'BOOKCLAIM_MINTER_URL': 'minter_url',
}


def read_config(path: Path = None) -> dict:
    path = Path(path) if path else CFG_PATH
    if not path.exists():
        return {}
    try:
        return json.loads(path.read_text(encoding='utf-8'))
    except ValueError as e:
        raise ValueError(f'config file {path} is not valid JSON: {e}')


def write_config(d: dict, path: Path = None):
    path = Path(path) if path else CFG_PATH
    path.write_text(json.dumps(d, indent=2), encoding='utf-8')


def get_settings(path: Path = None) -> dict:
    """Defaults, overlaid by the JSON config file, overlaid by the environment."""
    settings = dict(DEFAULTS)
    settings.update(read_config(path))
    for env, key in ENV_OVERRIDES.items():
        val = os.environ.get(env)
        if val is None:
            continue
        if key == 'admins':
            val = [a.strip() for a in val.split(',') if a.strip()]
        settings[key] = val
    if settings['leaf_scope'] not in LEAF_SCOPES:
        raise ValueError(f"leaf_scope must be one of {LEAF_SCOPES}, got {settings['leaf_scope']!r}")
    return settings


def add_admin(address: str, path: Path = None):
    cfg = read_config(path)
    admins = cfg.get('admins', [])
    if address.lower() not in [a.lower() for a in admins]:
        admins.append(address)
    cfg['admins'] = admins
    write_config(cfg, path)

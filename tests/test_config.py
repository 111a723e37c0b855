import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
import pytest
from bookclaim import config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for env in config.ENV_OVERRIDES:
        monkeypatch.delenv(env, raising=False)


def test_defaults_without_file(tmp_path):
    settings = config.get_settings(tmp_path / 'missing.json')
    assert settings == config.DEFAULTS


def test_file_then_env_override(tmp_path, monkeypatch):
    path = tmp_path / 'cfg.json'
    config.write_config({'db_path': 'file.db', 'leaf_scope': 'category', 'admins': ['0xaa']}, path)
    settings = config.get_settings(path)
    assert settings['db_path'] == 'file.db'
    assert settings['leaf_scope'] == 'category'
    monkeypatch.setenv('BOOKCLAIM_DB_PATH', 'env.db')
    monkeypatch.setenv('BOOKCLAIM_ADMINS', '0xaa, 0xbb,')
    settings = config.get_settings(path)
    assert settings['db_path'] == 'env.db'
    assert settings['admins'] == ['0xaa', '0xbb']


def test_bad_leaf_scope(tmp_path, monkeypatch):
    monkeypatch.setenv('BOOKCLAIM_LEAF_SCOPE', 'both')
    with pytest.raises(ValueError):
        config.get_settings(tmp_path / 'missing.json')


def test_invalid_json(tmp_path):
    path = tmp_path / 'cfg.json'
    path.write_text('{not json')
    with pytest.raises(ValueError):
        config.read_config(path)

import os

import pytest

from services.config import APP_DIR, ServerConfig, env_bool, env_int, load_config


def test_defaults():
    cfg = load_config({})
    assert cfg.environment == "development"
    assert not cfg.is_production
    assert cfg.data_dir == os.path.join(APP_DIR, "data")
    assert cfg.host == "0.0.0.0"
    assert cfg.port == 3001
    assert cfg.zip_level == 9
    assert cfg.chunk_size == 64 * 1024
    assert cfg.seed_static is True
    assert cfg.log_dir is None


def test_production_serves_slash_data():
    cfg = load_config({"FILETREE_ENV": "production"})
    assert cfg.is_production
    assert cfg.data_dir == "/data"


def test_unknown_environment_falls_back_to_development():
    assert load_config({"FILETREE_ENV": "staging"}).environment == "development"


def test_port_fallback_and_override():
    assert load_config({"PORT": "8080"}).port == 8080
    assert load_config({"PORT": "8080", "FILETREE_PORT": "9090"}).port == 9090
    assert load_config({"FILETREE_PORT": "not-a-port"}).port == 3001


@pytest.mark.parametrize("raw, expected", [("15", 9), ("-3", 0), ("5", 5), ("", 9)])
def test_zip_level_is_clamped(raw, expected):
    assert load_config({"FILETREE_ZIP_LEVEL": raw}).zip_level == expected


def test_chunk_size_has_a_floor():
    assert load_config({"FILETREE_CHUNK_KB": "0"}).chunk_size == 1024


def test_yaml_file_with_env_overrides(tmp_path):
    cfg_file = tmp_path / "filetree.yaml"
    cfg_file.write_text(
        "environment: production\n"
        f"data_dir: {tmp_path / 'served'}\n"
        "port: 4000\n"
        "zip_level: 3\n"
        "chunk_kb: 8\n"
        "seed_static: false\n"
    )
    cfg = load_config({"FILETREE_CONFIG": str(cfg_file), "FILETREE_PORT": "5000"})
    assert cfg.environment == "production"
    assert cfg.data_dir == str(tmp_path / "served")
    assert cfg.port == 5000
    assert cfg.zip_level == 3
    assert cfg.chunk_size == 8 * 1024
    assert cfg.seed_static is False


def test_yaml_file_must_be_a_mapping(tmp_path):
    cfg_file = tmp_path / "bad.yaml"
    cfg_file.write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        load_config({"FILETREE_CONFIG": str(cfg_file)})


def test_env_helpers():
    env = {"A": "yes", "B": "off", "C": "maybe", "N": "12.7", "X": "abc"}
    assert env_bool("A", False, env) is True
    assert env_bool("B", True, env) is False
    assert env_bool("C", True, env) is True
    assert env_bool("missing", False, env) is False
    assert env_int("N", 0, env) == 12
    assert env_int("X", 7, env) == 7


def test_config_is_immutable():
    cfg = ServerConfig(data_dir="/srv")
    with pytest.raises(AttributeError):
        cfg.port = 1

from recedit.config.config import get_default_config, load_config, load_presets, write_default_config


def test_defaults_cover_editor_settings():
    config = get_default_config()
    assert config["history_limit"] == 50
    assert config["skip_check_interval_sec"] == 0.05
    assert config["max_playback_rate"] == 8.0
    assert config["autosave_debounce_sec"] == 5.0


def test_bundled_presets_load():
    presets = load_presets()
    assert presets["zoom"]["scale"] == 1.5
    assert presets["speed"]["speed"] == 2.0
    assert presets["annotation"]["length_sec"] == 3


def test_toml_file_overrides_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("RECEDIT_HISTORY_LIMIT", raising=False)
    path = tmp_path / "recedit.toml"
    path.write_text('history_limit = 10\nprojects_dir = "~/recordings"\n', encoding="utf-8")
    _, config = load_config(config_file=str(path), env_file=str(tmp_path / "missing.env"))
    assert config["history_limit"] == 10
    assert not config["projects_dir"].startswith("~")
    assert config["frame_rate"] == 30


def test_env_overrides_file(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("RECEDIT_MAX_PLAYBACK_RATE=4\nRECEDIT_FRAME_RATE=60\n", encoding="utf-8")
    monkeypatch.setenv("RECEDIT_FRAME_RATE", "24")
    _, config = load_config(config_file=str(tmp_path / "none.toml"), env_file=str(env_file))
    assert config["max_playback_rate"] == 4.0
    assert config["frame_rate"] == 24


def test_invalid_env_value_is_ignored(tmp_path, monkeypatch):
    monkeypatch.setenv("RECEDIT_HISTORY_LIMIT", "lots")
    _, config = load_config(config_file=str(tmp_path / "none.toml"), env_file=str(tmp_path / "missing.env"))
    assert config["history_limit"] == 50


def test_write_default_config_round_trips(tmp_path):
    path = write_default_config(str(tmp_path / "conf" / "recedit.toml"))
    _, config = load_config(config_file=path, env_file=str(tmp_path / "missing.env"))
    assert config["server_port"] == 8000

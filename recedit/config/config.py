import logging
import os

import toml
import yaml
from dotenv import dotenv_values

logger = logging.getLogger(__name__)

ENV_PREFIX = "RECEDIT_"


def _project_root():
    # recedit/config/config.py -> recedit/config -> recedit -> repo root
    return os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def get_default_config():
    """Get default configuration"""
    project_root = _project_root()

    return {
        # Storage
        "projects_dir": os.path.join(project_root, "projects"),

        # Logging
        "log_file": os.path.join(project_root, "logs", "recedit.log"),
        "log_level": "INFO",
        "log_max_bytes": 5 * 1024 * 1024,
        "log_backup_count": 3,

        # Editing
        "history_limit": 50,
        "duration_tolerance_sec": 0.1,

        # Playback
        "skip_check_interval_sec": 0.05,
        "max_playback_rate": 8.0,
        "skip_seconds": 5.0,
        "frame_rate": 30,

        # Autosave
        "autosave_debounce_sec": 5.0,
        "autosave_interval_sec": 10.0,

        # Server
        "server_host": "127.0.0.1",
        "server_port": 8000,

        # Tool presets (merged from presets.yaml)
        "presets": {},
    }


def load_presets(path=None):
    """
    Load timeline tool presets from YAML. Missing or broken files fall back to
    an empty dict so the editor can still run with built-in defaults.
    """
    path = path or os.path.join(os.path.dirname(os.path.abspath(__file__)), "presets.yaml")
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load presets from {path}: {e}")
        return {}


def _coerce(value, default):
    if isinstance(default, bool):
        return str(value).strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return value


def load_env_overrides(config, env_file=None):
    """
    Override scalar config keys from RECEDIT_* variables. Values from the
    process environment win over the ones in the .env file.
    """
    env_file = env_file or os.path.join(_project_root(), ".env")
    env_vars = {}
    if os.path.exists(env_file):
        env_vars.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    env_vars.update(os.environ)

    for key, default in list(config.items()):
        if isinstance(default, dict):
            continue
        env_key = ENV_PREFIX + key.upper()
        if env_key in env_vars:
            try:
                config[key] = _coerce(env_vars[env_key], default)
            except ValueError:
                logger.warning(f"Ignoring invalid value for {env_key}: {env_vars[env_key]!r}")
    return config


def write_default_config(path):
    """Write the default configuration as TOML (presets live in YAML)."""
    config = get_default_config()
    config.pop("presets", None)
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        toml.dump(config, f)
    return path


def load_config(config_file=None, env_file=None):
    """Load configuration from TOML file, presets YAML and environment"""
    config_file = config_file or os.environ.get(
        ENV_PREFIX + "CONFIG_FILE",
        os.path.join(_project_root(), "recedit.toml"),
    )

    config = get_default_config()
    if os.path.exists(config_file):
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                file_config = toml.load(f)
            # Merge with defaults to ensure all required fields exist
            for key, value in file_config.items():
                config[key] = value
        except (OSError, toml.TomlDecodeError) as e:
            logger.warning(f"Failed to load config from {config_file}: {e}")

    config["presets"] = load_presets()
    load_env_overrides(config, env_file=env_file)
    config["projects_dir"] = os.path.expanduser(config["projects_dir"])
    config["log_file"] = os.path.expanduser(config["log_file"])
    return config_file, config


CONFIG_FILE, config = load_config()

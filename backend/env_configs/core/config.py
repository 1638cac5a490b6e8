from pathlib import Path
from pydantic import BaseModel
import os
from env_configs import __version__
# Optionally load a repo-level config.env file so deployments can keep the
# developer IP list and ranges out of process manager definitions. Copy
# `backend/config.sample.env` to `backend/config.env`.
try:
    from dotenv import load_dotenv
    # Allow explicit override of config file path
    cfg_override = os.getenv('ENV_CONFIGS_CONFIG_FILE')
    candidates = []
    if cfg_override:
        candidates.append(Path(cfg_override))

    # Prefer the working directory (where the process manager runs the server)
    candidates.append(Path.cwd() / 'config.env')
    candidates.append(Path.cwd() / 'backend' / 'config.env')

    for p in candidates:
        try:
            if p and p.exists():
                load_dotenv(str(p))
                break
        except Exception:
            continue
except Exception:
    # If python-dotenv isn't available or load fails, fall back to env vars
    pass

"""Central configuration.

Env vars:
  ENV_CONFIGS_DATA_DIR        - directory for writable application data (created)
  ENV_CONFIGS_DB_PATH         - explicit path to SQLite db file (overrides DATA dir)
  ENV_CONFIGS_DATABASE_URL    - full SQLAlchemy URL (overrides DB path)
  ENV_CONFIGS_ENVIRONMENT     - local | staging | live
  ENV_CONFIGS_DEVELOPER_IPS   - comma separated exact-match addresses
  ENV_CONFIGS_IP_RANGES       - comma separated `low-high` IPv4 ranges
  ENV_CONFIGS_PLUGINS_TO_ACTIVATE - comma separated `name[:network]` entries
  ENV_CONFIGS_PLUGIN_CHECK_ON - environments whose config pass schedules the plugin check
  ENV_CONFIGS_VERSION         - override reported version
"""

_diagnostics: list[str] = []


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str) -> list[str]:
    raw = os.getenv(name) or ''
    return [part.strip() for part in raw.split(',') if part.strip()]


def _env_ranges(name: str) -> list[tuple[str, str]]:
    ranges: list[tuple[str, str]] = []
    for item in _env_list(name):
        low, sep, high = item.partition('-')
        if not sep:
            # a single address is a range of one
            high = low
        ranges.append((low.strip(), high.strip()))
    return ranges


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        _diagnostics.append(f"invalid_float name={name} using_default={default}")
        return default


env_data_dir = os.getenv('ENV_CONFIGS_DATA_DIR')

# Build ordered candidate list (dedup while preserving order)
_candidates = []
for c in [env_data_dir, str(Path.cwd() / 'data')]:
    if c and c not in _candidates:
        _candidates.append(c)

data_dir = None
for cand in _candidates:
    p = Path(cand)
    try:
        p.mkdir(parents=True, exist_ok=True)
        data_dir = p
        _diagnostics.append(f"selected_data_dir={p} (candidate)")
        break
    except Exception as e:  # pragma: no cover
        _diagnostics.append(f"candidate_failed path={p} err={e}")
        continue

if data_dir is None:
    data_dir = Path(__file__).resolve().parent.parent.parent / 'data'
    try:
        data_dir.mkdir(parents=True, exist_ok=True)
        _diagnostics.append(f"fallback_package_dir={data_dir}")
    except Exception as e:  # pragma: no cover
        _diagnostics.append(f"fatal_failed_create_fallback path={data_dir} err={e}")

db_path = os.getenv('ENV_CONFIGS_DB_PATH')
if db_path:
    db_path = Path(db_path)
else:
    db_path = data_dir / 'env_configs.db'

plugins_dir = os.getenv('ENV_CONFIGS_PLUGINS_DIR')
if plugins_dir:
    plugins_dir = Path(plugins_dir)
else:
    plugins_dir = data_dir / 'plugins'

class Settings(BaseModel):
    app_name: str = 'Environment Configs'
    database_url: str = os.getenv('ENV_CONFIGS_DATABASE_URL', f'sqlite:///{db_path}')
    api_v1_prefix: str = '/api/v1'
    version: str = os.getenv('ENV_CONFIGS_VERSION', __version__)
    data_dir: Path = data_dir
    db_file: Path = db_path
    plugins_dir: Path = plugins_dir
    # Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = os.getenv('ENV_CONFIGS_LOG_LEVEL', 'INFO')
    # Which tier this process runs in; empty means no configuration branch runs
    environment: str = os.getenv('ENV_CONFIGS_ENVIRONMENT', '').strip().lower()
    developer_ips: list[str] = _env_list('ENV_CONFIGS_DEVELOPER_IPS')
    ip_ranges: list[tuple[str, str]] = _env_ranges('ENV_CONFIGS_IP_RANGES')
    plugins_to_activate: list[str] = _env_list('ENV_CONFIGS_PLUGINS_TO_ACTIVATE')
    plugin_check_on: list[str] = [e.lower() for e in _env_list('ENV_CONFIGS_PLUGIN_CHECK_ON')]
    site_url: str = os.getenv('ENV_CONFIGS_SITE_URL', 'http://127.0.0.1:4153').rstrip('/')
    cron_spawn: bool = _env_flag('ENV_CONFIGS_CRON_SPAWN', True)
    cron_timeout: float = _env_float('ENV_CONFIGS_CRON_TIMEOUT', 0.01)
    api_key: str | None = os.getenv('ENV_CONFIGS_API_KEY') or None
    diagnostics: list[str] | None = _diagnostics

settings = Settings()

import sys
import pathlib
import os
import tempfile
import pytest

# Settings are read at import time: point data at a scratch dir and keep the
# cron self-request from firing before anything imports env_configs.
os.environ.setdefault('ENV_CONFIGS_DATA_DIR', tempfile.mkdtemp(prefix='env_configs_test_'))
os.environ.setdefault('ENV_CONFIGS_CRON_SPAWN', '0')
os.environ.setdefault('ENV_CONFIGS_LOG_LEVEL', 'DEBUG')

# Ensure backend root (containing 'env_configs' package) is on sys.path
BACKEND_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from env_configs.core.config import settings
from env_configs.core.environment import EnvironmentPredicates
from env_configs.core.hooks import HookRegistry
from env_configs.cron.scheduler import EventScheduler
from env_configs.db.session import Base
from env_configs.main import create_app
from env_configs.models import cron as _cron_models  # noqa: F401
from env_configs.models import plugin as _plugin_models  # noqa: F401
from env_configs.plugins.manager import PluginManager


@pytest.fixture
def engine():
    eng = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def hooks():
    return HookRegistry()


@pytest.fixture
def scheduler(hooks, session_factory):
    return EventScheduler(hooks, session_factory, site_url='http://testserver')


@pytest.fixture
def plugin_manager(hooks, session_factory, tmp_path):
    return PluginManager(session_factory, hooks, plugins_dir=tmp_path / 'plugins', backend_version='1.4.0')


@pytest.fixture
def make_settings(tmp_path):
    def _make(**overrides):
        base = {
            'developer_ips': [],
            'ip_ranges': [],
            'plugins_to_activate': [],
            'plugin_check_on': [],
            'plugins_dir': tmp_path / 'plugins',
            'cron_spawn': False,
            'environment': '',
            'api_key': None,
        }
        base.update(overrides)
        return settings.model_copy(update=base)
    return _make


@pytest.fixture
def make_client(engine, session_factory, hooks, make_settings):
    """Build the real app against the in-memory database and run its lifespan."""
    clients = []

    def _make(environment: EnvironmentPredicates | None = None, **setting_overrides):
        app = create_app(
            app_settings=make_settings(**setting_overrides),
            session_factory=session_factory,
            bind=engine,
            hooks=hooks,
            environment=environment,
        )
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for c in clients:
        c.__exit__(None, None, None)

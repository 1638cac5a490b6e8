"""End-to-end tests for the /api/deploy endpoint running inside the real app."""

import pytest

from env_configs.core.environment import EnvironmentPredicates
from env_configs.core.hooks import (
    CHECK_PLUGINS,
    CONFIG_LIVE,
    CONFIG_LOCAL,
    CONFIG_STAGING,
    CRON_REQUEST,
    INIT,
)
from env_configs.deploy.dispatcher import LOCAL_CRON_TIMEOUT_FILTER
from env_configs.deploy.endpoint import DEPLOY_RULE
from tests.recorders import EventRecorder

pytestmark = pytest.mark.timeout(30)

# TestClient reports this as the remote address
CLIENT_HOST = 'testclient'
CONFIG_EVENTS = (CONFIG_LOCAL, CONFIG_STAGING, CONFIG_LIVE)


@pytest.fixture
def recorder(hooks):
    return EventRecorder(hooks, *CONFIG_EVENTS)


def _local_client(make_client, **overrides):
    overrides.setdefault('developer_ips', [CLIENT_HOST])
    return make_client(environment=EnvironmentPredicates.fixed('local'), **overrides)


def test_startup_registers_endpoint(make_client, hooks):
    client = make_client()
    env = client.app.state.env_configs
    assert hooks.did_action(INIT) == 1
    assert [r.regex for r in env.rewrite.rules()] == [DEPLOY_RULE]


@pytest.mark.parametrize('path', ['/api/deploy', '/api/deploy/', '/api/deploy/a/'])
def test_authorized_local_deploy(make_client, hooks, recorder, path):
    client = _local_client(make_client)
    resp = client.get(path)
    assert resp.status_code == 200
    assert resp.content == b''
    assert recorder.names() == [CONFIG_LOCAL]
    assert hooks.has_filter(CRON_REQUEST, LOCAL_CRON_TIMEOUT_FILTER)
    assert client.app.state.env_configs.scheduler.build_cron_request()['args']['timeout'] == 0.5


def test_unauthorized_client_gets_empty_response_and_no_events(make_client, hooks, recorder):
    client = _local_client(make_client, developer_ips=['198.51.100.7'])
    resp = client.get('/api/deploy')
    assert resp.status_code == 200
    assert resp.content == b''
    assert recorder.calls == []
    assert not hooks.has_filter(CRON_REQUEST)


def test_ip_range_filter_authorizes_nothing_for_hostname(make_client, hooks, recorder):
    hooks.add_filter('ip_range', lambda _: [{'low': '0.0.0.0', 'high': '255.255.255.255'}])
    client = _local_client(make_client, developer_ips=[])
    client.get('/api/deploy')
    assert recorder.calls == []


def test_developer_ip_filter_is_consulted_per_request(make_client, hooks, recorder):
    client = _local_client(make_client, developer_ips=[])
    client.get('/api/deploy')
    hooks.add_filter('developer_ip', lambda ips: [*ips, CLIENT_HOST])
    client.get('/api/deploy')
    assert recorder.names() == [CONFIG_LOCAL]


def test_marker_in_query_string_works_on_any_path(make_client, recorder):
    client = _local_client(make_client)
    resp = client.get('/some/page', params={'__deploy': '1'})
    assert resp.status_code == 200
    assert resp.content == b''
    assert recorder.names() == [CONFIG_LOCAL]


def test_falsy_marker_is_not_halted(make_client, recorder):
    client = _local_client(make_client)
    resp = client.get('/api/deploy', params={'__deploy': '0'})
    assert resp.status_code == 404
    assert recorder.calls == []


@pytest.mark.parametrize('path', ['/api/deployx', '/api/deployq/', '/api/deploy/ab'])
def test_near_miss_paths_fall_through(make_client, recorder, path):
    client = _local_client(make_client)
    assert client.get(path).status_code == 404
    assert recorder.calls == []


def test_regular_routes_still_served(make_client):
    client = _local_client(make_client)
    resp = client.get('/')
    assert resp.status_code == 200
    assert resp.json()['status'] == 'ok'


def test_staging_deploy_schedules_plugin_check(make_client, recorder):
    client = make_client(
        environment=EnvironmentPredicates.fixed('staging'),
        developer_ips=[CLIENT_HOST],
        plugin_check_on=['staging'],
    )
    client.get('/api/deploy')
    client.get('/api/deploy')
    assert recorder.names() == [CONFIG_STAGING, CONFIG_STAGING]
    assert len(client.app.state.env_configs.scheduler.pending(CHECK_PLUGINS)) == 1


def test_live_deploy_does_not_schedule_without_opt_in(make_client, recorder):
    client = make_client(environment=EnvironmentPredicates.fixed('live'), developer_ips=[CLIENT_HOST])
    client.get('/api/deploy')
    assert recorder.names() == [CONFIG_LIVE]
    assert client.app.state.env_configs.scheduler.pending(CHECK_PLUGINS) == []


def test_scheduled_check_runs_on_cron(make_client, hooks):
    client = make_client(
        environment=EnvironmentPredicates.fixed('staging'),
        developer_ips=[CLIENT_HOST],
        plugin_check_on=['staging'],
        plugins_to_activate=['seo'],
    )
    plugins = client.app.state.env_configs.plugins
    plugins.register('core')
    plugins.register('seo')
    plugins.activate('core')
    client.get('/api/deploy')
    assert plugins.active_plugins() == ['core']

    resp = client.post('/api/v1/cron/run')
    assert resp.status_code == 200
    assert resp.json() == {'ran': 1}
    assert plugins.active_plugins() == ['core', 'seo']


def test_subscriber_failure_still_returns_empty_response(make_client, hooks):
    hooks.add_action(CONFIG_LOCAL, lambda: 1 / 0)
    client = _local_client(make_client)
    resp = client.get('/api/deploy')
    assert resp.status_code == 200
    assert resp.content == b''

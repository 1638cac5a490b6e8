"""HTTP API tests: cron runner, plugin management, version, shared API key."""

import pytest

from env_configs.core.api_key import HEADER_NAME
from env_configs.core.hooks import ACTIVATED_PLUGIN
from tests.recorders import EventRecorder

pytestmark = pytest.mark.timeout(30)

API = '/api/v1'


def test_root(make_client):
    client = make_client()
    assert client.get('/').json()['status'] == 'ok'


def test_version(make_client):
    client = make_client(version='2.3.4')
    assert client.get(f'{API}/version').json() == {'version': '2.3.4', 'environment': None}


class TestCron:

    def test_run_with_nothing_due(self, make_client):
        client = make_client()
        assert client.get(f'{API}/cron/run').json() == {'ran': 0}

    def test_run_fires_due_events_once(self, make_client, hooks):
        recorder = EventRecorder(hooks, 'evt')
        client = make_client()
        scheduler = client.app.state.env_configs.scheduler
        scheduler.schedule_single_event(1.0, 'evt', ['a'])
        assert client.post(f'{API}/cron/run', params={'doing_cron': '1.0000'}).json() == {'ran': 1}
        assert client.post(f'{API}/cron/run').json() == {'ran': 0}
        assert recorder.calls == [('evt', ('a',))]

    def test_pending_events(self, make_client):
        client = make_client()
        scheduler = client.app.state.env_configs.scheduler
        scheduler.schedule_single_event(10.0, 'a')
        scheduler.schedule_single_event(5.0, 'b', [1])
        events = client.get(f'{API}/cron/events').json()['events']
        assert [(e['hook'], e['timestamp'], e['args']) for e in events] == [('b', 5.0, [1]), ('a', 10.0, [])]
        only_a = client.get(f'{API}/cron/events', params={'hook': 'a'}).json()['events']
        assert [e['hook'] for e in only_a] == ['a']


class TestPlugins:

    def test_manifest_sync_at_startup(self, make_client, tmp_path):
        d = tmp_path / 'plugins' / 'seo'
        d.mkdir(parents=True)
        (d / 'plugin.yml').write_text('name: seo\nversion: 1.0\nhuman_name: SEO\n')
        client = make_client()
        rows = client.get(f'{API}/plugins').json()
        assert [(r['name'], r['status'], r['human_name']) for r in rows] == [('seo', 'inactive', 'SEO')]

    def test_activate_and_deactivate(self, make_client, hooks):
        recorder = EventRecorder(hooks, ACTIVATED_PLUGIN)
        client = make_client()
        client.app.state.env_configs.plugins.register('seo')

        resp = client.post(f'{API}/plugins/seo/activate', json={'network_wide': True})
        assert resp.status_code == 200
        assert resp.json()['status'] == 'activated'
        assert client.get(f'{API}/plugins/active').json() == ['seo']
        assert client.post(f'{API}/plugins/seo/activate').json()['status'] == 'already_active'
        assert recorder.calls == [(ACTIVATED_PLUGIN, ('seo', True))]

        row = client.get(f'{API}/plugins').json()[0]
        assert row['network_wide'] is True
        assert row['activated_at'] is not None

        assert client.post(f'{API}/plugins/seo/deactivate').json()['status'] == 'deactivated'
        assert client.get(f'{API}/plugins/active').json() == []

    def test_unknown_plugin(self, make_client):
        client = make_client()
        resp = client.post(f'{API}/plugins/ghost/activate')
        assert resp.status_code == 404
        assert resp.json()['detail']['code'] == 'PLUGIN_NOT_FOUND'
        assert client.post(f'{API}/plugins/ghost/deactivate').status_code == 404

    def test_incompatible_plugin(self, make_client):
        client = make_client(version='1.0.0')
        client.app.state.env_configs.plugins.register('future', required_backend='>=2')
        resp = client.post(f'{API}/plugins/future/activate')
        assert resp.status_code == 409
        assert resp.json()['detail']['code'] == 'BACKEND_INCOMPATIBLE'
        assert client.get(f'{API}/plugins').json()[0]['status'] == 'error'

    def test_invalid_body(self, make_client):
        client = make_client()
        client.app.state.env_configs.plugins.register('seo')
        resp = client.post(f'{API}/plugins/seo/activate', json={'network_wide': 'not-a-bool'})
        assert resp.status_code == 422


class TestApiKey:

    @pytest.fixture
    def client(self, make_client):
        return make_client(api_key='s3cret')

    def test_missing_key(self, client):
        assert client.get(f'{API}/plugins').status_code == 401
        assert client.get(f'{API}/cron/events').status_code == 401

    def test_wrong_key(self, client):
        assert client.get(f'{API}/plugins', headers={HEADER_NAME: 'nope'}).status_code == 403

    def test_header_or_query_key(self, client):
        assert client.get(f'{API}/plugins', headers={HEADER_NAME: 's3cret'}).status_code == 200
        assert client.get(f'{API}/plugins/active', params={'api_key': 's3cret'}).status_code == 200

    def test_cron_runner_and_version_stay_public(self, client):
        assert client.post(f'{API}/cron/run').status_code == 200
        assert client.get(f'{API}/version').status_code == 200

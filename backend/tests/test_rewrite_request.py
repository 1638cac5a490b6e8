"""Tests for rewrite rules and request parsing."""

import pytest

from env_configs.core.hooks import QUERY_VARS
from env_configs.core.request import is_truthy, parse_request, public_query_vars
from env_configs.core.rewrite import RewriteRules
from env_configs.deploy.endpoint import DEPLOY_QUERY, DEPLOY_RULE


@pytest.fixture
def rewrite():
    return RewriteRules()


class TestRewriteRules:

    def test_top_rules_win_over_bottom(self, rewrite):
        rewrite.add_rule(r'^api/(.*)$', 'index?section=$matches[1]')
        rewrite.add_rule(DEPLOY_RULE, DEPLOY_QUERY, after='top')
        rule, qv = rewrite.match('/api/deploy')
        assert rule.regex == DEPLOY_RULE
        assert qv == {'__deploy': '1'}

    def test_match_references(self, rewrite):
        rewrite.add_rule(r'^posts/(\d+)/(\w+)/?$', 'index?p=$matches[1]&slug=$matches[2]&x=$matches[9]')
        _, qv = rewrite.match('posts/42/hello/')
        assert qv == {'p': '42', 'slug': 'hello', 'x': ''}

    def test_re_adding_a_rule_replaces_it(self, rewrite):
        rewrite.add_rule(DEPLOY_RULE, 'index?a=1')
        rewrite.add_rule(DEPLOY_RULE, DEPLOY_QUERY, after='top')
        assert len(rewrite) == 1
        assert rewrite.rules()[0].query == DEPLOY_QUERY

    def test_unknown_position(self, rewrite):
        with pytest.raises(ValueError):
            rewrite.add_rule('^x$', 'index?x=1', after='middle')

    def test_no_match(self, rewrite):
        rewrite.add_rule(DEPLOY_RULE, DEPLOY_QUERY, after='top')
        assert rewrite.match('/other') == (None, {})

    @pytest.mark.parametrize('path', ['/api/deploy', '/api/deploy/', '/api/deploy/a', '/api/deploy/Z/', 'api/deploy'])
    def test_deploy_rule_matches(self, rewrite, path):
        rewrite.add_rule(DEPLOY_RULE, DEPLOY_QUERY, after='top')
        assert rewrite.match(path)[1] == {'__deploy': '1'}

    @pytest.mark.parametrize('path', ['/api/deployx', '/api/deployq/', '/api/deploy/ab', '/api/deploy/1', '/api/deploy/_', '/x/api/deploy'])
    def test_deploy_rule_rejects(self, rewrite, path):
        rewrite.add_rule(DEPLOY_RULE, DEPLOY_QUERY, after='top')
        assert rewrite.match(path) == (None, {})


class TestParseRequest:

    def test_private_vars_are_dropped(self, hooks, rewrite):
        rewrite.add_rule(DEPLOY_RULE, DEPLOY_QUERY, after='top')
        parsed = parse_request(hooks, rewrite, '/api/deploy', {'secret': '1'}, '1.2.3.4')
        assert parsed.query_vars == {}
        assert parsed.matched_rule == DEPLOY_RULE
        assert parsed.remote_addr == '1.2.3.4'

    def test_registered_var_survives_and_query_string_wins(self, hooks, rewrite):
        hooks.add_filter(QUERY_VARS, lambda v: [*v, '__deploy'])
        rewrite.add_rule(DEPLOY_RULE, DEPLOY_QUERY, after='top')
        assert parse_request(hooks, rewrite, '/api/deploy').query_vars == {'__deploy': '1'}
        assert parse_request(hooks, rewrite, '/api/deploy', {'__deploy': '0'}).query_vars == {'__deploy': '0'}
        assert parse_request(hooks, rewrite, '/anything', {'__deploy': '1'}).query_vars == {'__deploy': '1'}

    def test_default_public_vars(self, hooks):
        assert public_query_vars(hooks) == {'doing_cron'}


@pytest.mark.parametrize('value,expected', [
    ('1', True), ('yes', True), ('abc', True), (1, True),
    ('', False), ('0', False), ('false', False), (' Off ', False), (None, False), (0, False),
])
def test_is_truthy(value, expected):
    assert is_truthy(value) is expected

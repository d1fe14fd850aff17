"""Tests for run configuration loading and merging."""

from pathlib import Path

import pytest

from config import maps_config
from src.shared.errors import ConfigError
from src.shared.run_config import (
    ShardSelection,
    build_run_config,
    env_flag,
    load_yaml_config,
    parse_target_states,
    resolve_search_terms,
    validate_config,
)


SHIPPED_CONFIG = Path(__file__).parent.parent / 'config' / 'extractor.yaml'


class TestParseTargetStates:
    """Test target-state selector parsing."""

    @pytest.mark.parametrize('value', [None, '', 'ALL', 'all', 'CA,ALL'])
    def test_all_means_no_filter(self, value):
        """ALL, empty and None disable the state filter."""
        assert parse_target_states(value) is None

    def test_single_state(self):
        """A single code becomes a one-element set."""
        assert parse_target_states('ca') == frozenset({'CA'})

    def test_state_set(self):
        """Comma-joined codes become a set."""
        assert parse_target_states('CA, NY') == frozenset({'CA', 'NY'})


class TestShardSelection:
    """Test ShardSelection bounds."""

    def test_index_out_of_range(self):
        """shard_index must be below total_shards."""
        with pytest.raises(ConfigError):
            ShardSelection(shard_index=4, total_shards=4)

    def test_zero_shards(self):
        """total_shards must be positive."""
        with pytest.raises(ConfigError):
            ShardSelection(total_shards=0)

    def test_matches_state(self):
        """State matching is case-insensitive; None matches everything."""
        assert ShardSelection(target_states=frozenset({'CA'})).matches_state('ca') is True
        assert ShardSelection(target_states=frozenset({'CA'})).matches_state('NY') is False
        assert ShardSelection().matches_state('NY') is True

    def test_describe(self):
        """describe() names the 1-based shard and the states."""
        selection = ShardSelection(target_states=frozenset({'NY', 'CA'}), shard_index=1, total_shards=4)
        assert selection.describe() == 'shard 2/4, states=CA,NY'


class TestBuildRunConfig:
    """Test layering of YAML, environment and CLI settings."""

    def test_defaults(self):
        """With nothing configured the built-in defaults apply."""
        config = build_run_config({}, environ={})

        assert config.selection.shard_index == 0
        assert config.selection.total_shards == 1
        assert config.selection.max_per_shard == 1000
        assert config.selection.target_states is None
        assert config.search_terms == tuple(maps_config.SEARCH_PROFILES['landmarks'])
        assert config.retries == 2

    def test_environment_overrides_yaml(self):
        """Environment variables win over YAML values."""
        yaml_config = {'run': {'target_state': 'CA', 'shard_index': 0, 'total_shards': 2}}
        environ = {'TARGET_STATE': 'NY', 'SHARD_INDEX': '2', 'TOTAL_SHARDS': '4', 'MAX_RECORDS_PER_SHARD': '50'}

        config = build_run_config(yaml_config, environ=environ)

        assert config.selection.target_states == frozenset({'NY'})
        assert config.selection.shard_index == 2
        assert config.selection.total_shards == 4
        assert config.selection.max_per_shard == 50

    def test_cli_overrides_environment(self):
        """CLI values win over the environment; None values are ignored."""
        config = build_run_config(
            {},
            environ={'SHARD_INDEX': '1', 'TOTAL_SHARDS': '4'},
            overrides={'shard_index': 3, 'total_shards': None, 'retries': 5},
        )

        assert config.selection.shard_index == 3
        assert config.selection.total_shards == 4
        assert config.retries == 5

    def test_zero_cap_means_unlimited(self):
        """A cap of 0 disables the per-shard limit."""
        config = build_run_config({}, environ={'MAX_RECORDS_PER_SHARD': '0'})
        assert config.selection.max_per_shard is None

    def test_non_integer_environment_value(self):
        """A non-numeric SHARD_INDEX is a configuration error."""
        with pytest.raises(ConfigError, match='SHARD_INDEX'):
            build_run_config({}, environ={'SHARD_INDEX': 'first'})

    def test_ci_forces_headless(self):
        """CI=true forces headless even when headed was requested."""
        config = build_run_config({}, environ={'CI': 'true'}, overrides={'headless': False})

        assert config.ci is True
        assert config.headless is True

    def test_retry_failed_includes_sentinels(self):
        """--retry-failed makes sentinel rows pending."""
        config = build_run_config({}, environ={}, overrides={'retry_failed': True})
        assert config.selection.include_sentinels is True

    def test_yaml_profile(self):
        """Profiles defined in YAML are selectable."""
        yaml_config = {'profiles': {'civic': ['city hall', 'library']}, 'default_profile': 'civic'}

        config = build_run_config(yaml_config, environ={})

        assert config.profile == 'civic'
        assert config.search_terms == ('city hall', 'library')


class TestSearchProfiles:
    """Test resolve_search_terms()."""

    def test_builtin_profile(self):
        """Built-in profiles come from maps_config."""
        assert resolve_search_terms('gas_station') == ('gas station',)

    def test_unknown_profile(self):
        """An unknown profile name is rejected."""
        with pytest.raises(ConfigError, match='Unknown search profile'):
            resolve_search_terms('nope')


class TestYamlConfig:
    """Test load_yaml_config() and validate_config()."""

    def test_missing_file_is_empty(self, tmp_path):
        """A missing config file yields an empty dict."""
        assert load_yaml_config(str(tmp_path / 'missing.yaml')) == {}

    def test_invalid_yaml(self, tmp_path):
        """Broken YAML raises ConfigError."""
        path = tmp_path / 'bad.yaml'
        path.write_text('run: [unclosed', encoding='utf-8')
        with pytest.raises(ConfigError, match='Invalid YAML'):
            load_yaml_config(str(path))

    def test_non_mapping(self, tmp_path):
        """A YAML list at the top level is rejected."""
        path = tmp_path / 'list.yaml'
        path.write_text('- a\n- b\n', encoding='utf-8')
        with pytest.raises(ConfigError, match='dictionary'):
            load_yaml_config(str(path))

    def test_shipped_config_is_valid(self):
        """config/extractor.yaml passes validation."""
        assert validate_config(load_yaml_config(str(SHIPPED_CONFIG))) == []

    def test_validate_reports_bad_values(self):
        """Out-of-range numbers and empty profiles are reported."""
        errors = validate_config({
            'run': {'concurrency': 0, 'retries': 'two'},
            'profiles': {'empty': []},
            'default_profile': 'missing',
        })
        assert len(errors) == 4

    def test_env_flag(self):
        """Truthy strings are recognized."""
        assert env_flag('TRUE') is True
        assert env_flag('1') is True
        assert env_flag(None) is False
        assert env_flag('no') is False

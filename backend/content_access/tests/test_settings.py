"""
Tests for content access settings loading.
"""

import pytest

from content_access.config.settings import (
    AccessSettings,
    AccessSettingsLoader,
    CONFIG_ENV_VAR,
    get_access_settings,
    reset_access_settings,
)


class TestAccessSettings:

    def test_defaults(self):
        settings = AccessSettings()

        assert settings.period_timezone == "UTC"
        assert settings.delegate_cache_ttl_seconds == 300
        assert settings.max_tracked_sessions == 50

    def test_from_mapping_ignores_unknown_keys(self):
        settings = AccessSettings.from_mapping({"recent_activity_limit": 5, "legacy_flag": True})

        assert settings.recent_activity_limit == 5

    @pytest.mark.parametrize("value", [0, -10, "300"])
    def test_rejects_invalid_values(self, value):
        with pytest.raises(ValueError):
            AccessSettings.from_mapping({"delegate_cache_ttl_seconds": value})


class TestAccessSettingsLoader:

    def test_loads_explicit_path(self, make_yaml_config):
        path = make_yaml_config("content_access.yml", {
            "period_timezone": "Europe/Paris",
            "delegate_cache_ttl_seconds": 60,
        })

        settings = get_access_settings(str(path))

        assert settings.period_timezone == "Europe/Paris"
        assert settings.delegate_cache_ttl_seconds == 60
        assert settings.statement_timeout_ms == 5000

    def test_loads_from_env_var(self, make_yaml_config, monkeypatch):
        path = make_yaml_config("access.yml", {"max_tracked_sessions": 7})
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        assert get_access_settings().max_tracked_sessions == 7

    def test_missing_explicit_path_raises(self, temp_config_dir):
        with pytest.raises(FileNotFoundError):
            get_access_settings(str(temp_config_dir / "absent.yml"))

    def test_singleton_until_reset(self, make_yaml_config):
        first = make_yaml_config("first.yml", {"recent_activity_limit": 3})
        second = make_yaml_config("second.yml", {"recent_activity_limit": 4})

        assert get_access_settings(str(first)).recent_activity_limit == 3
        assert get_access_settings(str(second)).recent_activity_limit == 3

        reset_access_settings()

        assert get_access_settings(str(second)).recent_activity_limit == 4

    def test_reload_picks_up_changes(self, make_yaml_config):
        path = make_yaml_config("content_access.yml", {"recent_activity_limit": 3})
        loader = AccessSettingsLoader(str(path))

        make_yaml_config("content_access.yml", {"recent_activity_limit": 9})
        loader.reload()

        assert loader.settings.recent_activity_limit == 9

    def test_empty_file_uses_defaults(self, temp_config_dir):
        path = temp_config_dir / "content_access.yml"
        path.write_text("")

        assert get_access_settings(str(path)) == AccessSettings()

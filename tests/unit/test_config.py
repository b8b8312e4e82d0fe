"""Unit tests for config loading, validation and env overrides.

Covers:
  - Missing config file → Settings.defaults(), no exception
  - Missing / unsupported 'version' → SystemExit(1)
  - Invalid YAML → SystemExit(1)
  - mode parsing, including YAML 1.1 booleans (on/off)
  - TLSGATE_MODE and TLSGATE_CONFIG environment variables
  - Malformed rules skipped, valid rules kept in order
  - ignored_extensions, ports, base URLs, offloaded headers, hsts
  - parse_settings() raises SettingsError (used by hot reload)
"""

from __future__ import annotations

import textwrap

import pytest

from tlsgate.config import (
    SUPPORTED_VERSIONS,
    HstsSettings,
    Mode,
    Settings,
    SettingsError,
    load_settings,
    parse_settings,
)
from tlsgate.constants import DEFAULT_IGNORED_EXTENSIONS
from tlsgate.models.request import RequestSecurity
from tlsgate.rules.compiler import MatchType


def _write(tmp_path, content: str) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(textwrap.dedent(content))
    return str(path)


# ─── Missing config ──────────────────────────────────────────────────────────


class TestMissingConfigFile:
    def test_nonexistent_path_returns_defaults(self, tmp_path) -> None:
        settings = load_settings(str(tmp_path / "nope.yaml"))
        assert settings == Settings.defaults()

    def test_defaults(self) -> None:
        settings = Settings.defaults()
        assert settings.mode is Mode.ON
        assert settings.rules == ()
        assert settings.bypass_security_warning is False
        assert settings.ignore_ajax_requests is True
        assert settings.ignored_extensions == DEFAULT_IGNORED_EXTENSIONS
        assert settings.secure_port is None
        assert settings.offloaded_security_headers == ()
        assert settings.hsts == HstsSettings()

    def test_mode_env_applies_without_file(self, monkeypatch) -> None:
        monkeypatch.setenv("TLSGATE_MODE", "off")
        assert load_settings().mode is Mode.OFF


# ─── Startup refusal ─────────────────────────────────────────────────────────


class TestInvalidConfig:
    def test_missing_version_exits(self, tmp_path, capsys) -> None:
        path = _write(tmp_path, "mode: on\n")
        with pytest.raises(SystemExit) as exc_info:
            load_settings(path)
        assert exc_info.value.code == 1
        assert "version" in capsys.readouterr().err

    def test_empty_file_exits(self, tmp_path) -> None:
        path = _write(tmp_path, "")
        with pytest.raises(SystemExit):
            load_settings(path)

    def test_unsupported_version_exits(self, tmp_path, capsys) -> None:
        path = _write(tmp_path, "version: 99\n")
        with pytest.raises(SystemExit):
            load_settings(path)
        assert "Unsupported config version" in capsys.readouterr().err

    def test_invalid_yaml_exits(self, tmp_path, capsys) -> None:
        path = _write(tmp_path, "version: 1\nrules: [unclosed\n")
        with pytest.raises(SystemExit):
            load_settings(path)
        assert "CONFIG ERROR" in capsys.readouterr().err

    def test_non_mapping_exits(self, tmp_path) -> None:
        path = _write(tmp_path, "- just\n- a list\n")
        with pytest.raises(SystemExit):
            load_settings(path)

    def test_invalid_mode_exits(self, tmp_path) -> None:
        path = _write(tmp_path, "version: 1\nmode: sometimes\n")
        with pytest.raises(SystemExit):
            load_settings(path)

    def test_invalid_mode_env_exits(self, monkeypatch) -> None:
        monkeypatch.setenv("TLSGATE_MODE", "sideways")
        with pytest.raises(SystemExit):
            load_settings()

    @pytest.mark.parametrize("version", ["[1]", "{v: 1}", "true", "'1'"])
    def test_non_integer_version_exits(self, tmp_path, capsys, version) -> None:
        path = _write(tmp_path, f"version: {version}\n")
        with pytest.raises(SystemExit) as exc_info:
            load_settings(path)
        assert exc_info.value.code == 1
        assert "Unsupported config version" in capsys.readouterr().err

    def test_invalid_utf8_exits(self, tmp_path, capsys) -> None:
        path = tmp_path / "config.yaml"
        path.write_bytes(b"version: 1\nmode: \xff\xfe\n")
        with pytest.raises(SystemExit) as exc_info:
            load_settings(str(path))
        assert exc_info.value.code == 1
        assert "CONFIG ERROR" in capsys.readouterr().err

    def test_supported_versions(self) -> None:
        assert 1 in SUPPORTED_VERSIONS


# ─── Mode parsing ────────────────────────────────────────────────────────────


class TestMode:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            (True, Mode.ON),
            (False, Mode.OFF),
            ("on", Mode.ON),
            ("Off", Mode.OFF),
            ("remote_only", Mode.REMOTE_ONLY),
            ("RemoteOnly", Mode.REMOTE_ONLY),
            ("remote-only", Mode.REMOTE_ONLY),
        ],
    )
    def test_parse(self, raw, expected) -> None:
        assert Mode.parse(raw) is expected

    @pytest.mark.parametrize("raw", ["maybe", 1, None])
    def test_parse_rejects(self, raw) -> None:
        with pytest.raises(SettingsError):
            Mode.parse(raw)

    def test_yaml_bare_off_is_mode_off(self, tmp_path) -> None:
        # PyYAML reads a bare `off` as the boolean False.
        path = _write(tmp_path, "version: 1\nmode: off\n")
        assert load_settings(path).mode is Mode.OFF

    def test_yaml_bare_on_is_mode_on(self, tmp_path) -> None:
        path = _write(tmp_path, "version: 1\nmode: on\n")
        assert load_settings(path).mode is Mode.ON

    def test_env_overrides_file(self, tmp_path, monkeypatch) -> None:
        path = _write(tmp_path, "version: 1\nmode: on\n")
        monkeypatch.setenv("TLSGATE_MODE", "remote_only")
        assert load_settings(path).mode is Mode.REMOTE_ONLY


# ─── Full document ───────────────────────────────────────────────────────────


class TestFullConfig:
    def test_all_fields(self, tmp_path) -> None:
        path = _write(
            tmp_path,
            """
            version: 1
            mode: remote_only
            bypass_security_warning: true
            ignored_extensions: [CSS, .js, "png"]
            ignore_ajax_requests: false
            secure_port: 8443
            insecure_port: 8080
            base_secure_url: https://secure.example.com/
            offloaded_security_headers:
              - X-Forwarded-Proto=https
              - X-SSL
              - {name: Front-End-Https, value: "on"}
            hsts: {enabled: true, max_age: 600, include_subdomains: true}
            rules:
              - {pattern: "/account/*", security: secure}
              - {pattern: "^/images/", security: insecure, match: regex, ignore_case: false}
            """,
        )
        settings = load_settings(path)

        assert settings.path == path
        assert settings.mode is Mode.REMOTE_ONLY
        assert settings.bypass_security_warning is True
        assert settings.ignored_extensions == frozenset({".css", ".js", ".png"})
        assert settings.ignore_ajax_requests is False
        assert settings.secure_port == 8443
        assert settings.insecure_port == 8080
        assert settings.base_secure_url == "https://secure.example.com"
        assert settings.base_insecure_url is None
        assert settings.offloaded_security_headers == (
            ("x-forwarded-proto", "https"),
            ("x-ssl", None),
            ("front-end-https", "on"),
        )
        assert settings.hsts == HstsSettings(enabled=True, max_age=600, include_subdomains=True)

        assert [r.pattern for r in settings.rules] == ["/account/*", "^/images/"]
        assert settings.rules[0].security is RequestSecurity.SECURE
        assert settings.rules[1].match_type is MatchType.REGEX
        assert settings.rules[1].ignore_case is False

    def test_config_env_var_path(self, tmp_path, monkeypatch) -> None:
        path = _write(tmp_path, "version: 1\nbypass_security_warning: true\n")
        monkeypatch.setenv("TLSGATE_CONFIG", path)
        settings = load_settings()
        assert settings.bypass_security_warning is True
        assert settings.path == path

    def test_malformed_rules_skipped(self, tmp_path) -> None:
        path = _write(
            tmp_path,
            """
            version: 1
            rules:
              - {pattern: "/a/*", security: secure}
              - {pattern: "(", security: secure, match: regex}
              - {pattern: "/b/*", security: bogus}
              - {pattern: "/c/*", security: insecure}
            """,
        )
        settings = load_settings(path)
        assert [r.pattern for r in settings.rules] == ["/a/*", "/c/*"]

    def test_all_rules_malformed_loads_empty_rule_set(self, tmp_path) -> None:
        path = _write(tmp_path, "version: 1\nrules:\n  - {pattern: '('}\n  - 42\n")
        assert load_settings(path).rules == ()

    def test_empty_extension_list_disables_extension_ignore(self) -> None:
        settings = parse_settings({"version": 1, "ignored_extensions": []})
        assert settings.ignored_extensions == frozenset()


# ─── Value validation ────────────────────────────────────────────────────────


class TestValidation:
    @pytest.mark.parametrize(
        "raw",
        [
            {"version": 1, "secure_port": 0},
            {"version": 1, "secure_port": 70000},
            {"version": 1, "insecure_port": "80"},
            {"version": 1, "secure_port": True},
            {"version": 1, "base_secure_url": "secure.example.com"},
            {"version": 1, "offloaded_security_headers": "X-Forwarded-Proto"},
            {"version": 1, "offloaded_security_headers": [42]},
            {"version": 1, "offloaded_security_headers": ["=https"]},
            {"version": 1, "hsts": "yes"},
            {"version": 1, "hsts": {"max_age": -1}},
            {"version": 1, "ignored_extensions": ".css"},
            {"version": 1, "bypass_security_warning": "false"},
            {"version": 1, "ignore_ajax_requests": "no"},
            {"version": 1, "ignore_ajax_requests": 0},
            {"version": 1, "hsts": {"enabled": "false"}},
            {"version": 1, "hsts": {"preload": 1}},
            {"version": 1, "hsts": {"include_subdomains": "yes"}},
        ],
    )
    def test_invalid_values_raise_settings_error(self, raw) -> None:
        with pytest.raises(SettingsError):
            parse_settings(raw)

    def test_parse_settings_requires_version(self) -> None:
        with pytest.raises(SettingsError):
            parse_settings({"mode": "on"})

    def test_settings_are_frozen(self) -> None:
        settings = Settings()
        with pytest.raises(Exception):
            settings.mode = Mode.OFF  # type: ignore[misc]

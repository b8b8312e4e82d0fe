"""Config loading for tlsgate.

Reads `.tlsgate/config.yaml` (or `~/.tlsgate/config.yaml`).
Raises SystemExit on parse errors or missing `version` field.
If no config file is found, returns default Settings (mode on, no rules — every
request is ignored, so running without config is safe).

Config search order:
  1. `config_path` argument (if provided — for testing or explicit override)
  2. TLSGATE_CONFIG environment variable (if set)
  3. `.tlsgate/config.yaml` (working directory — for development)
  4. `~/.tlsgate/config.yaml` (home directory — for production deployments)

Environment variable overrides:
  TLSGATE_MODE   — overrides mode (off | on | remote_only)
  TLSGATE_CONFIG — sets an explicit config file path to try first

Settings objects are frozen. A reload never edits a live Settings; it builds a
new one and publishes it through SettingsStore (see tlsgate/store.py).
"""

from __future__ import annotations

import dataclasses
import enum
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Optional

import yaml

from tlsgate.constants import DEFAULT_HSTS_MAX_AGE, DEFAULT_IGNORED_EXTENSIONS
from tlsgate.rules.compiler import Rule, compile_rules
from tlsgate.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

DEFAULT_CONFIG_PATHS = [
    ".tlsgate/config.yaml",
    os.path.expanduser("~/.tlsgate/config.yaml"),
]


class SettingsError(ValueError):
    """The configuration cannot be turned into Settings."""


class Mode(str, enum.Enum):
    OFF = "off"
    ON = "on"
    REMOTE_ONLY = "remote_only"

    @classmethod
    def parse(cls, value: Any) -> "Mode":
        """Parse a config/env value into a Mode.

        YAML 1.1 reads bare ``on``/``off`` as booleans, so True/False are
        accepted as ON/OFF.

        Raises:
            SettingsError: Unknown mode value.
        """
        if isinstance(value, bool):
            return cls.ON if value else cls.OFF
        if isinstance(value, str):
            normalized = value.strip().lower().replace("-", "_")
            if normalized == "remoteonly":
                normalized = cls.REMOTE_ONLY.value
            try:
                return cls(normalized)
            except ValueError:
                pass
        raise SettingsError(
            f"Invalid mode: {value!r}. Supported values: {[m.value for m in cls]}."
        )


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class HstsSettings:
    """Strict-Transport-Security header emitted by HstsEnricher."""

    enabled: bool = False
    max_age: int = DEFAULT_HSTS_MAX_AGE
    include_subdomains: bool = False
    preload: bool = False

    @property
    def header_value(self) -> str:
        value = f"max-age={self.max_age}"
        if self.include_subdomains:
            value += "; includeSubDomains"
        if self.preload:
            value += "; preload"
        return value


@dataclass(frozen=True)
class Settings:
    """Immutable snapshot of the tlsgate configuration.

    All fields have safe defaults — tlsgate can start without any config file.

    offloaded_security_headers holds (header name, expected value) pairs; a
    value of None means the header's presence alone marks the request secure.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    mode: Mode = Mode.ON
    bypass_security_warning: bool = False
    ignored_extensions: frozenset[str] = DEFAULT_IGNORED_EXTENSIONS
    ignore_ajax_requests: bool = True
    rules: tuple[Rule, ...] = ()
    secure_port: Optional[int] = None
    insecure_port: Optional[int] = None
    base_secure_url: Optional[str] = None
    base_insecure_url: Optional[str] = None
    offloaded_security_headers: tuple[tuple[str, Optional[str]], ...] = ()
    hsts: HstsSettings = field(default_factory=HstsSettings)
    path: Optional[str] = None  # Path to the loaded config file (for hot-reload)

    @classmethod
    def defaults(cls) -> "Settings":
        """Return fully-default Settings (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Settings":
        """Construct Settings from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are ignored.
        Malformed rules are skipped (logged), never fatal.

        Raises:
            SettingsError: On an invalid mode, flag, port, base URL, header spec or
                           hsts section.
        """
        mode = Mode.parse(raw.get("mode", Mode.ON.value))

        # ── Ports / base URLs ────────────────────────────────────────────────
        secure_port = _parse_port(raw.get("secure_port"), "secure_port")
        insecure_port = _parse_port(raw.get("insecure_port"), "insecure_port")
        base_secure_url = _parse_base_url(raw.get("base_secure_url"), "base_secure_url")
        base_insecure_url = _parse_base_url(raw.get("base_insecure_url"), "base_insecure_url")

        # ── HSTS ─────────────────────────────────────────────────────────────
        hsts_raw = raw.get("hsts") or {}
        if not isinstance(hsts_raw, dict):
            raise SettingsError("'hsts' must be a mapping")
        max_age = hsts_raw.get("max_age", DEFAULT_HSTS_MAX_AGE)
        if not isinstance(max_age, int) or isinstance(max_age, bool) or max_age < 0:
            raise SettingsError(f"Invalid hsts.max_age: {max_age!r}")
        hsts = HstsSettings(
            enabled=_parse_bool(hsts_raw.get("enabled"), "hsts.enabled", False),
            max_age=max_age,
            include_subdomains=_parse_bool(
                hsts_raw.get("include_subdomains"), "hsts.include_subdomains", False
            ),
            preload=_parse_bool(hsts_raw.get("preload"), "hsts.preload", False),
        )

        # ── Rules ────────────────────────────────────────────────────────────
        rules = compile_rules(raw.get("rules"))

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            mode=mode,
            bypass_security_warning=_parse_bool(
                raw.get("bypass_security_warning"), "bypass_security_warning", False
            ),
            ignored_extensions=_parse_extensions(raw.get("ignored_extensions")),
            ignore_ajax_requests=_parse_bool(
                raw.get("ignore_ajax_requests"), "ignore_ajax_requests", True
            ),
            rules=rules,
            secure_port=secure_port,
            insecure_port=insecure_port,
            base_secure_url=base_secure_url,
            base_insecure_url=base_insecure_url,
            offloaded_security_headers=_parse_offloaded_headers(
                raw.get("offloaded_security_headers")
            ),
            hsts=hsts,
            path=path,
        )


# ─── Config loading ───────────────────────────────────────────────────────────


def find_config_path(config_path: Optional[str] = None) -> Optional[str]:
    """Return the first existing config file in search order, or None."""
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("TLSGATE_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            return expanded
    return None


def read_settings_file(path: str) -> Settings:
    """Parse and validate one config file into Settings.

    Environment overrides are applied. Used both at startup (via
    load_settings) and by the hot-reload watcher.

    Raises:
        SettingsError: On YAML parse error, read error, missing or unsupported
                       ``version``, or any invalid value.
    """
    try:
        with open(path, "rb") as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise SettingsError(f"Failed to parse {path}: {exc}") from exc
    except OSError as exc:
        raise SettingsError(f"Could not read {path}: {exc}") from exc

    return apply_env_overrides(parse_settings(raw, path=path))


def parse_settings(raw: Any, path: Optional[str] = None) -> Settings:
    """Validate a parsed YAML document and build Settings from it.

    Raises:
        SettingsError: Document is not a mapping, lacks ``version``, has an
                       unsupported version, or holds an invalid value.
    """
    source = path or "<config>"
    if not isinstance(raw, dict):
        if raw is None:
            raise SettingsError(
                f"{source} is missing the required 'version' field. "
                "Add 'version: 1' to the top of your config file."
            )
        raise SettingsError(
            f"{source} is not a valid YAML mapping. "
            "The config file must be a YAML dictionary at the top level."
        )

    version = raw.get("version")
    if version is None:
        raise SettingsError(
            f"{source} is missing the required 'version' field. "
            "Add 'version: 1' to the top of your config file."
        )
    # Checked as an int first: a YAML list or mapping is unhashable.
    valid_int = isinstance(version, int) and not isinstance(version, bool)
    if not valid_int or version not in SUPPORTED_VERSIONS:
        raise SettingsError(
            f"Unsupported config version: {version!r}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    return Settings.from_dict(raw, path=path)


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Load and validate tlsgate configuration at startup.

    If no file is found, returns default Settings (not an error).
    If a file is found but invalid, writes the error to stderr and raises
    SystemExit(1) — tlsgate refuses to enforce a policy it cannot read.

    Raises:
        SystemExit(1): On any SettingsError, including an invalid TLSGATE_MODE.
    """
    found_path = find_config_path(config_path)

    try:
        if found_path is None:
            logger.info("No config file found — using defaults")
            settings = apply_env_overrides(Settings.defaults())
        else:
            logger.info("Loading config", path=found_path)
            settings = read_settings_file(found_path)
    except SettingsError as exc:
        print(f"CONFIG ERROR: {exc}", file=sys.stderr)
        raise SystemExit(1)

    if settings.mode is Mode.OFF:
        logger.info("Mode is off; tlsgate not activated", path=found_path)

    if settings.offloaded_security_headers:
        logger.warning(
            "Offloaded security headers are trusted — make sure the upstream proxy "
            "strips them from client requests",
            headers=[name for name, _ in settings.offloaded_security_headers],
        )

    logger.info(
        "Config loaded",
        path=found_path,
        mode=settings.mode.value,
        rules=len(settings.rules),
        bypass_security_warning=settings.bypass_security_warning,
    )
    return settings


def apply_env_overrides(settings: Settings) -> Settings:
    """Return a copy of ``settings`` with environment overrides applied.

    Currently handles:
      TLSGATE_MODE — overrides settings.mode

    Raises:
        SettingsError: If TLSGATE_MODE is set to an unknown value.
    """
    env_mode = os.environ.get("TLSGATE_MODE")
    if env_mode is not None:
        try:
            mode = Mode.parse(env_mode)
        except SettingsError as exc:
            raise SettingsError(f"TLSGATE_MODE environment variable: {exc}") from exc
        settings = dataclasses.replace(settings, mode=mode)
    return settings


# ─── Parsing helpers ──────────────────────────────────────────────────────────


def _parse_bool(value: Any, name: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise SettingsError(f"Invalid {name}: {value!r}. Must be true or false.")
    return value


def _parse_port(value: Any, name: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or not 0 < value < 65536:
        raise SettingsError(f"Invalid {name}: {value!r}. Must be an integer in 1-65535.")
    return value


def _parse_base_url(value: Any, name: str) -> Optional[str]:
    if value is None or value == "":
        return None
    if not isinstance(value, str) or not value.lower().startswith(("http://", "https://")):
        raise SettingsError(f"Invalid {name}: {value!r}. Must be an absolute http(s) URL.")
    return value.rstrip("/")


def _parse_extensions(value: Any) -> frozenset[str]:
    if value is None:
        return DEFAULT_IGNORED_EXTENSIONS
    if not isinstance(value, list):
        raise SettingsError("'ignored_extensions' must be a list")
    extensions = set()
    for item in value:
        if not isinstance(item, str) or not item.strip("."):
            logger.warning("Ignoring invalid extension entry", entry=item)
            continue
        extensions.add("." + item.strip().lstrip(".").lower())
    return frozenset(extensions)


def _parse_offloaded_headers(value: Any) -> tuple[tuple[str, Optional[str]], ...]:
    """Accept "Header=value" / "Header" strings or {name:, value:} mappings."""
    if value is None:
        return ()
    if not isinstance(value, list):
        raise SettingsError("'offloaded_security_headers' must be a list")

    parsed: list[tuple[str, Optional[str]]] = []
    for item in value:
        if isinstance(item, str):
            name, sep, expected = item.partition("=")
            header = (name.strip(), expected.strip() if sep else None)
        elif isinstance(item, dict) and isinstance(item.get("name"), str):
            expected_value = item.get("value")
            header = (item["name"].strip(), str(expected_value) if expected_value is not None else None)
        else:
            raise SettingsError(f"Invalid offloaded security header entry: {item!r}")
        if not header[0]:
            raise SettingsError(f"Invalid offloaded security header entry: {item!r}")
        parsed.append((header[0].lower(), header[1]))
    return tuple(parsed)

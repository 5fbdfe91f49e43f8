"""YAML rules configuration loading and saving."""

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import ConfigError, GlobCompileError
from .matcher import ExclusionSet
from .models import (
    CopyRule,
    FeatureFlags,
    RulesConfig,
    ScheduledActionsConfig,
    SmartOrganizationConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.config/usb-ingest/rules.yaml")

DEFAULT_EXCLUSIONS = (
    ".DS_Store",
    "._*",
    ".Spotlight-V100",
    ".Trashes",
    ".fseventsd",
    "**/__MACOSX/**",
    "Thumbs.db",
    "desktop.ini",
    "System Volume Information",
)

DEFAULT_CONFIG = RulesConfig(exclusions=DEFAULT_EXCLUSIONS)


def _expect(value: Any, kind: type, where: str) -> Any:
    if not isinstance(value, kind):
        raise ConfigError(f"{where} must be a {kind.__name__}, got {type(value).__name__}")
    return value


def _section(data: dict, key: str) -> dict:
    value = data.get(key)
    if value is None:
        return {}
    return _expect(value, dict, key)


def _bool(data: dict, key: str, where: str, default: bool = False) -> bool:
    return _expect(data.get(key, default), bool, f"{where}.{key}")


def parse_config(data: Any) -> RulesConfig:
    """
    Build a RulesConfig from a decoded YAML document.

    Every rule and exclusion pattern is compiled here, so a bad glob is
    reported now rather than in the middle of a scan.

    Raises:
        ConfigError: on a wrong shape or an invalid pattern.
    """
    if data is None:
        data = {}
    _expect(data, dict, "config")

    rules = []
    for i, raw in enumerate(_expect(data.get("rules") or [], list, "rules")):
        where = f"rules[{i}]"
        _expect(raw, dict, where)
        for key in ("match", "destination"):
            if key not in raw:
                raise ConfigError(f"{where} is missing '{key}'")
            _expect(raw[key], str, f"{where}.{key}")
        try:
            rules.append(CopyRule(
                match=raw["match"],
                destination=raw["destination"],
                enabled=_bool(raw, "enabled", where, default=True),
            ))
        except GlobCompileError as e:
            raise ConfigError(f"{where}: {e}") from e

    unmatched = _section(data, "defaults").get("unmatchedDestination")
    if unmatched is not None:
        _expect(unmatched, str, "defaults.unmatchedDestination")

    exclusions = tuple(_expect(data.get("exclusions") or [], list, "exclusions"))
    for i, pattern in enumerate(exclusions):
        _expect(pattern, str, f"exclusions[{i}]")
    try:
        ExclusionSet(exclusions)
    except GlobCompileError as e:
        raise ConfigError(f"exclusions: {e}") from e

    features = _section(data, "features")
    smart = _section(data, "smartOrganization")
    actions = _section(data, "scheduledActions")

    return RulesConfig(
        rules=tuple(rules),
        unmatched_destination=unmatched,
        exclusions=exclusions,
        features=FeatureFlags(
            copy_history=_bool(features, "copyHistory", "features"),
            smart_organization=_bool(features, "smartOrganization", "features"),
            content_duplicates=_bool(features, "contentDuplicates", "features"),
            scheduled_actions=_bool(features, "scheduledActions", "features"),
        ),
        smart_organization=SmartOrganizationConfig(
            pattern=_expect(
                smart.get("pattern", SmartOrganizationConfig.pattern), str, "smartOrganization.pattern"
            ),
        ),
        scheduled_actions=ScheduledActionsConfig(
            auto_delete_after_copy=_bool(actions, "autoDeleteAfterCopy", "scheduledActions"),
            auto_eject_after_copy=_bool(actions, "autoEjectAfterCopy", "scheduledActions"),
        ),
    )


def config_to_dict(config: RulesConfig) -> dict:
    """Inverse of parse_config."""
    return {
        "rules": [rule.to_dict() for rule in config.rules],
        "defaults": {"unmatchedDestination": config.unmatched_destination},
        "exclusions": list(config.exclusions),
        "features": {
            "copyHistory": config.features.copy_history,
            "smartOrganization": config.features.smart_organization,
            "contentDuplicates": config.features.content_duplicates,
            "scheduledActions": config.features.scheduled_actions,
        },
        "smartOrganization": {"pattern": config.smart_organization.pattern},
        "scheduledActions": {
            "autoDeleteAfterCopy": config.scheduled_actions.auto_delete_after_copy,
            "autoEjectAfterCopy": config.scheduled_actions.auto_eject_after_copy,
        },
    }


def save_rules(config: RulesConfig, config_path: Path = DEFAULT_CONFIG_PATH) -> None:
    """Write a config back to disk as YAML."""
    config_path = Path(config_path).expanduser()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config_to_dict(config), f, sort_keys=False)


def load_rules(config_path: Path = DEFAULT_CONFIG_PATH) -> RulesConfig:
    """Load the rules config. A missing file is created with the defaults."""
    config_path = Path(config_path).expanduser()
    if not config_path.exists():
        try:
            save_rules(DEFAULT_CONFIG, config_path)
        except OSError as e:
            raise ConfigError(f"Cannot create default config at {config_path}: {e}") from e
        logger.info("Created default config at %s", config_path)
        return DEFAULT_CONFIG

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {config_path}: {e}") from e

    return parse_config(data)


def load_rules_or_default(
    config_path: Path = DEFAULT_CONFIG_PATH,
    fallback: Optional[RulesConfig] = None,
) -> RulesConfig:
    """Load the rules config, falling back to the last good one on error."""
    try:
        return load_rules(config_path)
    except ConfigError as e:
        logger.error("Error loading config, using %s: %s",
                     "last known good config" if fallback else "defaults", e)
        return fallback if fallback is not None else DEFAULT_CONFIG

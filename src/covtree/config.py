"""Configuration parsing from ``.covtree.yml`` and live configuration updates."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from covtree.coverage.metrics import DisplayedCoveragePercent
from covtree.utils.events import Emitter

if TYPE_CHECKING:
    from collections.abc import Callable

    from covtree.utils.events import Subscription

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".covtree.yml"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

_REPORT_FORMATS = {"auto", "istanbul", "coverage.py"}


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        else:
            result[key] = value
    return result


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {})
    return value if isinstance(value, dict) else {}


@dataclass
class DisplayConfig:
    """How coverage percentages are presented."""

    coverage_percent: DisplayedCoveragePercent = DisplayedCoveragePercent.TOTAL_COVERAGE
    """Which scalar is shown as a node's coverage (statement, minimum, totalCoverage)."""

    compact: bool = False
    """Show only the overall bar instead of one bar per category."""

    max_depth: int = 0
    """Deepest tree level printed by the terminal reporter (0 = unlimited)."""


@dataclass
class ThresholdsConfig:
    """Color cut-offs for coverage fractions (0.0-1.0)."""

    good: float = 0.9
    """Fraction at or above which coverage is shown as good."""

    warning: float = 0.8
    """Fraction at or above which coverage is shown as a warning."""


@dataclass
class ReportConfig:
    """Location and format of the coverage report to load."""

    path: str = "coverage/coverage-final.json"
    """Report file, relative to the project root."""

    format: str = "auto"
    """Report format: auto, istanbul or coverage.py."""

    root: str = ""
    """Directory that relative file paths in the report are resolved against."""


@dataclass
class CovtreeConfig:
    """Complete covtree configuration from ``.covtree.yml``."""

    root: str
    """Project root directory."""

    display: DisplayConfig = field(default_factory=DisplayConfig)
    thresholds: ThresholdsConfig = field(default_factory=ThresholdsConfig)
    report: ReportConfig = field(default_factory=ReportConfig)

    @property
    def report_path(self) -> Path:
        return Path(self.root) / self.report.path


def _parse_coverage_percent(value: Any) -> DisplayedCoveragePercent:
    """Parse the displayed-percent option, accepting values and member names."""
    if isinstance(value, DisplayedCoveragePercent):
        return value
    text = str(value).strip()
    for member in DisplayedCoveragePercent:
        if text in {member.value, member.name, member.name.lower()}:
            return member
    msg = (
        f"display.coverage_percent must be one of "
        f"{', '.join(m.value for m in DisplayedCoveragePercent)} (got: {value!r})"
    )
    raise ValueError(msg)


def _parse_display_config(raw: dict[str, Any]) -> DisplayConfig:
    """Parse display configuration from raw YAML."""
    display_raw = _section(raw, "display")
    default = DisplayConfig()
    return DisplayConfig(
        coverage_percent=_parse_coverage_percent(
            display_raw.get("coverage_percent", default.coverage_percent)
        ),
        compact=bool(display_raw.get("compact", default.compact)),
        max_depth=int(display_raw.get("max_depth", default.max_depth)),
    )


def _parse_thresholds_config(raw: dict[str, Any]) -> ThresholdsConfig:
    """Parse color thresholds from raw YAML."""
    thresholds_raw = _section(raw, "thresholds")
    return ThresholdsConfig(
        good=float(thresholds_raw.get("good", 0.9)),
        warning=float(thresholds_raw.get("warning", 0.8)),
    )


def _parse_report_config(raw: dict[str, Any]) -> ReportConfig:
    """Parse report location from raw YAML."""
    report_raw = _section(raw, "report")
    default = ReportConfig()
    return ReportConfig(
        path=str(report_raw.get("path", default.path)),
        format=str(report_raw.get("format", default.format)),
        root=str(report_raw.get("root", default.root)),
    )


def load_config(root: str | Path) -> CovtreeConfig:
    """Load and parse ``.covtree.yml`` from *root*.

    Falls back to defaults when the file is missing or incomplete.

    Raises:
        ValueError: If ``display.coverage_percent`` names an unknown mode.
    """
    root_path = Path(root).resolve()
    config_file = root_path / CONFIG_FILE_NAME

    raw: dict[str, Any] = {}
    if config_file.is_file():
        parsed = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        if isinstance(parsed, dict):
            raw = _resolve_dict(parsed)
        elif parsed is not None:
            logger.warning("Ignoring %s: top level is not a mapping", config_file)

    return CovtreeConfig(
        root=str(root_path),
        display=_parse_display_config(raw),
        thresholds=_parse_thresholds_config(raw),
        report=_parse_report_config(raw),
    )


def _validate_thresholds_config(thresholds: ThresholdsConfig) -> list[str]:
    """Validate color threshold settings."""
    errors: list[str] = []

    if not 0.0 <= thresholds.good <= 1.0:
        errors.append(f"thresholds.good must be between 0.0 and 1.0 (got: {thresholds.good})")

    if not 0.0 <= thresholds.warning <= 1.0:
        errors.append(
            f"thresholds.warning must be between 0.0 and 1.0 (got: {thresholds.warning})"
        )

    if thresholds.warning > thresholds.good:
        errors.append(
            f"thresholds.warning must not exceed thresholds.good "
            f"(got: {thresholds.warning} > {thresholds.good})"
        )

    return errors


def _validate_display_config(display: DisplayConfig) -> list[str]:
    """Validate display settings."""
    errors: list[str] = []

    if display.max_depth < 0:
        errors.append(f"display.max_depth must be non-negative (got: {display.max_depth})")

    return errors


def _validate_report_config(report: ReportConfig) -> list[str]:
    """Validate report settings."""
    errors: list[str] = []

    if not report.path:
        errors.append("report.path is required")

    if report.format not in _REPORT_FORMATS:
        errors.append(
            f"report.format must be one of {', '.join(sorted(_REPORT_FORMATS))} "
            f"(got: {report.format})"
        )

    return errors


def validate_config(config: CovtreeConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors: list[str] = []

    if not config.root:
        errors.append("root is required")

    errors.extend(_validate_display_config(config.display))
    errors.extend(_validate_thresholds_config(config.thresholds))
    errors.extend(_validate_report_config(config.report))

    return errors


# ── Live configuration ───────────────────────────────────────────


class ConfigKeys:
    """Dotted keys accepted by :class:`ConfigurationService`."""

    COVERAGE_PERCENT = "display.coverage_percent"
    COMPACT = "display.compact"
    MAX_DEPTH = "display.max_depth"
    THRESHOLD_GOOD = "thresholds.good"
    THRESHOLD_WARNING = "thresholds.warning"


@dataclass(frozen=True, slots=True)
class ConfigurationChangeEvent:
    """Describes which keys changed in an update."""

    keys: frozenset[str]

    def affects_configuration(self, key: str) -> bool:
        """Return True if *key*, or a section containing it, changed."""
        return any(key == changed or key.startswith(f"{changed}.") for changed in self.keys)


_SECTIONS = ("display", "thresholds", "report")


class ConfigurationService:
    """Holds the active configuration and notifies listeners when it changes."""

    def __init__(self, config: CovtreeConfig) -> None:
        self._config = config
        self._emitter: Emitter[ConfigurationChangeEvent] = Emitter()

    @property
    def config(self) -> CovtreeConfig:
        return self._config

    @property
    def displayed_coverage_percent(self) -> DisplayedCoveragePercent:
        return self._config.display.coverage_percent

    def get(self, key: str) -> Any:
        """Return the value at a dotted *key* such as ``display.compact``."""
        section_name, _, attr = key.partition(".")
        if section_name not in _SECTIONS or not attr:
            msg = f"Unknown configuration key: {key}"
            raise KeyError(msg)
        section = getattr(self._config, section_name)
        if not hasattr(section, attr):
            msg = f"Unknown configuration key: {key}"
            raise KeyError(msg)
        return getattr(section, attr)

    def update(self, key: str, value: Any) -> None:
        """Set a dotted *key* and notify listeners if the value changed."""
        current = self.get(key)
        if key == ConfigKeys.COVERAGE_PERCENT:
            value = _parse_coverage_percent(value)
        if current == value:
            return

        section_name, _, attr = key.partition(".")
        section = replace(getattr(self._config, section_name), **{attr: value})
        self._config = replace(self._config, **{section_name: section})
        logger.debug("Configuration %s changed: %r -> %r", key, current, value)
        self._emitter.fire(ConfigurationChangeEvent(keys=frozenset({key})))

    def on_did_change(self, listener: Callable[[ConfigurationChangeEvent], None]) -> Subscription:
        """Register *listener* for configuration changes."""
        return self._emitter.subscribe(listener)

"""Session and classifier configuration."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

from ..analysis.emergency import EmergencyClassifier
from ..analysis.evidence import EmergencyType
from ..analysis.keywords import (
    AUTOMATED_PHRASES,
    DEFAULT_CUSTOM_EMERGENCY_KEYWORDS,
    EMERGENCY_KEYWORDS,
    GENERIC_SPAM_PHRASES,
    ROBOT_KEYWORDS,
    SPAM_CATEGORY_KEYWORDS,
)
from ..analysis.legitimacy import LegitimacyClassifier
from ..analysis.robot import TextPatternRobotDetector
from ..analysis.spam import SpamClassifier
from .errors import ConfigError

logger = logging.getLogger(__name__)

MIN_BUDGET_MS = 5000
MAX_BUDGET_MS = 20000
DEFAULT_BUDGET_MS = 12000
DEFAULT_CHUNK_INTERVAL_MS = 2000

CONFIG_SEARCH_PATHS = ["./config.yaml", "~/.config/screener/config.yaml"]

_LEGITIMACY_SETS = ("conversation", "work", "official", "delivery", "bank_verification", "medical", "school")


def _clean_names(values: Iterable[str]) -> tuple[str, ...]:
    if isinstance(values, str):
        values = (values,)
    cleaned = []
    for value in values:
        if not isinstance(value, str):
            raise ConfigError(f"Expected a string, got {value!r}")
        value = value.strip()
        if value and value not in cleaned:
            cleaned.append(value)
    return tuple(cleaned)


@dataclass(frozen=True)
class SessionConfig:
    """Per-call analysis settings, fixed once a session starts."""
    budget_ms: int = DEFAULT_BUDGET_MS
    chunk_interval_ms: int = DEFAULT_CHUNK_INTERVAL_MS
    user_name: str = ""
    family_names: tuple[str, ...] = field(default_factory=tuple)
    custom_keywords: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if isinstance(self.budget_ms, bool) or not isinstance(self.budget_ms, int):
            raise ConfigError(f"budget_ms must be an integer, got {self.budget_ms!r}")
        if not MIN_BUDGET_MS <= self.budget_ms <= MAX_BUDGET_MS:
            raise ConfigError(
                f"budget_ms must be between {MIN_BUDGET_MS} and {MAX_BUDGET_MS}, got {self.budget_ms}"
            )
        if isinstance(self.chunk_interval_ms, bool) or not isinstance(self.chunk_interval_ms, int):
            raise ConfigError(f"chunk_interval_ms must be an integer, got {self.chunk_interval_ms!r}")
        if not 0 < self.chunk_interval_ms <= self.budget_ms:
            raise ConfigError(
                f"chunk_interval_ms must be positive and at most budget_ms, got {self.chunk_interval_ms}"
            )
        if not isinstance(self.user_name, str):
            raise ConfigError(f"user_name must be a string, got {self.user_name!r}")

        object.__setattr__(self, "user_name", self.user_name.strip())
        object.__setattr__(self, "family_names", _clean_names(self.family_names))
        object.__setattr__(self, "custom_keywords", _clean_names(self.custom_keywords))

    @classmethod
    def from_dict(cls, data: Optional[dict], **overrides) -> "SessionConfig":
        """
        Build from the ``session`` section of a config file.

        Args:
            data: Parsed ``session`` mapping (may be None)
            **overrides: Values that win over the file, None entries ignored

        Returns:
            Validated SessionConfig
        """
        data = dict(data or {})
        values = {
            "budget_ms": data.get("budget_ms", DEFAULT_BUDGET_MS),
            "chunk_interval_ms": data.get("chunk_interval_ms", DEFAULT_CHUNK_INTERVAL_MS),
            "user_name": data.get("user_name") or "",
            "family_names": _clean_names(data.get("family_names") or ()),
            "custom_keywords": _clean_names(data.get("custom_keywords") or ()),
        }
        if data.get("default_keywords", False):
            values["custom_keywords"] += DEFAULT_CUSTOM_EMERGENCY_KEYWORDS

        for key, value in overrides.items():
            if key not in values:
                raise ConfigError(f"Unknown session setting: {key}")
            if value is not None:
                values[key] = value

        return cls(**values)

    def to_dict(self) -> dict:
        return {
            "budget_ms": self.budget_ms,
            "chunk_interval_ms": self.chunk_interval_ms,
            "user_name": self.user_name,
            "family_names": list(self.family_names),
            "custom_keywords": list(self.custom_keywords),
        }


def load_config(config_path: Optional[str] = None) -> dict:
    """
    Load configuration from a YAML file.

    An explicit path is used if it exists; otherwise ./config.yaml and
    ~/.config/screener/config.yaml are tried in order.

    Returns:
        Parsed configuration, empty when no file is found
    """
    import yaml

    candidates = [config_path] if config_path else []
    candidates.extend(CONFIG_SEARCH_PATHS)

    for candidate in candidates:
        path = Path(candidate).expanduser()
        if not path.exists():
            continue
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping at the top level")
        logger.debug(f"Loaded configuration from {path}")
        return data

    return {}


def _extra_words(section: dict, key: str, where: str) -> list[str]:
    values = section.get(key) or []
    if isinstance(values, str) or not isinstance(values, (list, tuple)):
        raise ConfigError(f"keywords.{where}.{key} must be a list of strings")
    for value in values:
        if not isinstance(value, str):
            raise ConfigError(f"keywords.{where}.{key} has non-string entry: {value!r}")
    return list(values)


def _check_keys(section: dict, allowed: Iterable[str], where: str):
    if not isinstance(section, dict):
        raise ConfigError(f"keywords.{where} must be a mapping")
    unknown = set(section) - set(allowed)
    if unknown:
        raise ConfigError(f"Unknown keys in keywords.{where}: {', '.join(sorted(unknown))}")


def build_classifiers(keywords: Optional[dict] = None) -> dict[str, Any]:
    """
    Build text classifiers with user keyword additions merged in.

    Additions extend the default sets; weights and caps are unchanged.

    Args:
        keywords: Parsed ``keywords`` section of a config file

    Returns:
        Keyword arguments for AnalysisOrchestrator: robot_detector,
        emergency_classifier, legitimacy_classifier, spam_classifier
    """
    keywords = keywords or {}
    if not isinstance(keywords, dict):
        raise ConfigError("keywords section must be a mapping")
    _check_keys(keywords, ("spam", "emergency", "legitimacy", "robot"), "")

    spam_cfg = keywords.get("spam") or {}
    spam_keys = [c.value for c in SPAM_CATEGORY_KEYWORDS] + ["generic"]
    _check_keys(spam_cfg, spam_keys, "spam")
    spam_sets = {
        category: keyword_set.extended(_extra_words(spam_cfg, category.value, "spam"))
        for category, keyword_set in SPAM_CATEGORY_KEYWORDS.items()
    }
    generic = GENERIC_SPAM_PHRASES.extended(_extra_words(spam_cfg, "generic", "spam"))

    emergency_cfg = keywords.get("emergency") or {}
    _check_keys(emergency_cfg, [t.value for t in EmergencyType], "emergency")
    emergency_sets = {
        emergency_type: keyword_set.extended(_extra_words(emergency_cfg, emergency_type.value, "emergency"))
        for emergency_type, keyword_set in EMERGENCY_KEYWORDS.items()
    }

    legitimacy_cfg = keywords.get("legitimacy") or {}
    _check_keys(legitimacy_cfg, _LEGITIMACY_SETS, "legitimacy")
    defaults = LegitimacyClassifier()
    legitimacy = LegitimacyClassifier(**{
        name: getattr(defaults, name).extended(_extra_words(legitimacy_cfg, name, "legitimacy"))
        for name in _LEGITIMACY_SETS
    })

    robot_cfg = keywords.get("robot") or {}
    _check_keys(robot_cfg, ("phrases", "keywords"), "robot")
    robot = TextPatternRobotDetector(
        automated_phrases=AUTOMATED_PHRASES.extended(_extra_words(robot_cfg, "phrases", "robot")),
        robot_keywords=ROBOT_KEYWORDS.extended(_extra_words(robot_cfg, "keywords", "robot")),
    )

    return {
        "robot_detector": robot,
        "emergency_classifier": EmergencyClassifier(emergency_sets),
        "legitimacy_classifier": legitimacy,
        "spam_classifier": SpamClassifier(spam_sets, generic),
    }


"""Tests for session and keyword configuration."""

from dataclasses import FrozenInstanceError

import pytest

from screener.analysis.evidence import SpamCategory
from screener.core.config import SessionConfig, build_classifiers, load_config
from screener.core.errors import ConfigError


def test_defaults():
    config = SessionConfig()

    assert config.budget_ms == 12000
    assert config.chunk_interval_ms == 2000
    assert config.user_name == ""
    assert config.family_names == ()


@pytest.mark.parametrize("budget", [4999, 20001, 0, -1])
def test_budget_out_of_range(budget):
    with pytest.raises(ConfigError):
        SessionConfig(budget_ms=budget)


@pytest.mark.parametrize("budget", [5000, 20000])
def test_budget_bounds_inclusive(budget):
    assert SessionConfig(budget_ms=budget).budget_ms == budget


@pytest.mark.parametrize("interval", [0, -100, 6000])
def test_bad_chunk_interval(interval):
    with pytest.raises(ConfigError):
        SessionConfig(budget_ms=5000, chunk_interval_ms=interval)


def test_names_are_normalized():
    config = SessionConfig(user_name="  Marta ", family_names=(" Pedro", "", "Pedro", "Ana"))

    assert config.user_name == "Marta"
    assert config.family_names == ("Pedro", "Ana")


def test_config_is_immutable():
    config = SessionConfig()
    with pytest.raises(FrozenInstanceError):
        config.budget_ms = 6000


def test_from_dict_with_overrides():
    data = {
        "budget_ms": 8000,
        "user_name": "Marta",
        "family_names": ["Pedro"],
        "custom_keywords": ["flood"],
    }
    config = SessionConfig.from_dict(data, user_name="Laura", budget_ms=None)

    assert config.budget_ms == 8000
    assert config.user_name == "Laura"
    assert config.family_names == ("Pedro",)
    assert config.custom_keywords == ("flood",)


def test_from_dict_default_keywords():
    config = SessionConfig.from_dict({"default_keywords": True, "custom_keywords": ["flood"]})

    assert config.custom_keywords[0] == "flood"
    assert "ambulancia" in config.custom_keywords


def test_from_dict_rejects_unknown_override():
    with pytest.raises(ConfigError):
        SessionConfig.from_dict({}, colour="blue")


def test_load_config_explicit_path(tmp_path):
    path = tmp_path / "screener.yaml"
    path.write_text("session:\n  budget_ms: 9000\nvosk:\n  model_path: /models/es\n")

    data = load_config(str(path))

    assert data["session"]["budget_ms"] == 9000
    assert data["vosk"]["model_path"] == "/models/es"


def test_load_config_missing(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    assert load_config(str(tmp_path / "nope.yaml")) == {}


def test_load_config_rejects_non_mapping(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(ConfigError):
        load_config(str(path))


def test_build_classifiers_extends_keywords():
    classifiers = build_classifiers({
        "spam": {"scam": ["bitcoin", "crypto wallet"]},
        "robot": {"phrases": ["connecting you to an agent"]},
        "legitimacy": {"delivery": ["pickup point"]},
    })

    spam = classifiers["spam_classifier"].analyze("send bitcoin to this crypto wallet")
    assert spam.category is SpamCategory.SCAM

    robot = classifiers["robot_detector"].detect("we are connecting you to an agent")
    assert robot.is_robot

    assert "pickup point" in classifiers["legitimacy_classifier"].delivery.keywords


def test_build_classifiers_defaults():
    classifiers = build_classifiers(None)
    assert set(classifiers) == {"robot_detector", "emergency_classifier", "legitimacy_classifier", "spam_classifier"}


@pytest.mark.parametrize("keywords", [
    {"spam": {"crypto": ["bitcoin"]}},
    {"weather": {}},
    {"spam": {"scam": "bitcoin"}},
    {"emergency": {"medical": [42]}},
    {"robot": ["press"]},
])
def test_build_classifiers_rejects_bad_sections(keywords):
    with pytest.raises(ConfigError):
        build_classifiers(keywords)

"""Tests for consent_pilot.models and consent_pilot.config."""

from __future__ import annotations

import pytest

from consent_pilot.config import FeatureSet, KnownSites, PilotConfig, load_config
from consent_pilot.models import ACCEPT_ALL, ESSENTIAL_ONLY, ConsentPolicy


class TestConsentPolicy:
    def test_essential_cannot_be_disabled(self) -> None:
        assert ConsentPolicy(essential=False).essential is True

    def test_presets(self) -> None:
        assert ESSENTIAL_ONLY.essential_only
        assert not ESSENTIAL_ONLY.accept_all
        assert ACCEPT_ALL.accept_all
        assert not ACCEPT_ALL.essential_only

    def test_partial_policy_is_neither(self) -> None:
        policy = ConsentPolicy(analytics=True)
        assert not policy.essential_only
        assert not policy.accept_all
        assert policy.label == "custom(essential,analytics)"

    def test_labels(self) -> None:
        assert ESSENTIAL_ONLY.label == "essential"
        assert ACCEPT_ALL.label == "accept-all"

    @pytest.mark.parametrize("name, expected", [
        ("essential", ESSENTIAL_ONLY),
        ("Reject", ESSENTIAL_ONLY),
        ("accept-all", ACCEPT_ALL),
        ("all", ACCEPT_ALL),
        ("functional, marketing", ConsentPolicy(functional=True, marketing=True)),
    ])
    def test_from_name(self, name, expected) -> None:
        assert ConsentPolicy.from_name(name) == expected

    def test_from_name_unknown_category(self) -> None:
        with pytest.raises(ValueError):
            ConsentPolicy.from_name("analytics,tracking")

    def test_mapping_round_trip(self) -> None:
        policy = ConsentPolicy(functional=True)
        assert ConsentPolicy.from_mapping(policy.as_dict()) == policy
        assert ConsentPolicy.from_mapping(None) == ESSENTIAL_ONLY


class TestFeatureSet:
    def test_defaults_on(self) -> None:
        features = FeatureSet()
        assert features.enabled("AUTO_DETECT_CMP")
        assert "CMP_GENERIC" in features

    def test_unknown_keys_off(self) -> None:
        assert not FeatureSet().enabled("TELEPORT")

    def test_overrides(self) -> None:
        features = FeatureSet({"CMP_GENERIC": False, "EXTRA": 1})
        assert not features.enabled("CMP_GENERIC")
        assert features.enabled("EXTRA")


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path) -> None:
        config = load_config(tmp_path / "missing.yaml")
        assert config.engine.max_attempts == 5
        assert config.known_sites.delayed_retry_ms == [20000, 45000]
        assert config.project_root == tmp_path

    def test_yaml_overrides(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "engine:\n"
            "  max_attempts: 2\n"
            "  retry_interval_ms: 100\n"
            "  not_a_setting: 7\n"
            "features:\n"
            "  CMP_QUANTCAST: false\n"
            "known_sites:\n"
            "  skip: [bank.example]\n"
            "  site_rules:\n"
            "    - name: Local paper\n"
            "      hosts: [paper.example]\n"
            "      reject_phrases: [nein]\n"
            "browser:\n"
            "  viewport:\n"
            "    width: 800\n"
            "database:\n"
            "  path: state/consent.db\n"
        )
        config = load_config(path)
        assert config.engine.max_attempts == 2
        assert config.engine.retry_interval_ms == 100
        assert config.engine.give_up_ms == 15000
        assert not config.feature_set().enabled("CMP_QUANTCAST")
        assert config.known_sites.skip == ["bank.example"]
        assert [r.name for r in config.known_sites.site_rules] == ["Local paper"]
        assert config.known_sites.site_rules[0].reject_phrases == ["nein"]
        assert config.browser.viewport.width == 800
        assert config.browser.viewport.height == 800
        assert config.resolve_path(config.database.path) == tmp_path / "state" / "consent.db"

    def test_default_site_rules_kept(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("known_sites:\n  slow: [slow.example]\n")
        config = load_config(path)
        assert config.known_sites.slow == ["slow.example"]
        assert config.known_sites.site_rules == KnownSites().site_rules

    def test_absolute_paths_untouched(self, tmp_path) -> None:
        config = PilotConfig(project_root=tmp_path)
        assert config.resolve_path("/var/lib/consent.db").is_absolute()

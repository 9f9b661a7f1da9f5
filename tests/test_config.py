"""
Tests for configuration resolution and YAML loading.
"""

import pytest

from rstyle.errors import ConfigurationError
from rstyle.lint.config import DEFAULT_RULES, default_workers, load_config, resolve_config
from rstyle.lint.reporting import Severity


class TestResolveConfig:

    def test_defaults(self):
        config = resolve_config()
        assert set(config.rules) == set(DEFAULT_RULES)
        assert config.rule("nesting_depth").get("max_depth") == 3
        assert config.rule("quote_style").get("preferred_quote") == '"'
        assert config.rule("quote_style").severity is None

    def test_defaults_are_not_shared(self):
        config = resolve_config()
        config.rule("naming_convention").parameters["reserved_names"].append("zzz")
        assert "zzz" not in DEFAULT_RULES["naming_convention"]["parameters"]["reserved_names"]

    def test_override(self):
        config = resolve_config({
            "nesting_depth": {"severity": "ERROR", "parameters": {"max_depth": 5}},
            "quote_style": False,
        })
        assert config.rule("nesting_depth").severity == Severity.ERROR
        assert config.rule("nesting_depth").get("max_depth") == 5
        assert not config.is_enabled("quote_style")
        assert "quote_style" not in config.enabled_rules

    def test_severity_for(self):
        config = resolve_config({"indentation": {"severity": "warn"}})
        assert config.severity_for("indentation", Severity.INFO) == Severity.WARNING
        assert config.severity_for("quote_style", Severity.INFO) == Severity.INFO

    @pytest.mark.parametrize("mapping", [
        {"no_such_rule": {}},
        {"rule_crashed": {"enabled": False}},
        {"quote_style": {"parameters": {"unknown": 1}}},
        {"quote_style": {"severity": "fatal"}},
        {"quote_style": {"enabled": "yes"}},
        {"quote_style": {"colour": "red"}},
        {"quote_style": {"parameters": {"preferred_quote": "`"}}},
        {"nesting_depth": {"parameters": {"max_depth": "3"}}},
        {"nesting_depth": {"parameters": {"max_depth": -1}}},
        {"nesting_depth": {"parameters": {"max_depth": True}}},
        {"naming_convention": {"parameters": {"pattern": "([a-z"}}},
        {"naming_convention": {"parameters": {"reserved_names": "c"}}},
        {"argument_order": {"parameters": {"signatures": {"f": "x"}}}},
        {"file_name": {"parameters": {"extensions": {".r": ".py"}}}},
        {"indentation": 3},
    ])
    def test_invalid(self, mapping):
        with pytest.raises(ConfigurationError):
            resolve_config(mapping)

    def test_error_names_rule(self):
        with pytest.raises(ConfigurationError) as exc:
            resolve_config({"quote_style": {"parameters": {"unknown": 1}}})
        assert exc.value.rule_id == "quote_style"
        assert "quote_style" in str(exc.value)


class TestLoadConfig:

    def test_no_file_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = load_config()
        assert config.config_path is None
        assert config.is_enabled("quote_style")

    def test_explicit_file(self, tmp_path):
        path = tmp_path / "style.yaml"
        path.write_text(
            "rules:\n"
            "  quote_style:\n"
            "    severity: error\n"
            "    parameters:\n"
            "      preferred_quote: \"'\"\n"
            "  nesting_depth: false\n"
            "exclude_dirs: [vendor]\n"
            "workers: 3\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.rule("quote_style").get("preferred_quote") == "'"
        assert config.rule("quote_style").severity == Severity.ERROR
        assert not config.is_enabled("nesting_depth")
        assert config.exclude_dirs == ("vendor",)
        assert config.workers == 3
        assert config.config_path == str(path)

    def test_search_path(self, tmp_path, monkeypatch):
        (tmp_path / ".rstyle.yaml").write_text("rules:\n  indentation: false\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        assert not load_config().is_enabled("indentation")

    def test_home_config(self, tmp_path, monkeypatch):
        home = tmp_path / "home"
        (home / ".rstyle").mkdir(parents=True)
        (home / ".rstyle" / "config.yaml").write_text("rules:\n  quote_style: false\n", encoding="utf-8")
        work = tmp_path / "work"
        work.mkdir()
        monkeypatch.chdir(work)
        assert not load_config().is_enabled("quote_style")

    def test_env_config(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yaml"
        path.write_text("rules:\n  naming_convention: false\n", encoding="utf-8")
        monkeypatch.setenv("RSTYLE_CONFIG", str(path))
        assert not load_config().is_enabled("naming_convention")

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("rules: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_unknown_top_level_key(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("rulez: {}\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_unknown_rule_in_file(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("rules:\n  spacing: {}\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(path)


class TestWorkers:

    def test_unset(self):
        assert default_workers() is None

    def test_env(self, monkeypatch):
        monkeypatch.setenv("RSTYLE_WORKERS", "6")
        assert default_workers() == 6

    @pytest.mark.parametrize("value", ["zero", "0", "-2"])
    def test_invalid_env(self, monkeypatch, value):
        monkeypatch.setenv("RSTYLE_WORKERS", value)
        with pytest.raises(ConfigurationError):
            default_workers()

    def test_env_beats_file(self, tmp_path, monkeypatch):
        path = tmp_path / "c.yaml"
        path.write_text("workers: 2\n", encoding="utf-8")
        monkeypatch.setenv("RSTYLE_WORKERS", "5")
        assert load_config(path).workers == 5

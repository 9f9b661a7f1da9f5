"""
Tests for file-name validation.
"""

from rstyle.lint.config import resolve_config
from rstyle.lint.filenames import find_collisions, validate_file_name, validate_file_names
from rstyle.parser.source import FILE_SPAN


class TestSinglePath:

    def test_conforming_names(self):
        assert validate_file_name("analysis/showcase_outlier.Rmd") == []
        assert validate_file_name("R/combine_a_and_b.R") == []

    def test_disallowed_characters(self):
        findings = validate_file_name("R/my file (copy).R")
        assert len(findings) == 1
        assert "' '" in findings[0].message
        assert "'('" in findings[0].message

    def test_suffix_case(self):
        findings = validate_file_name("R/helpers.r")
        assert len(findings) == 1
        assert "'.R'" in findings[0].message

    def test_unknown_suffix_is_ignored(self):
        assert validate_file_name("README.md") == []

    def test_problems_merge_into_one_finding(self):
        findings = validate_file_name("R/bad name.r")
        assert len(findings) == 1
        assert findings[0].span == FILE_SPAN

    def test_custom_extensions(self):
        config = resolve_config({"file_name": {"parameters": {"extensions": {".r": ".r"}}}})
        assert validate_file_name("R/x.r", config.rule("file_name")) == []

    def test_windows_separators(self):
        assert validate_file_name("R\\utils.R") == []


class TestCollisions:

    def test_case_fold_collision(self):
        findings = validate_file_names(["readme.md", "README.md"])
        assert len(findings) == 1
        assert findings[0].path == "README.md"
        assert findings[0].related_paths == ("readme.md",)
        assert "readme.md" in findings[0].message

    def test_no_collision(self):
        assert validate_file_names(["showcase_outlier.Rmd", "combine_a_and_b.R"]) == []

    def test_three_way_collision(self):
        collisions = find_collisions(["a/X.R", "a/x.R", "A/x.R"])
        assert collisions == {"A/x.R": ("a/X.R", "a/x.R")}

    def test_collision_and_name_problem_combine(self):
        findings = validate_file_names(["R/Data.r", "R/data.r"])
        assert [f.path for f in findings] == ["R/Data.r", "R/data.r"]
        assert "collides" in findings[0].message
        assert "'.R'" in findings[0].message

    def test_collisions_can_be_disabled(self):
        config = resolve_config({"file_name": {"parameters": {"check_collisions": False}}})
        assert validate_file_names(["a.R", "A.R"], config.rule("file_name")) == []

"""
Tests for cloud storage folder planning.
"""

from datetime import datetime, timedelta, timezone

import pytest

from articlevault.folder_path import (
    FolderPathContext,
    extract_domain,
    plan_folder_path,
    sanitize_folder_name,
)
from articlevault.models import FolderStructure

CREATED = datetime(2024, 3, 5, 9, 0, tzinfo=timezone.utc)


def context(**overrides):
    fields = {
        "title": "Why Tests Matter",
        "url": "https://blog.example.co/posts/why",
        "created_at": CREATED,
        "tags": ["Python", "Testing"],
    }
    fields.update(overrides)
    return FolderPathContext(**fields)


class TestPlanFolderPath:

    def test_no_structure_is_flat(self):
        assert plan_folder_path(context()) == "ArticleVault"

    def test_flat_with_custom_root(self):
        assert plan_folder_path(context(), FolderStructure("flat"), root="Archive") == "Archive"

    @pytest.mark.parametrize("date_format,expected", [
        ("YYYY-MM", "ArticleVault/2024-03"),
        ("YYYY-MM-DD", "ArticleVault/2024-03-05"),
        ("YYYY/MM", "ArticleVault/2024/03"),
    ])
    def test_date_strategy(self, date_format, expected):
        structure = FolderStructure("date", date_format=date_format)
        assert plan_folder_path(context(), structure) == expected

    def test_date_uses_utc(self):
        late_evening = datetime(2024, 3, 31, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        structure = FolderStructure("date", date_format="YYYY-MM")
        assert plan_folder_path(context(created_at=late_evening), structure) == "ArticleVault/2024-04"

    def test_domain_strategy(self):
        assert plan_folder_path(context(), FolderStructure("domain")) == "ArticleVault/example.co"

    def test_tags_strategy_uses_first_tag(self):
        assert plan_folder_path(context(), FolderStructure("tags")) == "ArticleVault/python"

    def test_tags_strategy_nested(self):
        structure = FolderStructure("tags", separate_by_tag=True)
        assert plan_folder_path(context(), structure) == "ArticleVault/python/testing"

    def test_tags_strategy_untagged(self):
        assert plan_folder_path(context(tags=[]), FolderStructure("tags")) == "ArticleVault/untagged"

    def test_custom_template(self):
        structure = FolderStructure("custom", custom_path="{year}/{month}/{domain}/{tag}")
        assert plan_folder_path(context(), structure) == "ArticleVault/2024/03/example.co/python"

    def test_custom_without_template_is_root(self):
        assert plan_folder_path(context(), FolderStructure("custom")) == "ArticleVault"

    def test_unknown_strategy_is_root(self):
        assert plan_folder_path(context(), FolderStructure("by-mood")) == "ArticleVault"

    def test_deterministic(self):
        structure = FolderStructure("custom", custom_path="{title}/{day}")
        assert plan_folder_path(context(), structure) == plan_folder_path(context(), structure)


class TestHelpers:

    def test_sanitize_folder_name(self):
        assert sanitize_folder_name('Machine: Learning / "AI"...') == "machine-learning-ai"

    def test_sanitize_truncates(self):
        assert len(sanitize_folder_name("x" * 300)) == 100

    def test_extract_domain_drops_www(self):
        assert extract_domain("https://www.example.com/a") == "example.com"

    def test_extract_domain_unknown(self):
        assert extract_domain("not a url") == "unknown"

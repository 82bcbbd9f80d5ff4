"""Tests for catalog entry parsing, latest-file selection and display formatting."""

from __future__ import annotations

import pytest

from addon_manager.domain.catalog_utils import (
    as_text,
    compare_file_ids,
    format_download_count,
    format_file_date,
    is_newer_file_id,
    normalize_addon_id,
    parse_addon_ids,
    parse_catalog_entry,
    select_latest_file,
)
from addon_manager.domain.models import GameVersion
from tests.conftest import make_entry, make_file, make_package


# ------------------------------------------------------------------
# Download count / date formatting
# ------------------------------------------------------------------

class TestFormatting:

    @pytest.mark.parametrize(
        "value, expected",
        [
            (1234567.0, "1,234,567"),
            (999, "999"),
            (1000, "1,000"),
            (100000, "100,000"),
            (0, "0"),
            (1234.99, "1,234"),
            ("45678", "45,678"),
            (-1234, "-1,234"),
            (12345678901, "12,345,678,901"),
        ],
    )
    def test_download_count_grouping(self, value, expected):
        assert format_download_count(value) == expected

    @pytest.mark.parametrize("value", [None, "lots", float("nan"), {}])
    def test_download_count_invalid_renders_zero(self, value):
        assert format_download_count(value) == "0"

    def test_file_date_keeps_calendar_prefix(self):
        assert format_file_date("2020-05-17T12:34:56.789Z") == "2020-05-17"

    def test_file_date_short_or_missing(self):
        assert format_file_date("2020") == "2020"
        assert format_file_date(None) == ""


# ------------------------------------------------------------------
# File id comparison
# ------------------------------------------------------------------

class TestFileIdComparison:

    def test_numeric_ids_compare_as_numbers(self):
        assert is_newer_file_id("10", "9")
        assert not is_newer_file_id("9", "10")

    def test_equal_ids_are_not_newer(self):
        assert compare_file_ids("12", "12") == 0
        assert not is_newer_file_id("12", "12")

    def test_numeric_tie_falls_back_to_string(self):
        assert compare_file_ids("7", "07") == 1

    def test_non_numeric_ids_compare_as_strings(self):
        assert is_newer_file_id("b", "a")

    def test_as_text_drops_integral_float_suffix(self):
        assert as_text(3001.0) == "3001"
        assert as_text(42) == "42"
        assert as_text(None) == ""


# ------------------------------------------------------------------
# Latest-file selection
# ------------------------------------------------------------------

class TestSelectLatestFile:

    def test_picks_greatest_stable_file_of_flavor(self):
        entry = make_entry(1, files=[
            make_file("5", flavor="wow_classic"),
            make_file("7", flavor="wow_classic"),
            make_file("9", flavor="wow_retail"),
        ])
        selected = select_latest_file(entry, GameVersion.CLASSIC)
        assert selected["id"] == "7"

    def test_ignores_beta_and_alpha(self):
        entry = make_entry(1, files=[
            make_file(5, flavor="wow_retail"),
            make_file(8, flavor="wow_retail", release_type=2),
            make_file(9, flavor="wow_retail", release_type=3),
        ])
        assert select_latest_file(entry, GameVersion.RETAIL)["id"] == 5

    def test_numeric_order_not_lexical(self):
        entry = make_entry(1, files=[make_file(998), make_file(1002)])
        assert select_latest_file(entry, GameVersion.CLASSIC)["id"] == 1002

    def test_no_applicable_file(self):
        entry = make_entry(1, files=[make_file(3, flavor="wow_retail")])
        assert select_latest_file(entry, GameVersion.CLASSIC) is None

    def test_missing_file_list(self):
        assert select_latest_file({"id": 1}, GameVersion.CLASSIC) is None

    def test_tbc_flavor(self):
        entry = make_entry(1, files=[make_file(3, flavor="wow_burning_crusade"), make_file(4)])
        assert select_latest_file(entry, GameVersion.TBC)["id"] == 3


# ------------------------------------------------------------------
# Entry -> Package mapping
# ------------------------------------------------------------------

class TestParseCatalogEntry:

    def test_maps_all_fields_as_strings(self):
        entry = make_entry(
            3358,
            name="Details!",
            files=[make_file(2950001, modules=["Details", "Details_Compare"], display_name="Details.v1.13")],
            download_count=1234567.0,
        )
        package = parse_catalog_entry(entry, GameVersion.CLASSIC)

        assert package.id == "3358"
        assert package.name == "Details!"
        assert package.file_id == "2950001"
        assert package.file_date == "2020-05-17"
        assert package.modules == ["Details", "Details_Compare"]
        assert package.download_url == "https://files.test/2950001/addon.zip"
        assert package.version == "Details.v1.13"
        assert package.game_version == "1.13.4"
        assert package.download_count == "1,234,567"

    def test_missing_game_version_list(self):
        entry = make_entry(1, files=[make_file(2, game_version=[])])
        assert parse_catalog_entry(entry, GameVersion.CLASSIC).game_version == ""

    def test_entry_without_file_is_skipped(self):
        assert parse_catalog_entry(make_entry(1, files=[]), GameVersion.CLASSIC) is None


# ------------------------------------------------------------------
# Batch lookup ids
# ------------------------------------------------------------------

def test_parse_addon_ids_drops_invalid_and_zero():
    packages = [make_package("12"), make_package("abc"), make_package("0"), make_package("7")]
    assert parse_addon_ids(packages) == [12, 7]


@pytest.mark.parametrize(
    "addon_id, expected",
    [("0042", "42"), ("42", "42"), ("0", "0"), ("abc", "abc"), ("", "")],
)
def test_normalize_addon_id(addon_id, expected):
    assert normalize_addon_id(addon_id) == expected

"""Provider payload helper tests"""

import pytest

from tubestats.ingestion.parsing import best_thumbnail, parse_count


class TestParseCount:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("1234", 1234),
            (" 42 ", 42),
            (7, 7),
            ("12.9", 12),
            (None, 0),
            ("", 0),
            ("n/a", 0),
            ("-5", 0),
            (-3, 0),
            (True, 0),
        ],
    )
    def test_values(self, value, expected):
        assert parse_count(value) == expected


class TestBestThumbnail:
    def test_prefers_high(self):
        thumbs = {
            "default": {"url": "d"},
            "medium": {"url": "m"},
            "high": {"url": "h"},
            "maxres": {"url": "x"},
        }
        assert best_thumbnail(thumbs) == "h"

    def test_falls_back_in_order(self):
        assert best_thumbnail({"default": {"url": "d"}, "medium": {"url": "m"}}) == "m"
        assert best_thumbnail({"maxres": {"url": "x"}}) == "x"

    def test_missing(self):
        assert best_thumbnail(None) is None
        assert best_thumbnail({}) is None
        assert best_thumbnail({"high": {}}) is None

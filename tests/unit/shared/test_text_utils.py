"""text_utils のテスト"""

from datetime import datetime

import pytest

from code_transform.shared.utils.text_utils import (
    convert_date_to_timestamp,
    convert_to_time_string,
    encode_html,
    get_string_hash,
)


class TestConvertToTimeString:
    @pytest.mark.parametrize(
        ("duration_ms", "expected"),
        [
            (10000, "10 sec"),
            (65000, "1 min 5 sec"),
            (3700000, "1 hr 1 min 40 sec"),
        ],
    )
    def test_examples(self, duration_ms, expected):
        assert convert_to_time_string(duration_ms) == expected

    def test_zero_seconds_omitted_when_minutes_present(self):
        """上位単位がある場合、0 秒は省略される"""
        assert convert_to_time_string(60000) == "1 min"
        assert convert_to_time_string(3600000) == "1 hr"

    def test_zero_minutes_omitted_between_hours_and_seconds(self):
        assert convert_to_time_string(3605000) == "1 hr 5 sec"

    def test_zero_duration(self):
        assert convert_to_time_string(0) == "0 sec"

    def test_sub_second_truncated(self):
        assert convert_to_time_string(999) == "0 sec"


class TestConvertDateToTimestamp:
    def test_midnight(self):
        """ロケールに依存せず 12:00 AM になる"""
        assert convert_date_to_timestamp(datetime(2023, 1, 1, 0, 0, 0)) == "01/01/23, 12:00 AM"

    def test_noon(self):
        assert convert_date_to_timestamp(datetime(2023, 1, 1, 12, 5)) == "01/01/23, 12:05 PM"

    def test_afternoon(self):
        assert convert_date_to_timestamp(datetime(2024, 11, 30, 15, 45)) == "11/30/24, 03:45 PM"


def test_encode_html():
    assert encode_html('<job id="1">&') == "&lt;job id=&quot;1&quot;&gt;&amp;"


def test_get_string_hash_is_stable_hex():
    digest = get_string_hash("/workspace/sample-app")
    assert digest == get_string_hash("/workspace/sample-app")
    assert len(digest) == 64
    assert digest != get_string_hash("/workspace/other-app")

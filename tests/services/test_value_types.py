# tests/services/test_value_types.py
import pytest
from datetime import date, datetime
from decimal import Decimal

from wms_core.services.exceptions import ValidationError
from wms_core.services.value_types import interpret_value, normalize_raw_value


class TestNormalizeRawValue:
    def test_text_is_kept_verbatim(self):
        assert normalize_raw_value("text", "  Cotton  ") == "  Cotton  "

    def test_optional_text_may_be_empty(self):
        assert normalize_raw_value("text", "") == ""
        assert normalize_raw_value("text", None) is None

    def test_required_text_may_not_be_empty(self):
        with pytest.raises(ValidationError):
            normalize_raw_value("text", "", is_required=True)

    def test_number_keeps_decimal_precision(self):
        assert normalize_raw_value("number", "0.10") == "0.10"
        assert normalize_raw_value("number", " -42 ") == "-42"

    @pytest.mark.parametrize("raw", [True, "Infinity", "1,5", None])
    def test_number_rejects(self, raw):
        with pytest.raises(ValidationError):
            normalize_raw_value("number", raw)

    @pytest.mark.parametrize("raw,expected", [(False, "false"), ("True", "true"), (" false ", "false")])
    def test_boolean_literals(self, raw, expected):
        assert normalize_raw_value("boolean", raw) == expected

    @pytest.mark.parametrize("raw", ["1", "0", "on"])
    def test_boolean_rejects_other_text(self, raw):
        with pytest.raises(ValidationError):
            normalize_raw_value("boolean", raw)

    def test_date_accepts_date_objects_and_iso_text(self):
        assert normalize_raw_value("date", date(2024, 5, 1)) == "2024-05-01"
        assert normalize_raw_value("date", "2024-05-01") == "2024-05-01"

    def test_datetime_keeps_only_the_date(self):
        # 시나리오: 시간 부분이 있는 datetime이 들어와도 날짜만 저장되어야 함
        assert normalize_raw_value("date", datetime(2024, 5, 1, 13, 30)) == "2024-05-01"
        assert interpret_value("date", normalize_raw_value("date", datetime(2024, 5, 1, 23, 59, 59))) == date(2024, 5, 1)

    def test_date_rejects_impossible_day(self):
        with pytest.raises(ValidationError):
            normalize_raw_value("date", "2023-02-29")

    @pytest.mark.parametrize("attribute_type", ["select", "multiselect", "json"])
    def test_option_and_unknown_types_take_no_free_value(self, attribute_type):
        with pytest.raises(ValidationError):
            normalize_raw_value(attribute_type, "Red")


class TestInterpretValue:
    def test_typed_reads(self):
        assert interpret_value("number", "12.50") == Decimal("12.50")
        assert interpret_value("boolean", "false") is False
        assert interpret_value("date", "2024-05-01") == date(2024, 5, 1)
        assert interpret_value("select", "Red") == "Red"

    def test_unparseable_rows_come_back_as_text(self):
        assert interpret_value("number", "about ten") == "about ten"
        assert interpret_value("boolean", "yes") == "yes"

    def test_missing_value(self):
        assert interpret_value("number", None) is None

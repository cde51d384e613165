from decimal import Decimal

import pytest

from taxroll_archive.core.exceptions import ImportFileError
from taxroll_archive.services.bulk_import import ImportFormat, build_payload, parse_format, read_rows

CSV_CONTENT = (
    b"page_id,sequence_on_page,taxpayer_name_original,enslaved_name_original,transcription_confidence\n"
    b"3,1,John Doe,Mary,0.9\n"
    b",,,,\n"
    b"3,,Jane Roe,Phillis,\n"
)


class TestReadRows:

    def test_csv_uses_header_row_and_skips_blank_lines(self):
        rows = read_rows(CSV_CONTENT, ImportFormat.CSV, max_bytes=1024)

        assert len(rows) == 2
        assert rows[0]["taxpayer_name_original"] == "John Doe"
        assert rows[1]["enslaved_name_original"] == "Phillis"

    def test_csv_with_byte_order_mark(self):
        rows = read_rows(b"\xef\xbb\xbfpage_id,enslaved_name_original\n4,Mary\n", ImportFormat.CSV, 1024)
        assert rows == [{"page_id": "4", "enslaved_name_original": "Mary"}]

    def test_json_array(self):
        rows = read_rows(b'[{"page_id": 3, "enslaved_name_original": "Mary"}]', ImportFormat.JSON, 1024)
        assert rows == [{"page_id": 3, "enslaved_name_original": "Mary"}]

    def test_json_must_be_an_array(self):
        with pytest.raises(ImportFileError) as exc_info:
            read_rows(b'{"page_id": 3}', ImportFormat.JSON, 1024)
        assert exc_info.value.code == "invalid_file"

    def test_malformed_json(self):
        with pytest.raises(ImportFileError) as exc_info:
            read_rows(b"[{", ImportFormat.JSON, 1024)
        assert exc_info.value.code == "invalid_file"

    def test_missing_file(self):
        with pytest.raises(ImportFileError) as exc_info:
            read_rows(None, ImportFormat.CSV, 1024)
        assert exc_info.value.code == "file_required"

    def test_size_limit(self):
        with pytest.raises(ImportFileError) as exc_info:
            read_rows(CSV_CONTENT, ImportFormat.CSV, max_bytes=10)
        assert exc_info.value.code == "file_too_large"
        assert exc_info.value.status_code == 400


class TestParseFormat:

    def test_defaults_to_csv(self):
        assert parse_format(None) == ImportFormat.CSV
        assert parse_format(" JSON ") == ImportFormat.JSON

    def test_unknown_format(self):
        with pytest.raises(ImportFileError) as exc_info:
            parse_format("xml")
        assert exc_info.value.code == "unsupported_format"


class TestBuildPayload:

    def test_coerces_numeric_columns_and_blank_cells(self):
        rows = read_rows(CSV_CONTENT, ImportFormat.CSV, 1024)

        first, error = build_payload(0, rows[0])
        second, _ = build_payload(1, rows[1])

        assert error is None
        assert first.page_id == 3
        assert first.sequence_on_page == 1
        assert first.transcription_confidence == Decimal("0.9")
        assert second.sequence_on_page is None
        assert second.transcription_confidence is None

    def test_integral_decimal_strings_are_accepted(self):
        payload, error = build_payload(0, {"page_id": "3.0", "year": 1863})
        assert error is None
        assert payload.page_id == 3
        assert payload.year == 1863

    @pytest.mark.parametrize("value", ["abc", "3.5", True, "Infinity", "NaN", "-inf", float("inf"), Decimal("1e400")])
    def test_unparsable_number_is_a_row_error(self, value):
        payload, error = build_payload(5, {"page_id": value, "enslaved_name_original": "Mary"})

        assert payload is None
        assert error.index == 5
        assert error.error == "invalid_value"
        assert "page_id" in error.message

    @pytest.mark.parametrize("value", ["Infinity", "95", "-0.1"])
    def test_confidence_outside_unit_range(self, value):
        payload, error = build_payload(0, {"page_id": 3, "transcription_confidence": value})

        assert payload is None
        assert error.error == "invalid_value"
        assert "transcription_confidence" in error.message

    @pytest.mark.parametrize("field", ["year", "line_number", "age_years"])
    def test_integer_beyond_column_range(self, field):
        payload, error = build_payload(0, {"page_id": 3, field: str(2**31)})

        assert payload is None
        assert error.error == "invalid_value"
        assert field in error.message

    def test_json_overflowing_number_is_a_row_error(self):
        rows = read_rows(b'[{"page_id": 1e400, "enslaved_name_original": "Mary"}]', ImportFormat.JSON, 1024)

        payload, error = build_payload(0, rows[0])

        assert payload is None
        assert error.error == "invalid_value"
        assert "page_id" in error.message

    def test_non_object_row(self):
        payload, error = build_payload(2, ["3", "Mary"])
        assert payload is None
        assert error.error == "invalid_row"

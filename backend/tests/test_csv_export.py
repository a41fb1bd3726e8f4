"""
Tests for CSV export encoding.
"""
import csv
import io
from datetime import date, datetime

import pytest

from utils.csv_export import BOM, csv_response, to_csv


def parse(payload: bytes):
    text = payload.decode("utf-8")
    assert text.startswith(BOM)
    return list(csv.reader(io.StringIO(text[len(BOM):])))


class TestToCsv:

    @pytest.mark.unit
    def test_starts_with_bom_and_quotes_every_field(self):
        payload = to_csv(["name", "price"], [["Tea", 500]])
        text = payload.decode("utf-8")
        assert text == BOM + '"name","price"\n"Tea","500"\n'

    @pytest.mark.unit
    def test_cell_conversion(self):
        rows = parse(to_csv(
            ["a", "b", "c", "d", "e"],
            [[None, True, False, date(2024, 4, 1), datetime(2024, 4, 1, 9, 30)]],
        ))
        assert rows[1] == ["", "true", "false", "2024-04-01", "2024-04-01T09:30:00"]

    @pytest.mark.unit
    def test_embedded_quotes_commas_and_newlines_survive(self):
        value = 'He said "hi", then\nleft'
        rows = parse(to_csv(["note"], [[value]]))
        assert rows[1] == [value]

    @pytest.mark.unit
    def test_headers_only_when_no_rows(self):
        rows = parse(to_csv(["name", "email"], []))
        assert rows == [["name", "email"]]

    @pytest.mark.unit
    def test_non_ascii_is_utf8(self):
        rows = parse(to_csv(["name"], [["山田 花子"]]))
        assert rows[1] == ["山田 花子"]


class TestCsvResponse:

    @pytest.mark.unit
    def test_attachment_headers(self):
        response = csv_response("customers.csv", ["name"], [["Tea"]])
        assert response.media_type.startswith("text/csv")
        assert response.headers["content-disposition"] == 'attachment; filename="customers.csv"'
        assert response.body.startswith(BOM.encode("utf-8"))

from dataclasses import replace

import pytest
import requests

from casepulse.source import SourceFetchError, fetch_source_table, parse_source_table


def test_parse_trims_headers_and_skips_blank_lines() -> None:
    text = " Nº ; Estado \n1;Aberto\n\n;\n2;Fechado\n"

    table = parse_source_table(text)

    assert table.errors == ()
    assert table.records == [{"Nº": "1", "Estado": "Aberto"}, {"Nº": "2", "Estado": "Fechado"}]


def test_parse_honours_header_row_offset() -> None:
    text = "Relatório de reclamações\nNº;Estado\n1;Aberto\n"

    table = parse_source_table(text, header_row=1)

    assert table.records == [{"Nº": "1", "Estado": "Aberto"}]


def test_field_count_mismatch_is_structural() -> None:
    text = "Nº;Estado\n1;Aberto;extra\n2\n3;Fechado\n"

    table = parse_source_table(text)

    assert len(table.errors) == 2
    assert "too many fields" in table.errors[0]
    assert "too few fields" in table.errors[1]
    assert table.records == [{"Nº": "3", "Estado": "Fechado"}]


def test_quoted_multiline_cells_keep_their_line_breaks() -> None:
    text = 'Nº;Motivo\r\n1;"linha um\r\nlinha dois"\r\n2;simples\r\n'

    table = parse_source_table(text)

    assert table.errors == ()
    assert table.records == [
        {"Nº": "1", "Motivo": "linha um\r\nlinha dois"},
        {"Nº": "2", "Motivo": "simples"},
    ]


def test_error_line_numbers_count_the_preamble() -> None:
    text = "Relatório de reclamações\nNº;Estado\n1;Aberto;extra\n"

    table = parse_source_table(text, header_row=1)

    assert table.errors == ("line 3: too many fields (expected 2)",)


def test_empty_text_reports_missing_header() -> None:
    assert parse_source_table("").errors == ("source has no header row",)


def test_fetch_reads_local_file(test_settings, source_file) -> None:
    source_file.write_text("\ufeffNº;Estado\n1;Aberto\n", encoding="utf-8")

    table = fetch_source_table(test_settings)

    assert table.records == [{"Nº": "1", "Estado": "Aberto"}]


def test_fetch_missing_file_raises(test_settings) -> None:
    with pytest.raises(SourceFetchError):
        fetch_source_table(test_settings)


class FakeResponse:
    def __init__(self, content: bytes, status_code: int = 200) -> None:
        self.content = content
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


def test_fetch_over_http(monkeypatch, test_settings) -> None:
    calls = []

    def fake_get(url, timeout):
        calls.append((url, timeout))
        return FakeResponse("Nº;Estado\n9;Aberto\n".encode("utf-8"))

    monkeypatch.setattr(requests, "get", fake_get)
    settings = replace(test_settings, source_path="", source_url="https://example.com/export.csv")

    table = fetch_source_table(settings)

    assert calls == [("https://example.com/export.csv", 5)]
    assert table.records == [{"Nº": "9", "Estado": "Aberto"}]


def test_fetch_http_error_is_wrapped(monkeypatch, test_settings) -> None:
    monkeypatch.setattr(requests, "get", lambda url, timeout: FakeResponse(b"", status_code=503))
    settings = replace(test_settings, source_path="", source_url="https://example.com/export.csv")

    with pytest.raises(SourceFetchError):
        fetch_source_table(settings)

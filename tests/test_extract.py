import pytest

from backend.extraction.errors import DocumentReadError, UnsupportedFileTypeError
from backend.extraction.extract import ParserFactory, PDFParser, TextParser, tokenize
from backend.extraction.schema import RawDocument, TextStream, parse_amount


def test_factory_routes_by_media_type():
    assert isinstance(ParserFactory.get_parser("application/pdf"), PDFParser)
    assert isinstance(ParserFactory.get_parser("TEXT/PLAIN"), TextParser)
    with pytest.raises(UnsupportedFileTypeError):
        ParserFactory.get_parser("text/csv")


def test_text_stream_collapses_whitespace():
    stream = TextStream.from_text("  01-03-2024\t\tUPI/PAYMENT   144.00 \n\n   \nEnd")
    assert stream.lines == ["01-03-2024 UPI/PAYMENT 144.00", "End"]
    assert stream.text == "01-03-2024 UPI/PAYMENT 144.00\nEnd"


def test_pdf_text_is_captured_per_page(build_pdf):
    pdf = build_pdf(["Account Statement", "01-03-2024 UPI/PAYMENT 144.00 341.11"])
    stream = tokenize(RawDocument(pdf, "application/pdf"))

    assert len(stream.pages) == 1
    assert stream.lines[-1] == "01-03-2024 UPI/PAYMENT 144.00 341.11"


def test_corrupt_pdf_raises_read_error():
    with pytest.raises(DocumentReadError, match="Could not read PDF"):
        tokenize(RawDocument(b"%PDF-1.4 truncated", "application/pdf"))


@pytest.mark.parametrize("raw, expected", [
    ("1,234.50", 1234.5),
    ("$12.00", 12.0),
    ("₹ 99.99", 99.99),
    ("(45.00)", -45.0),
    ("-3.2", -3.2),
    (7, 7.0),
    ("", None),
    ("n/a", None),
    (None, None),
    ("NaN", None),
    ("-inf", None),
    (float("nan"), None),
    (float("inf"), None),
])
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


def test_binary_declared_as_text_is_unreadable():
    blob = bytes(range(256)) * 8
    with pytest.raises(DocumentReadError, match="not readable text"):
        tokenize(RawDocument(blob, "text/plain"))


def test_text_with_a_few_bad_bytes_is_kept():
    content = "01-03-2024 CAF\xe9 LATTE 4.50\n".encode("latin-1") + b"02-03-2024 UPI/PAYMENT 144.00\n"
    stream = tokenize(RawDocument(content, "text/plain"))
    assert stream.lines[1] == "02-03-2024 UPI/PAYMENT 144.00"

import pytest

from backend.extraction.errors import ProviderError
from backend.extraction.providers import BaseProvider, ProviderChain


BANK_STATEMENT = """HDFC BANK LTD
Account Statement
Date Narration Chq./Ref.No. Withdrawal Amt. Deposit Amt. Closing Balance
01-03-2024 Opening Balance 485.11 485.11
01-03-2024 UPI/PAYMENT 144.00 341.11
"""

GENERIC_STATEMENT = """Card Activity
Date Description Amount Type
01/15/2024 Grocery Store 45.20 expense
01/16/2024 Salary ACME Corp 3,000.00 income
01/17/2024 Coffee 4.50
not a transaction line
"""


class FakeProvider(BaseProvider):
    """Returns canned responses in order; an Exception instance is raised instead."""

    def __init__(self, *responses, name="fake"):
        super().__init__(timeout=1)
        self.name = name
        self.responses = list(responses)
        self.calls = []

    def is_configured(self):
        return True

    def complete(self, instruction, text):
        self.calls.append((instruction, text))
        if not self.responses:
            raise ProviderError(self.name, "no response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(instruction, text)
        return response


class FailingProvider(BaseProvider):
    def __init__(self, name="down"):
        super().__init__(timeout=1)
        self.name = name
        self.calls = 0

    def is_configured(self):
        return True

    def complete(self, instruction, text):
        self.calls += 1
        raise ProviderError(self.name, "request failed: connection refused")


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self.payload = payload
        self.text = text

    def json(self):
        if self.payload is None:
            raise ValueError("No JSON object could be decoded")
        return self.payload


def _pdf_escape(text):
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def _build_pdf(lines):
    """Single-page Helvetica PDF with one text line per entry."""
    ops = ["BT", "/F1 10 Tf", "14 TL", "40 760 Td"]
    ops.extend(f"({_pdf_escape(line)}) Tj T*" for line in lines)
    ops.append("ET")
    stream = "\n".join(ops).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R "
        b"/Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = b"%PDF-1.4\n"
    offsets = []
    for i, obj in enumerate(objects, 1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % i + obj + b"\nendobj\n"

    xref_at = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for off in offsets:
        out += b"%010d 00000 n \n" % off
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref_at)
    return out


@pytest.fixture
def bank_statement():
    return BANK_STATEMENT


@pytest.fixture
def generic_statement():
    return GENERIC_STATEMENT


@pytest.fixture
def empty_chain():
    return ProviderChain([])


@pytest.fixture
def failing_chain():
    return ProviderChain([FailingProvider("groq"), FailingProvider("openrouter"), FailingProvider("ollama")])


@pytest.fixture
def fake_provider():
    return FakeProvider


@pytest.fixture
def failing_provider():
    return FailingProvider


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def build_pdf():
    return _build_pdf

import json

from backend.extraction.assisted import ServiceAssistedExtractor
from backend.extraction.providers import ProviderChain
from backend.extraction.schema import FLAG_DUAL_INTERPRETATION, FLAG_OPENING_BALANCE, TextStream
from backend.extraction.transform import (
    ExtractionChain, SegmentContext, find_anchor_dates, infer_direction,
    parse_structured_line, parse_window,
)


def _extract(text, providers=()):
    chain = ExtractionChain(ServiceAssistedExtractor(ProviderChain(list(providers))))
    return chain.extract(TextStream.from_text(text))


# ─── State A ───

def test_structured_line_trailing_type_token():
    tx = parse_structured_line("01/16/2024 Salary ACME Corp 3,000.00 income")
    assert tx["description"] == "Salary ACME Corp"
    assert tx["amount"] == 3000.0
    assert tx["direction"] == "income"
    assert tx["source"] == "structured"


def test_structured_line_defaults_to_expense():
    tx = parse_structured_line("01/17/2024 Coffee 4.50")
    assert tx["amount"] == -4.5
    assert tx["direction"] == "expense"


def test_structured_line_without_amount_is_skipped():
    assert parse_structured_line("01/17/2024 pending authorization") is None
    assert parse_structured_line("Coffee 4.50") is None


def test_generic_header_uses_structured_strategy(generic_statement, fake_provider):
    provider = fake_provider()
    result = _extract(generic_statement, [provider])

    assert result.strategy == "structured"
    assert [tx["amount"] for tx in result.candidates] == [-45.2, 3000.0, -4.5]
    assert provider.calls == []


# ─── State C ───

def test_opening_balance_and_upi_payment(bank_statement):
    result = _extract(bank_statement)

    assert result.strategy == "regex"
    opening, payment = result.candidates
    assert opening["date"] == "01-03-2024"
    assert opening["amount"] == 485.11
    assert opening["direction"] == "income"
    assert FLAG_OPENING_BALANCE in opening["flags"]
    assert payment["amount"] == -144.0
    assert payment["direction"] == "expense"
    assert payment["description"] == "UPI/PAYMENT"


def test_balance_column_never_becomes_an_amount(bank_statement):
    amounts = [abs(tx["amount"]) for tx in _extract(bank_statement).candidates]
    assert 341.11 not in amounts


def test_row_with_withdrawal_and_deposit_yields_two_records(bank_statement):
    text = bank_statement + "05-03-2024 CASH ADJ 200.00 1,000.00 1,141.11\n"
    records = [tx for tx in _extract(text).candidates if tx["date"] == "05-03-2024"]

    assert len(records) == 2
    assert {(tx["direction"], abs(tx["amount"])) for tx in records} == {
        ("expense", 200.0), ("income", 1000.0),
    }


def test_running_balance_decides_single_amount_direction(bank_statement):
    text = bank_statement + "02-03-2024 IMPS ACME LTD 500.00 841.11\n"
    last = _extract(text).candidates[-1]
    assert last["amount"] == 500.0
    assert last["direction"] == "income"


def test_value_date_stays_in_its_row():
    text = (
        "Date Narration Value Dt Withdrawal Amt. Deposit Amt. Closing Balance\n"
        "01/03/24 NEFT SALARY ACME 01/03/24 50,000.00 50,485.11\n"
    )
    candidates = _extract(text).candidates

    assert len(candidates) == 1
    assert candidates[0]["description"] == "NEFT SALARY ACME"
    assert candidates[0]["amount"] == 50000.0
    assert candidates[0]["direction"] == "income"


def test_keyword_direction_in_free_text():
    text = "03/01/2024 SALARY ACME 5000.00\n03/02/2024 POS STARBUCKS 6.50\n"
    income, expense = _extract(text).candidates

    assert (income["direction"], income["amount"]) == ("income", 5000.0)
    assert (expense["direction"], expense["amount"]) == ("expense", -6.5)


def test_ambiguous_two_amount_row_keeps_both_flagged():
    candidates = _extract("Activity\n03/05/2024 ZXQ LTD 120.00 80.00\n").candidates

    assert [(tx["direction"], tx["amount"]) for tx in candidates] == [
        ("expense", -120.0), ("income", 80.0),
    ]
    assert all(FLAG_DUAL_INTERPRETATION in tx["flags"] for tx in candidates)


def test_header_like_window_is_skipped():
    seg = SegmentContext(column_markers=True, balance_column=True)
    assert parse_window("01/03/2024", " Date Narration Withdrawal 10.00", seg) == []


def test_second_date_after_newline_opens_new_window():
    text = "Period 01/03/2024\n02/03/2024 Coffee 3.00"
    assert [m.group() for m in find_anchor_dates(text)] == ["01/03/2024", "02/03/2024"]


def test_generic_line_patterns_when_segmentation_finds_nothing():
    text = "Netflix subscription 02/14/2024 -15.99\nSwiggy order 02/15/2024 -22.50\n"
    result = _extract(text)

    assert result.strategy == "regex"
    assert [(tx["description"], tx["amount"]) for tx in result.candidates] == [
        ("Netflix subscription", -15.99), ("Swiggy order", -22.5),
    ]


def test_infer_direction_priority():
    assert infer_direction("REFUND CARD PAYMENT") == "income"
    assert infer_direction("ATM withdrawals") == "expense"
    assert infer_direction("CASH DEPOSIT") == "income"
    assert infer_direction("ZXQ LTD") is None


# ─── Chain ───

def test_service_strategy_wins_over_regex(bank_statement, fake_provider):
    response = json.dumps([
        {"date": "01-03-2024", "description": "Opening Balance", "amount": 485.11,
         "direction": "income", "category": "Other Income"},
        {"date": "01-03-2024", "description": "UPI/PAYMENT", "amount": -144.00,
         "direction": "expense", "category": "Other Expense"},
    ])
    result = _extract(bank_statement, [fake_provider(f"```json\n{response}\n```")])

    assert result.strategy == "service"
    assert [tx["source"] for tx in result.candidates] == ["service", "service"]
    assert result.attempts == [("structured", 0), ("service", 2)]


def test_failing_providers_fall_through_to_regex(bank_statement, failing_chain):
    chain = ExtractionChain(ServiceAssistedExtractor(failing_chain))
    result = chain.extract(TextStream.from_text(bank_statement))

    assert result.strategy == "regex"
    assert len(result.candidates) == 2
    assert [p.calls for p in failing_chain.providers] == [1, 1, 1]


def test_no_strategy_yields_empty_result():
    result = _extract("nothing to see here\njust words")
    assert result.strategy is None
    assert result.candidates == []
    assert [name for name, _ in result.attempts] == ["structured", "service", "regex"]

import io

import pandas as pd
import pytest

from backend.extraction.errors import DocumentReadError, UnsupportedFileTypeError
from backend.extraction.schema import RawDocument
from backend.extraction.tabular import TabularExtractor, build_column_map

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _csv(text):
    return RawDocument(content=text.encode("utf-8"), media_type="text/csv", filename="tx.csv")


def test_declared_category_and_sign_convention():
    doc = _csv(
        "Date,Description,Amount,Category\n"
        "2024-01-01,ACME Payroll,5000.00,Salary\n"
        "2024-01-02,Swiggy order,250.00,Food & Dining\n"
        "2024-01-03,Mystery,-40.00,\n"
        "2024-01-04,Zero row,0,Other Expense\n"
        "2024-01-01,ACME Payroll,5000.00,Salary\n"
    )
    payroll, swiggy, mystery = TabularExtractor().extract(doc)

    assert (payroll["amount"], payroll["direction"], payroll["category"]) == (5000.0, "income", "Salary")
    assert payroll["confidence"] == 90
    assert (swiggy["amount"], swiggy["direction"]) == (-250.0, "expense")
    assert (mystery["category"], mystery["confidence"], mystery["amount"]) == ("Other Expense", 70, -40.0)


def test_split_debit_credit_columns():
    doc = _csv(
        "Date,Narration,Withdrawal,Deposit\n"
        "01/02/2024,ATM CASH,100.00,\n"
        "01/03/2024,Interest credited,,12.50\n"
    )
    atm, interest = TabularExtractor().extract(doc)

    assert (atm["amount"], atm["direction"]) == (-100.0, "expense")
    assert (interest["amount"], interest["direction"], interest["category"]) == (12.5, "income", "Other Income")


def test_type_column_wins():
    doc = _csv("Date,Description,Amount,Type\n2024-02-01,Gift from family,100,Income\n")
    [tx] = TabularExtractor().extract(doc)
    assert tx["direction"] == "income"
    assert tx["amount"] == 100.0


def test_parenthesized_and_currency_amounts():
    doc = _csv('Date,Description,Amount\n2024-02-01,Uber trip,"($1,200.50)"\n')
    [tx] = TabularExtractor().extract(doc)
    assert tx["amount"] == -1200.5
    assert tx["category"] == "Transportation"


def test_missing_date_column():
    with pytest.raises(DocumentReadError):
        TabularExtractor().extract(_csv("Description,Amount\nCoffee,3.50\n"))


def test_unsupported_tabular_type():
    with pytest.raises(UnsupportedFileTypeError):
        TabularExtractor().read_frame(RawDocument(b"", "application/json"))


def test_column_map_prefers_split_columns():
    column_map = build_column_map(["Txn Date", "Details", "Withdrawal Amt (INR)", "Deposit Amt (INR)", "Balance"])
    assert column_map == {
        "date": "Txn Date",
        "description": "Details",
        "debit": "Withdrawal Amt (INR)",
        "credit": "Deposit Amt (INR)",
    }


def test_spreadsheet_upload():
    buffer = io.BytesIO()
    pd.DataFrame({
        "Date": ["2024-03-01", "2024-03-02"],
        "Description": ["Netflix", "ACME Salary"],
        "Amount": ["-15.99", "3000"],
    }).to_excel(buffer, index=False)

    txs = TabularExtractor().extract(RawDocument(buffer.getvalue(), XLSX, "tx.xlsx"))
    assert [(tx["category"], tx["amount"]) for tx in txs] == [("Entertainment", -15.99), ("Salary", 3000.0)]

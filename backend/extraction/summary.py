"""
Summary Aggregator - totals and a bounded financial health score.
"""
from typing import Dict, List

from .schema import Direction, Summary, Transaction


def calculate_health_score(total_income: float, total_expenses: float, savings: float) -> int:
    """
    Score in [0, 100], base 50, adjusted by savings rate and expense ratio.

    Savings rate: +30 at >=20%, +20 at >=10%, +10 at >=5%, -20 below 0%.
    Expense ratio: +20 at <=50%, +10 at <=70%, -20 above 90%.
    No income scores 0.
    """
    if total_income <= 0:
        return 0

    savings_rate = savings / total_income * 100
    expense_ratio = total_expenses / total_income * 100

    score = 50
    if savings_rate >= 20:
        score += 30
    elif savings_rate >= 10:
        score += 20
    elif savings_rate >= 5:
        score += 10
    elif savings_rate < 0:
        score -= 20

    if expense_ratio <= 50:
        score += 20
    elif expense_ratio <= 70:
        score += 10
    elif expense_ratio > 90:
        score -= 20

    return max(0, min(100, int(round(score))))


def category_breakdown(transactions: List[Transaction]) -> List[Dict]:
    totals: Dict[str, float] = {}
    for tx in transactions:
        if tx["direction"] == Direction.EXPENSE.value:
            totals[tx["category"]] = totals.get(tx["category"], 0.0) + abs(tx["amount"])

    grand_total = sum(totals.values())
    breakdown = [
        {
            "name": name,
            "amount": round(amount, 2),
            "percentage": round(amount / grand_total * 100, 1) if grand_total else 0.0,
        }
        for name, amount in totals.items()
    ]
    return sorted(breakdown, key=lambda c: c["amount"], reverse=True)


def summarize(transactions: List[Transaction]) -> Summary:
    total_income = sum(tx["amount"] for tx in transactions if tx["direction"] == Direction.INCOME.value)
    total_expenses = sum(abs(tx["amount"]) for tx in transactions if tx["direction"] == Direction.EXPENSE.value)
    savings = total_income - total_expenses

    return {
        "total_income": round(total_income, 2),
        "total_expenses": round(total_expenses, 2),
        "savings": round(savings, 2),
        "savings_rate": round(savings / total_income * 100, 1) if total_income else 0.0,
        "health_score": calculate_health_score(total_income, total_expenses, savings),
        "transaction_count": len(transactions),
        "category_breakdown": category_breakdown(transactions),
    }

"""Invoice risk heuristic.

A linear score over due-date proximity and face value. Intentionally
simple; the thresholds are part of the external contract.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from invoicechain.db.models.invoice import RiskCategory

BASE_SCORE = 50

LONG_TERM_DAYS = 90
SHORT_TERM_DAYS = 30
LONG_TERM_ADJUSTMENT = -20
SHORT_TERM_ADJUSTMENT = 20

LARGE_AMOUNT = Decimal("100000")
SMALL_AMOUNT = Decimal("10000")
LARGE_AMOUNT_ADJUSTMENT = 15
SMALL_AMOUNT_ADJUSTMENT = -10

LOW_RISK_BELOW = 40
HIGH_RISK_ABOVE = 60


@dataclass(frozen=True)
class RiskAssessment:
    score: int
    category: RiskCategory


def categorize(score: int) -> RiskCategory:
    """Map a score to LOW (<40), HIGH (>60) or MEDIUM."""
    if score < LOW_RISK_BELOW:
        return RiskCategory.LOW
    if score > HIGH_RISK_ABOVE:
        return RiskCategory.HIGH
    return RiskCategory.MEDIUM


def assess_risk(
    amount: Decimal,
    due_date: date,
    today: date | None = None,
) -> RiskAssessment:
    """Score an invoice from its amount and days remaining until due.

    Args:
        amount: Invoice face value.
        due_date: Payment due date.
        today: Reference date, defaults to the current date.

    Returns:
        RiskAssessment with the integer score and derived category.
    """
    today = today or date.today()
    days_to_due = (due_date - today).days

    score = BASE_SCORE

    if days_to_due > LONG_TERM_DAYS:
        score += LONG_TERM_ADJUSTMENT
    elif days_to_due < SHORT_TERM_DAYS:
        score += SHORT_TERM_ADJUSTMENT

    if amount > LARGE_AMOUNT:
        score += LARGE_AMOUNT_ADJUSTMENT
    elif amount < SMALL_AMOUNT:
        score += SMALL_AMOUNT_ADJUSTMENT

    return RiskAssessment(score=score, category=categorize(score))

"""Derived classification rules shared by results, report cards and analytics"""
from typing import Tuple

# Inclusive lower bounds, highest first
GRADE_BANDS: Tuple[Tuple[float, str, float], ...] = (
    (90, "A+", 4.0),
    (80, "A", 3.5),
    (70, "B+", 3.0),
    (60, "B", 2.5),
    (50, "C+", 2.0),
    (40, "C", 1.5),
    (30, "D", 1.0),
)
FAILING_GRADE = "F"
FAILING_GPA = 0.0

HIGH_RISK = "High Risk"
MEDIUM_RISK = "Medium Risk"
LOW_RISK = "Low Risk"


def format_rate(numerator: float, denominator: float) -> str:
    """numerator/denominator as a percentage with two decimals; "0.00" when nothing to divide by"""
    if not denominator:
        return "0.00"
    return f"{(numerator / denominator) * 100:.2f}"


def percentage(score: float, max_score: float) -> float:
    if not max_score:
        return 0.0
    return round((score / max_score) * 100, 2)


def grade_for(value: float) -> str:
    for lower_bound, grade, _ in GRADE_BANDS:
        if value >= lower_bound:
            return grade
    return FAILING_GRADE


def gpa_for(value: float) -> float:
    for lower_bound, _, gpa in GRADE_BANDS:
        if value >= lower_bound:
            return gpa
    return FAILING_GPA


def classify_risk(avg_score: float, attendance: float) -> str:
    if avg_score < 40 and attendance < 70:
        return HIGH_RISK
    if avg_score < 50 or attendance < 80:
        return MEDIUM_RISK
    return LOW_RISK


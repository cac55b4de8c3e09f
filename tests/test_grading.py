import pytest

from school_api.services.grading import (
    HIGH_RISK,
    LOW_RISK,
    MEDIUM_RISK,
    classify_risk,
    format_rate,
    gpa_for,
    grade_for,
    percentage,
)


@pytest.mark.parametrize(
    "value, grade, gpa",
    [(95, "A+", 4.0), (90, "A+", 4.0), (85, "A", 3.5), (72, "B+", 3.0), (60, "B", 2.5),
     (55, "C+", 2.0), (40, "C", 1.5), (30, "D", 1.0), (29.99, "F", 0.0)],
)
def test_grade_bands(value, grade, gpa):
    assert grade_for(value) == grade
    assert gpa_for(value) == gpa


def test_format_rate_without_records():
    assert format_rate(0, 0) == "0.00"


def test_format_rate_two_decimals():
    assert format_rate(2, 3) == "66.67"


def test_percentage():
    assert percentage(45, 60) == 75.0
    assert percentage(5, 0) == 0.0


@pytest.mark.parametrize(
    "score, attendance, risk",
    [(35, 60, HIGH_RISK), (35, 90, MEDIUM_RISK), (70, 75, MEDIUM_RISK), (70, 95, LOW_RISK), (0, 0, HIGH_RISK)],
)
def test_classify_risk(score, attendance, risk):
    assert classify_risk(score, attendance) == risk

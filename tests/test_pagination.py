import pytest

from school_api.core.pagination import Pagination


@pytest.mark.parametrize(
    "page, limit, expected",
    [
        (None, None, (1, 10)),
        ("2", "5", (2, 5)),
        ("abc", "xyz", (1, 10)),
        ("0", "-3", (1, 10)),
        (" 3 ", "1000", (3, 100)),
    ],
)
def test_from_params_is_lenient(page, limit, expected):
    pagination = Pagination.from_params(page, limit)
    assert (pagination.page, pagination.limit) == expected


def test_default_limit_override():
    assert Pagination.from_params(None, None, default_limit=20).limit == 20


def test_skip_and_meta():
    pagination = Pagination(page=3, limit=10)
    assert pagination.skip == 20
    assert pagination.meta(21) == {"page": 3, "limit": 10, "total": 21, "pages": 3}


def test_meta_without_rows():
    assert Pagination(page=1, limit=10).meta(0)["pages"] == 0

import json
import logging

import pytest

from school_api.core.logging import AccessRecordFilter, CustomJsonFormatter, log_function_call


def _record(**extra):
    record = logging.LogRecord("school_api", logging.INFO, __file__, 10, "hello %s", ("world",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_includes_context():
    line = json.loads(CustomJsonFormatter().format(_record(user_id=7, school_id=3)))

    assert line["message"] == "hello world"
    assert line["user_id"] == 7
    assert line["school_id"] == 3
    assert "request_id" not in line


def test_access_filter_splits_request_lines():
    request_line = _record(path="/health", method="GET")
    plain = _record()

    assert AccessRecordFilter(access=True).filter(request_line)
    assert not AccessRecordFilter(access=True).filter(plain)
    assert AccessRecordFilter(access=False).filter(plain)


async def test_log_function_call_keeps_async_result():
    logger = logging.getLogger("school_api.tests")

    @log_function_call(logger)
    async def add(a, b):
        return a + b

    assert await add(2, 3) == 5


def test_log_function_call_reraises():
    logger = logging.getLogger("school_api.tests")

    @log_function_call(logger)
    def boom():
        raise ValueError("bad")

    with pytest.raises(ValueError, match="bad"):
        boom()

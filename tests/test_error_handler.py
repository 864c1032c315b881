import pytest

from exposure_kb.service.errors import (
    CacheError,
    DataNotFoundError,
    ErrorHandler,
    ErrorHandlingConfig,
    InvalidDataError,
    KnowledgeBaseError,
    ServiceNotInitializedError,
    assert_data_exists,
    assert_initialized,
)


class Flaky:
    def __init__(self, failures, error=RuntimeError("transient")):
        self.failures = failures
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


def _handler(**config):
    sleeps = []
    return ErrorHandler(ErrorHandlingConfig(**config), sleep=sleeps.append), sleeps


def test_retry_recovers_with_linear_backoff():
    handler, sleeps = _handler()
    operation = Flaky(2)

    assert handler.with_retry(operation, "flaky") == "ok"
    assert operation.calls == 3
    assert sleeps == [1.0, 2.0]


def test_retry_gives_up_and_raises_last_error():
    handler, sleeps = _handler(max_retries=3)
    operation = Flaky(10)

    with pytest.raises(RuntimeError):
        handler.with_retry(operation, "flaky")
    assert operation.calls == 3
    assert sleeps == [1.0, 2.0]


def test_zero_retries_still_attempts_once_and_raises_original_error():
    handler, sleeps = _handler(max_retries=0)
    error = RuntimeError("down")
    operation = Flaky(10, error)

    with pytest.raises(RuntimeError) as excinfo:
        handler.with_retry(operation, "flaky")
    assert excinfo.value is error
    assert operation.calls == 1
    assert sleeps == []


@pytest.mark.parametrize(
    "error",
    [DataNotFoundError("Occupation", "x"), ServiceNotInitializedError(), InvalidDataError("bad")],
)
def test_deterministic_errors_are_not_retried(error):
    handler, sleeps = _handler()
    operation = Flaky(10, error)

    with pytest.raises(type(error)):
        handler.with_retry(operation, "lookup")
    assert operation.calls == 1
    assert sleeps == []


def test_cache_errors_are_retried():
    assert ErrorHandler.should_retry(CacheError("set"))


def test_backoff_is_capped():
    handler, _ = _handler(base_delay=4.0, max_delay=10.0)
    assert [handler.backoff_delay(a) for a in (1, 2, 3)] == [4.0, 8.0, 10.0]


def test_retry_disabled_runs_once():
    handler, sleeps = _handler(enable_retry=False)
    operation = Flaky(1)

    with pytest.raises(RuntimeError):
        handler.with_retry(operation, "once")
    assert operation.calls == 1


def test_fallback_used_on_failure():
    handler, _ = _handler()

    def primary():
        raise RuntimeError("primary down")

    assert handler.with_fallback(primary, lambda: "fallback", "op") == "fallback"
    assert handler.with_fallback(lambda: "primary", lambda: "fallback", "op") == "primary"


def test_fallback_disabled_reraises():
    handler, _ = _handler(enable_fallback=False)

    def primary():
        raise RuntimeError("primary down")

    with pytest.raises(RuntimeError):
        handler.with_fallback(primary, lambda: "fallback", "op")


def test_handle_error_wraps_unknown_exceptions():
    handler, _ = _handler()
    known = DataNotFoundError("Table", "table_9")

    assert handler.handle_error(known, "lookup") is known
    wrapped = handler.handle_error(ValueError("boom"), "parsing")
    assert isinstance(wrapped, KnowledgeBaseError)
    assert wrapped.code == "UNKNOWN_ERROR"
    assert wrapped.details["type"] == "ValueError"


def test_assert_helpers():
    with pytest.raises(ServiceNotInitializedError):
        assert_initialized(False)
    with pytest.raises(DataNotFoundError) as exc_info:
        assert_data_exists(None, "Occupation", "x")
    assert exc_info.value.to_dict()["code"] == "DATA_NOT_FOUND"
    assert assert_data_exists(0, "Value") == 0

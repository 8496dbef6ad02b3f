import pytest

from witness import log


class RecordingLogger:
    def __init__(self):
        self.calls = []

    def errorf(self, fmt, *args):
        self.calls.append(("errorf", fmt, args))

    def error(self, *args):
        self.calls.append(("error", args))

    def warnf(self, fmt, *args):
        self.calls.append(("warnf", fmt, args))

    def warn(self, *args):
        self.calls.append(("warn", args))

    def debugf(self, fmt, *args):
        self.calls.append(("debugf", fmt, args))

    def debug(self, *args):
        self.calls.append(("debug", args))

    def infof(self, fmt, *args):
        self.calls.append(("infof", fmt, args))

    def info(self, *args):
        self.calls.append(("info", args))


@pytest.fixture
def recorder():
    previous = log.get_logger()
    rec = RecordingLogger()
    log.set_logger(rec)
    yield rec
    log.set_logger(previous)


def test_set_and_get_logger(recorder):
    assert log.get_logger() is recorder
    silent = log.SilentLogger()
    log.set_logger(silent)
    assert log.get_logger() is silent


def test_silent_logger_swallows_everything(recorder):
    log.set_logger(log.SilentLogger())
    log.errorf("x %v", ValueError("boom"))
    log.error("x")
    log.warnf("x %v", "y")
    log.warn("x")
    log.debugf("x %v", "y")
    log.debug("x")
    log.infof("x %v", "y")
    log.info("x")
    assert recorder.calls == []


@pytest.mark.parametrize("name", ["error", "warn", "debug", "info"])
def test_plain_functions_pass_args_through(recorder, name):
    getattr(log, name)("a", 1)
    assert recorder.calls == [(name, ("a", 1))]


def test_errorf_wraps_into_error(recorder):
    cause = ValueError("boom")
    log.errorf("could not get key id: %w", cause)
    assert len(recorder.calls) == 1
    kind, args = recorder.calls[0]
    assert kind == "error"
    (wrapped,) = args
    assert isinstance(wrapped, Exception)
    assert str(wrapped) == "could not get key id: boom"
    assert wrapped.__cause__ is cause


def test_warnf_without_error_forwards_format(recorder):
    log.warnf("value %s", "x")
    assert recorder.calls == [("warnf", "value %s", ("x",))]


def test_warnf_with_error_wraps(recorder):
    cause = RuntimeError("boom")
    log.warnf("step %s failed: %v", "build", cause)
    kind, (wrapped,) = recorder.calls[0]
    assert kind == "warn"
    assert str(wrapped) == "step build failed: boom"
    assert wrapped.__cause__ is cause


def test_debugf_without_error_forwards_format(recorder):
    log.debugf("No constraint for field %s, allowing all values", "Issuer")
    assert recorder.calls == [
        ("debugf", "No constraint for field %s, allowing all values", ("Issuer",))
    ]


def test_debugf_with_error_wraps(recorder):
    cause = KeyError("missing")
    log.debugf("Policy Verifier %s failed: %w", "key1", cause)
    kind, (wrapped,) = recorder.calls[0]
    assert kind == "debug"
    assert "key1" in str(wrapped)
    assert wrapped.__cause__ is cause


def test_infof_forwards(recorder):
    log.infof("hello %v", 3)
    assert recorder.calls == [("infof", "hello %v", (3,))]


def test_errorf_quotes_lists(recorder):
    log.errorf("roots %+q", ["a", "b"])
    (wrapped,) = recorder.calls[0][1]
    assert str(wrapped) == 'roots ["a" "b"]'
import threading

import pytest

from strength_preclassification.pipeline import Dispatcher


def test_inline_runs_immediately():
    calls = []
    dispatcher = Dispatcher()

    assert dispatcher.submit(calls.append, 1) is None
    assert calls == [1]


def test_inline_errors_are_counted():
    calls = []

    def fail():
        raise ValueError("boom")

    dispatcher = Dispatcher()
    assert dispatcher.submit(fail) is None
    dispatcher.submit(calls.append, 'after')

    assert dispatcher.failures == 1
    assert calls == ['after']


def test_background_keeps_submission_order():
    calls = []
    with Dispatcher(background=True) as dispatcher:
        for i in range(50):
            dispatcher.submit(calls.append, i)
        dispatcher.flush()
        assert calls == list(range(50))


def test_background_runs_off_the_caller_thread():
    threads = []
    with Dispatcher(background=True) as dispatcher:
        dispatcher.submit(lambda: threads.append(threading.current_thread()))

    assert threads and threads[0] is not threading.current_thread()


def test_background_failure_does_not_stop_the_worker():
    calls = []

    def fail():
        raise RuntimeError("observer failed")

    with Dispatcher(background=True) as dispatcher:
        future = dispatcher.submit(fail)
        dispatcher.submit(calls.append, 'after')

    assert isinstance(future.exception(), RuntimeError)
    assert dispatcher.failures == 1
    assert calls == ['after']


def test_submit_after_close():
    dispatcher = Dispatcher(background=True)
    dispatcher.close()

    assert dispatcher.closed
    with pytest.raises(RuntimeError):
        dispatcher.submit(print)

import requests

from twin_dashboard.telemetry import (
    ErrorKind,
    TelemetryPoller,
    fetch_access_token,
)

URL = "https://example.test/api/iot-telemetry"

CURRENT = {"temp": 72.5, "humidity": 40, "pressure": 1013, "lastUpdated": "2024-01-01T00:00:00Z"}
HISTORY = [
    {"temp": 72.5, "humidity": 40, "pressure": 1013, "lastUpdated": "2024-01-01T00:00:00Z"},
    {"temp": 71.0, "humidity": 41, "pressure": 1012, "lastUpdated": "2023-12-31T21:00:00Z"},
]


class DummyResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class DummySession:
    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response()
        return response


class DummyTimer:
    def __init__(self):
        self.interval_ms = None
        self.callback = None

    def start(self, interval_ms, callback):
        self.interval_ms = interval_ms
        self.callback = callback

    def stop(self):
        self.callback = None

    def is_active(self):
        return self.callback is not None

    def fire(self):
        self.callback()


class DeferredRunner:
    """Holds submitted jobs until the test runs them."""

    def __init__(self):
        self.pending = []

    def submit(self, job, on_done):
        self.pending.append((job, on_done))

    def run_next(self):
        job, on_done = self.pending.pop(0)
        on_done(job())


def make_poller(responses):
    timer = DummyTimer()
    session = DummySession(responses)
    return TelemetryPoller(URL, timer=timer, session=session, timeout_s=5.0), timer, session


def test_start_fetches_immediately_and_schedules():
    poller, timer, session = make_poller([DummyResponse(body={"current": CURRENT, "history": HISTORY})])
    seen = []
    poller.subscribe(seen.append)

    poller.start(30_000)

    assert session.calls == [(URL, 5.0)]
    assert timer.interval_ms == 30_000 and timer.is_active()
    snapshot = poller.snapshot
    assert snapshot.current.temperature == 72.5
    assert len(snapshot.history) == 2
    assert snapshot.last_fetch_error is None
    assert snapshot.is_loading is False
    assert seen == [snapshot]


def test_http_500_keeps_prior_data_and_keeps_polling():
    poller, timer, _ = make_poller([
        DummyResponse(body={"current": CURRENT, "history": HISTORY}),
        DummyResponse(status_code=500),
        DummyResponse(body={"current": {**CURRENT, "temp": 73.0}}),
    ])
    poller.start()
    first = poller.snapshot

    timer.fire()
    failed = poller.snapshot
    assert failed.last_fetch_error is ErrorKind.TELEMETRY_FETCH_FAILED
    assert failed.current == first.current
    assert failed.history == first.history
    assert timer.is_active()

    timer.fire()
    recovered = poller.snapshot
    assert recovered.last_fetch_error is None
    assert recovered.current.temperature == 73.0
    # history absent from the body leaves the previous history in place
    assert recovered.history == first.history


def test_transport_fault_and_bad_json_are_converted_to_state():
    poller, timer, _ = make_poller([
        requests.ConnectionError("boom"),
        DummyResponse(body=ValueError("not json")),
    ])
    poller.start()
    assert poller.snapshot.last_fetch_error is ErrorKind.TELEMETRY_FETCH_FAILED
    assert poller.snapshot.is_loading is False
    assert poller.snapshot.current is None

    timer.fire()
    assert poller.snapshot.last_fetch_error is ErrorKind.TELEMETRY_FETCH_FAILED


def test_history_is_sorted_newest_first():
    poller, _, _ = make_poller([DummyResponse(body={"history": list(reversed(HISTORY))})])
    poller.start()
    stamps = [r.timestamp for r in poller.snapshot.history]
    assert stamps == sorted(stamps, reverse=True)


def test_snapshots_are_replaced_not_mutated():
    poller, timer, _ = make_poller([
        DummyResponse(body={"current": CURRENT}),
        DummyResponse(status_code=503),
    ])
    poller.start()
    before = poller.snapshot
    timer.fire()
    assert poller.snapshot is not before
    assert before.last_fetch_error is None


def test_result_arriving_after_stop_is_discarded():
    holder = {}

    def stop_then_answer():
        holder["poller"].stop()
        return DummyResponse(body={"current": CURRENT})

    poller, timer, _ = make_poller([stop_then_answer])
    holder["poller"] = poller
    seen = []
    poller.subscribe(seen.append)

    poller.start()

    assert seen == []
    assert poller.snapshot.current is None
    assert poller.snapshot.is_loading is True
    assert not timer.is_active()


def test_unsubscribe_stops_notifications():
    poller, timer, _ = make_poller([DummyResponse(body={}), DummyResponse(body={})])
    seen = []
    unsubscribe = poller.subscribe(seen.append)
    poller.start()
    unsubscribe()
    timer.fire()
    assert len(seen) == 1


def test_fetch_access_token():
    ok = DummySession([DummyResponse(body={"access_token": "abc"})])
    assert fetch_access_token("https://example.test/token", session=ok) == "abc"

    failing = DummySession([DummyResponse(status_code=401)])
    assert fetch_access_token("https://example.test/token", session=failing) is None

    missing = DummySession([DummyResponse(body={"token": "abc"})])
    assert fetch_access_token("https://example.test/token", session=missing) is None

    broken = DummySession([requests.Timeout("slow")])
    assert fetch_access_token("https://example.test/token", session=broken) is None


def test_malformed_timestamp_still_settles_snapshot():
    poller, _, _ = make_poller([DummyResponse(body={"current": {"temp": 70, "lastUpdated": "²"}})])
    poller.start()
    assert poller.snapshot.is_loading is False
    assert poller.snapshot.last_fetch_error is None
    assert poller.snapshot.current.temperature == 70.0
    assert poller.snapshot.current.timestamp is None


def test_background_fetch_is_applied_when_delivered():
    runner = DeferredRunner()
    timer = DummyTimer()
    session = DummySession([DummyResponse(body={"current": CURRENT})])
    poller = TelemetryPoller(URL, timer=timer, session=session, runner=runner)

    poller.start()
    assert session.calls == []
    assert poller.in_flight
    assert poller.snapshot.is_loading is True

    runner.run_next()
    assert not poller.in_flight
    assert poller.snapshot.current.temperature == 72.5


def test_tick_while_fetch_in_flight_is_skipped():
    runner = DeferredRunner()
    timer = DummyTimer()
    poller = TelemetryPoller(URL, timer=timer, session=DummySession([DummyResponse(body={})]), runner=runner)

    poller.start()
    timer.fire()
    timer.fire()

    assert len(runner.pending) == 1


def test_background_fetch_finishing_after_stop_is_discarded():
    runner = DeferredRunner()
    timer = DummyTimer()
    session = DummySession([DummyResponse(body={"current": CURRENT})])
    poller = TelemetryPoller(URL, timer=timer, session=session, runner=runner)
    seen = []
    poller.subscribe(seen.append)

    poller.start()
    poller.stop()
    runner.run_next()

    assert seen == []
    assert poller.snapshot.current is None
    assert not poller.in_flight

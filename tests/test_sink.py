"""DogStatsD client wrapper and address parsing."""
import pytest

from dogstatsd_exporter.sink import DEFAULT_STATS_ADDR, SinkError, StatsdSink, parse_address


class FakeClient:
    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail
        self.flushed = False
        self.closed = False

    def _call(self, method, name, value, tags=None, sample_rate=None):
        if self.fail:
            raise OSError("network is unreachable")
        self.calls.append((method, name, value, tags, sample_rate))

    def gauge(self, *args, **kwargs):
        self._call("gauge", *args, **kwargs)

    def increment(self, *args, **kwargs):
        self._call("increment", *args, **kwargs)

    def histogram(self, *args, **kwargs):
        self._call("histogram", *args, **kwargs)

    def distribution(self, *args, **kwargs):
        self._call("distribution", *args, **kwargs)

    def flush(self):
        self.flushed = True

    def close_socket(self):
        self.closed = True


def test_parse_address():
    assert parse_address("localhost:8125") == ("localhost", 8125, None)
    assert parse_address("") == ("localhost", 8125, None)
    assert parse_address("[::1]:9125") == ("::1", 9125, None)
    assert parse_address("unix:///var/run/datadog/dsd.socket") == (
        None, None, "/var/run/datadog/dsd.socket"
    )
    assert DEFAULT_STATS_ADDR == "localhost:8125"


@pytest.mark.parametrize("addr", ["localhost", "localhost:abc", ":8125", "host:70000", "unix://"])
def test_parse_address_rejects_malformed(addr):
    with pytest.raises(ValueError):
        parse_address(addr)


def test_sink_maps_calls_to_client():
    client = FakeClient()
    sink = StatsdSink(client=client)

    sink.gauge("g", 1.0, ["a:b"], 1)
    sink.count("c", 2.0, [], 1)
    sink.histogram("h", 3.0, [], 1)
    sink.distribution("d", 4.0, [], 1)

    assert client.calls == [
        ("gauge", "g", 1.0, ["a:b"], 1),
        ("increment", "c", 2.0, [], 1),
        ("histogram", "h", 3.0, [], 1),
        ("distribution", "d", 4.0, [], 1),
    ]


def test_sink_wraps_client_errors():
    sink = StatsdSink(client=FakeClient(fail=True))
    with pytest.raises(SinkError):
        sink.gauge("g", 1.0, [], 1)


def test_close_flushes_then_closes():
    client = FakeClient()
    StatsdSink(client=client).close()
    assert client.flushed and client.closed


def test_construction_rejects_bad_address():
    with pytest.raises(ValueError):
        StatsdSink("no-port-here")

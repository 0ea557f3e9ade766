import pydantic
import pytest

from supaflow.options import ENV_DEBUG, EventFilter, RequestOptions, RetryStrategy, SupaFlowOptions


def test_defaults():
    opts = SupaFlowOptions()

    assert opts.retry_strategy.initial_retry_delay_s == 1.0
    assert opts.retry_strategy.max_retry_delay_s == 30.0
    assert opts.retry_strategy.max_retries == 10
    assert opts.auto_reconnect is True
    assert opts.heartbeat.enabled is True
    assert opts.heartbeat.interval_s == 30.0
    assert opts.heartbeat.timeout_s == 60.0
    assert opts.buffer_size == 1000
    assert opts.batch_config.enabled is False
    assert opts.batch_config.size == 10
    assert opts.batch_config.interval_s == 1.0
    assert opts.request.method == "GET"
    assert opts.transformers == ()


def test_partial_nested_values_merge_over_defaults():
    opts = SupaFlowOptions(heartbeat={"timeout_s": 5}, batch_config={"enabled": True})

    assert opts.heartbeat.enabled is True
    assert opts.heartbeat.interval_s == 30.0
    assert opts.heartbeat.timeout_s == 5.0
    assert opts.batch_config.enabled is True
    assert opts.batch_config.size == 10


def test_options_are_frozen():
    opts = SupaFlowOptions()

    with pytest.raises(pydantic.ValidationError):
        opts.buffer_size = 5


def test_unknown_option_rejected():
    with pytest.raises(pydantic.ValidationError):
        SupaFlowOptions(bufferSize=10)


def test_invalid_values_rejected():
    with pytest.raises(pydantic.ValidationError):
        SupaFlowOptions(buffer_size=0)
    with pytest.raises(pydantic.ValidationError):
        RetryStrategy(initial_retry_delay_s=10, max_retry_delay_s=1)
    with pytest.raises(pydantic.ValidationError):
        RequestOptions(content="x", json_body={"a": 1})


def test_transformers_must_be_callable():
    with pytest.raises(pydantic.ValidationError):
        SupaFlowOptions(transformers=["not callable"])

    opts = SupaFlowOptions(transformers=[str.upper])
    assert opts.transformers == (str.upper,)


def test_callback_fields_validate_without_arbitrary_types():
    assert SupaFlowOptions.model_config.get("arbitrary_types_allowed") is None

    opts = SupaFlowOptions(data_handler=len, on_state_change=print)
    assert opts.data_handler is len
    assert opts.on_state_change is print

    with pytest.raises(pydantic.ValidationError):
        SupaFlowOptions(data_handler=42)


def test_event_filter_accepts_lists():
    f = EventFilter(exclude=["heartbeat"])

    assert f.exclude == ("heartbeat",)
    assert f.allows("message") is True
    assert f.allows("heartbeat") is False


def test_debug_from_env(monkeypatch):
    monkeypatch.setenv(ENV_DEBUG, "true")
    assert SupaFlowOptions().debug is True

    monkeypatch.delenv(ENV_DEBUG)
    assert SupaFlowOptions().debug is False

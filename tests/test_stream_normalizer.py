"""
Tests for StreamNormalizer.

Backends are scripted fakes: each call to ``generate`` consumes one attempt,
which is a list of pieces optionally followed by an exception to raise.
"""

import pytest

from livetranslate.config import StreamingConfig
from livetranslate.core.cancellation import CancellationToken
from livetranslate.errors import PermanentGenerationError, TransientGenerationError
from livetranslate.generation.normalizer import StreamNormalizer, simulated_slices
from livetranslate.generation.router import GenerationRouter
from livetranslate.pipelines.base import STYLE_ACCUMULATED, STYLE_BATCH, STYLE_DELTA

FALLBACK = "Sorry, an error occurred during translation."


class _ScriptedBackend:
    def __init__(self, style, attempts, backend_id="fake"):
        self.backend_id = backend_id
        self.style = style
        self._attempts = list(attempts)
        self.calls = 0
        self.instructions = []
        self.stopped = False

    async def generate(self, instruction, timeout_sec):
        self.calls += 1
        self.instructions.append(instruction)
        attempt = self._attempts.pop(0)
        for item in attempt:
            if isinstance(item, BaseException):
                raise item
            yield item

    async def stop(self):
        self.stopped = True


class _RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay, cancel):
        self.delays.append(delay)
        if cancel is not None:
            cancel.raise_if_cancelled()


def _normalizer(backend, sleep=None, **overrides):
    router = GenerationRouter({backend.backend_id: backend}, classify=lambda text: backend.backend_id)
    config = StreamingConfig(**overrides)
    return StreamNormalizer(router, config, sleep=sleep or _RecordingSleep())


async def _events(normalizer, text="Hello there", cancel=None):
    return [event async for event in normalizer.iter_events(text, "en-US", "es-ES", cancel=cancel)]


def _transient():
    return TransientGenerationError("busy", backend="fake", status=503)


def _assert_stream_shape(events):
    assert [e.sequence for e in events] == list(range(len(events)))
    assert [e.is_final for e in events] == [False] * (len(events) - 1) + [True]


class TestContentStyles:
    @pytest.mark.asyncio
    async def test_accumulated_backend_events(self):
        backend = _ScriptedBackend(STYLE_ACCUMULATED, [["Hola", "Hola,", "Hola, amigo"]])

        events = await _events(_normalizer(backend))

        _assert_stream_shape(events)
        assert [e.delta for e in events] == ["Hola", ",", " amigo"]
        assert events[-1].accumulated_text == "Hola, amigo"
        assert not events[-1].is_fallback
        assert "English (United States)" in backend.instructions[0]
        assert "Spanish (Spain)" in backend.instructions[0]

    @pytest.mark.asyncio
    async def test_delta_backend_reconstructs_text(self):
        backend = _ScriptedBackend(STYLE_DELTA, [["Hola", "", ",", " amigo"]])

        events = await _events(_normalizer(backend))

        _assert_stream_shape(events)
        assert [e.accumulated_text for e in events] == ["Hola", "Hola,", "Hola, amigo"]
        assert "".join(e.delta for e in events) == "Hola, amigo"

    @pytest.mark.asyncio
    async def test_accumulated_text_never_shrinks(self):
        backend = _ScriptedBackend(STYLE_ACCUMULATED, [["Hola", "Hola", "Ho", "Hola, amigo"]])

        events = await _events(_normalizer(backend))

        texts = [e.accumulated_text for e in events]
        assert texts == ["Hola", "Hola, amigo"]
        for previous, current in zip(texts, texts[1:]):
            assert current.startswith(previous)

    @pytest.mark.asyncio
    async def test_batch_backend_is_sliced(self):
        backend = _ScriptedBackend(STYLE_BATCH, [["Hola, amigo mio"]])
        sleep = _RecordingSleep()

        events = await _events(
            _normalizer(backend, sleep=sleep, simulated_slice_chars=5, simulated_slice_delay_sec=0.05)
        )

        _assert_stream_shape(events)
        assert [e.accumulated_text for e in events] == ["Hola,", "Hola, amig", "Hola, amigo mio"]
        assert sleep.delays == [0.05, 0.05]

    @pytest.mark.asyncio
    async def test_empty_output_still_ends_with_final(self):
        backend = _ScriptedBackend(STYLE_DELTA, [[]])

        events = await _events(_normalizer(backend))

        assert len(events) == 1
        assert events[0].is_final
        assert events[0].accumulated_text == ""
        assert not events[0].is_fallback

    @pytest.mark.asyncio
    async def test_unknown_style_falls_back(self):
        backend = _ScriptedBackend("mystery", [["text"]])

        events = await _events(_normalizer(backend))

        assert events[-1].is_fallback


class TestRetries:
    @pytest.mark.asyncio
    async def test_transient_failures_retry_with_backoff_then_fall_back(self):
        backend = _ScriptedBackend(STYLE_DELTA, [[_transient()] for _ in range(5)])
        sleep = _RecordingSleep()

        events = await _events(_normalizer(backend, sleep=sleep))

        assert backend.calls == 5
        assert sleep.delays == [1.0, 2.0, 4.0, 8.0]
        assert len(events) == 1
        final = events[0]
        assert final.is_final and final.is_fallback
        assert final.accumulated_text == FALLBACK
        assert final.delta == FALLBACK

    @pytest.mark.asyncio
    async def test_transient_failure_then_success(self):
        backend = _ScriptedBackend(STYLE_DELTA, [[_transient()], ["Hola"]])
        sleep = _RecordingSleep()

        events = await _events(_normalizer(backend, sleep=sleep))

        assert backend.calls == 2
        assert sleep.delays == [1.0]
        assert events[-1].accumulated_text == "Hola"
        assert not events[-1].is_fallback

    @pytest.mark.asyncio
    async def test_permanent_failure_is_not_retried(self):
        backend = _ScriptedBackend(STYLE_DELTA, [[PermanentGenerationError("bad", backend="fake", status=400)]])
        sleep = _RecordingSleep()

        events = await _events(_normalizer(backend, sleep=sleep))

        assert backend.calls == 1
        assert sleep.delays == []
        assert events[-1].is_fallback

    @pytest.mark.asyncio
    async def test_failure_after_first_update_is_not_retried(self):
        backend = _ScriptedBackend(STYLE_DELTA, [["Hola", _transient()], ["never"]])

        events = await _events(_normalizer(backend))

        assert backend.calls == 1
        _assert_stream_shape(events)
        assert events[-1].is_fallback
        assert events[-1].accumulated_text == FALLBACK

    @pytest.mark.asyncio
    async def test_custom_fallback_message(self):
        backend = _ScriptedBackend(STYLE_DELTA, [[_transient()]])

        events = await _events(_normalizer(backend, retry_max_attempts=1, fallback_message="Lo siento"))

        assert events[-1].accumulated_text == "Lo siento"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [AttributeError("'str' object has no attribute 'get'"), TypeError("bad delta")])
    async def test_unexpected_adapter_error_ends_with_fallback(self, error):
        backend = _ScriptedBackend(STYLE_DELTA, [["Hola", error]])
        seen = []

        result = await _normalizer(backend).stream("Hello there", "en-US", "es-ES", on_event=seen.append)

        assert backend.calls == 1
        _assert_stream_shape(seen)
        assert seen[-1].is_fallback
        assert result == FALLBACK


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_mid_stream_ends_with_partial_final(self):
        cancel = CancellationToken()
        backend = _ScriptedBackend(STYLE_DELTA, [["Hola", ",", " amigo"]])
        normalizer = _normalizer(backend)

        events = []
        async for event in normalizer.iter_events("Hello there", "en-US", "es-ES", cancel=cancel):
            events.append(event)
            cancel.cancel("client went away")

        _assert_stream_shape(events)
        assert not events[-1].is_fallback
        assert events[-1].accumulated_text.startswith("Hola")
        assert events[-1].accumulated_text != "Hola, amigo"

    @pytest.mark.asyncio
    async def test_cancel_before_start(self):
        cancel = CancellationToken()
        cancel.cancel()
        backend = _ScriptedBackend(STYLE_DELTA, [["Hola"]])

        events = await _events(_normalizer(backend), cancel=cancel)

        assert backend.calls == 0
        assert len(events) == 1
        assert events[0].is_final and events[0].accumulated_text == ""

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self):
        cancel = CancellationToken()
        backend = _ScriptedBackend(STYLE_DELTA, [[_transient()], ["Hola"]])

        class _CancellingSleep(_RecordingSleep):
            async def __call__(self, delay, token):
                token.cancel()
                await super().__call__(delay, token)

        events = await _events(_normalizer(backend, sleep=_CancellingSleep()), cancel=cancel)

        assert backend.calls == 1
        assert events[-1].is_final and not events[-1].is_fallback


class TestStream:
    @pytest.mark.asyncio
    async def test_stream_returns_final_text_and_awaits_async_callback(self):
        backend = _ScriptedBackend(STYLE_ACCUMULATED, [["Hola", "Hola, amigo"]])
        seen = []

        async def on_event(event):
            seen.append(event.delta)

        result = await _normalizer(backend).stream("Hello there", "en-US", "es-ES", on_event=on_event)

        assert result == "Hola, amigo"
        assert seen == ["Hola", ", amigo"]

    @pytest.mark.asyncio
    async def test_stream_returns_fallback_text(self):
        backend = _ScriptedBackend(STYLE_DELTA, [[_transient()]])
        seen = []

        result = await _normalizer(backend, retry_max_attempts=1).stream(
            "Hello there", "en-US", "es-ES", on_event=seen.append
        )

        assert result == FALLBACK
        assert seen[-1].is_fallback

    @pytest.mark.asyncio
    async def test_close_stops_backends(self):
        backend = _ScriptedBackend(STYLE_DELTA, [])
        normalizer = _normalizer(backend)

        await normalizer.close()

        assert backend.stopped


def test_simulated_slices():
    assert list(simulated_slices("abcdefg", 3)) == ["abc", "abcdef", "abcdefg"]
    assert list(simulated_slices("abc", 3)) == ["abc"]
    assert list(simulated_slices("", 3)) == []

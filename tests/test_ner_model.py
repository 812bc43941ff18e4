"""
Tests for the shared entity-recognition model loader.
"""

import asyncio
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from deid.core.exceptions import DeidentificationError, ModelUnavailableError
from deid.engine import ner_model
from deid.engine.ner_model import NerModelLoader, get_model_loader


class CountingFactory:
    """Records every load attempt; fails for the model names given."""

    def __init__(self, failing=(), delay=0.0):
        self.failing = set(failing)
        self.delay = delay
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, model_name, device):
        with self._lock:
            self.calls.append(model_name)
        time.sleep(self.delay)
        if model_name in self.failing:
            raise OSError(f"{model_name} unavailable")
        return lambda text: []


def _loader(factory):
    return NerModelLoader(
        primary_model="primary", fallback_model="fallback", factory=factory
    )


@pytest.mark.unit
class TestNerModelLoader:
    def test_initial_state(self):
        assert _loader(CountingFactory()).state == "not_loaded"

    def test_loads_primary(self):
        factory = CountingFactory()
        loader = _loader(factory)

        model = loader.get()

        assert callable(model)
        assert loader.state == "loaded"
        assert loader.model_name == "primary"
        assert factory.calls == ["primary"]

    def test_falls_back_when_primary_fails(self):
        factory = CountingFactory(failing={"primary"})
        loader = _loader(factory)

        loader.get()

        assert loader.model_name == "fallback"
        assert factory.calls == ["primary", "fallback"]

    def test_failure_is_cached(self):
        factory = CountingFactory(failing={"primary", "fallback"})
        loader = _loader(factory)

        with pytest.raises(ModelUnavailableError):
            loader.get()
        with pytest.raises(ModelUnavailableError):
            loader.get()

        assert loader.state == "failed"
        assert factory.calls == ["primary", "fallback"]

    def test_failure_names_the_models_tried(self):
        loader = _loader(CountingFactory(failing={"primary", "fallback"}))

        with pytest.raises(ModelUnavailableError) as excinfo:
            loader.get()

        assert excinfo.value.models == ("primary", "fallback")
        assert isinstance(excinfo.value, DeidentificationError)

    def test_loaded_model_is_reused(self):
        factory = CountingFactory()
        loader = _loader(factory)

        assert loader.get() is loader.get()
        assert len(factory.calls) == 1

    @pytest.mark.asyncio
    async def test_concurrent_async_callers_share_one_load(self):
        factory = CountingFactory(delay=0.1)
        loader = _loader(factory)

        models = await asyncio.gather(*(loader.aget() for _ in range(5)))

        assert factory.calls == ["primary"]
        assert all(m is models[0] for m in models)

    def test_concurrent_threads_share_one_load(self):
        factory = CountingFactory(delay=0.1)
        loader = _loader(factory)

        with ThreadPoolExecutor(max_workers=5) as pool:
            models = list(pool.map(lambda _: loader.get(), range(5)))

        assert factory.calls == ["primary"]
        assert all(m is models[0] for m in models)

    @pytest.mark.asyncio
    async def test_async_failure_raises(self):
        loader = _loader(CountingFactory(failing={"primary", "fallback"}))

        with pytest.raises(ModelUnavailableError):
            await loader.aget()
        assert loader.state == "failed"

    def test_loading_state_while_in_progress(self):
        started = threading.Event()
        release = threading.Event()

        def slow_factory(model_name, device):
            started.set()
            release.wait(5)
            return lambda text: []

        loader = _loader(slow_factory)
        worker = threading.Thread(target=loader.get)
        worker.start()
        started.wait(5)

        assert loader.state == "loading"

        release.set()
        worker.join(5)
        assert loader.state == "loaded"


@pytest.mark.unit
class TestGetModelLoader:
    def test_process_wide_loader(self, monkeypatch):
        monkeypatch.setattr(ner_model, "_loader", None)

        first = get_model_loader()

        assert first is get_model_loader()
        assert first.primary_model == ner_model.settings.ner_primary_model
        assert first.state == "not_loaded"

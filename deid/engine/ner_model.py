# deid/engine/ner_model.py

"""Process-wide, lazily loaded entity-recognition model."""

import asyncio
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Optional, Tuple

from deid.core.exceptions import ModelUnavailableError
from deid.service.config import settings

logger = logging.getLogger(__name__)

# Token-classification callable: text -> list of token prediction dicts
NerPipeline = Callable[[str], Any]
PipelineFactory = Callable[[str, int], NerPipeline]


def build_transformers_pipeline(model_name: str, device: int) -> NerPipeline:
    """Builds a raw (non-aggregated) token-classification pipeline.

    Imported lazily so regex-only deployments never import torch.
    """
    from transformers import pipeline

    return pipeline(
        "token-classification",
        model=model_name,
        aggregation_strategy="none",
        device=device,
    )


class NerModelLoader:
    """Loads one entity-recognition model and shares it for the process lifetime.

    The load state lives in a single ``concurrent.futures.Future`` guarded by a
    lock: no future means not loaded, a pending future means loading, and a
    resolved one holds either the model or the load failure. The first caller
    claims the future and performs the load; every concurrent caller, on any
    thread or event loop, waits on that same future. A failed load is not
    retried.
    """

    def __init__(
        self,
        primary_model: str,
        fallback_model: str,
        device: int = -1,
        factory: Optional[PipelineFactory] = None,
    ) -> None:
        self.primary_model = primary_model
        self.fallback_model = fallback_model
        self.device = device
        self._factory = factory or build_transformers_pipeline

        self._lock = threading.Lock()
        self._future: Optional[Future] = None
        self._pipeline: Optional[NerPipeline] = None
        self.model_name: Optional[str] = None

    @property
    def state(self) -> str:
        """One of 'not_loaded', 'loading', 'loaded' or 'failed'."""
        future = self._future
        if future is None:
            return "not_loaded"
        if not future.done():
            return "loading"
        return "failed" if future.exception() is not None else "loaded"

    def _claim(self) -> Tuple[Future, bool]:
        """Returns the shared future and whether this caller must load it."""
        with self._lock:
            if self._future is None:
                self._future = Future()
                return self._future, True
            return self._future, False

    def _load_into(self, future: Future) -> None:
        """Loads the primary model, falling back to the secondary on failure."""
        logger.info(
            "Loading entity-recognition model",
            extra={"model": self.primary_model},
        )

        try:
            handle = self._factory(self.primary_model, self.device)
            model_name = self.primary_model
        except Exception:
            logger.warning(
                "Primary entity-recognition model failed, falling back",
                exc_info=True,
                extra={"model": self.primary_model, "fallback": self.fallback_model},
            )
            try:
                handle = self._factory(self.fallback_model, self.device)
                model_name = self.fallback_model
            except Exception as e:
                logger.error(
                    "Fallback entity-recognition model failed to load",
                    exc_info=True,
                    extra={"model": self.fallback_model},
                )
                future.set_exception(
                    ModelUnavailableError(
                        f"Could not load '{self.primary_model}' or "
                        f"'{self.fallback_model}': {e}",
                        models=(self.primary_model, self.fallback_model),
                    )
                )
                return

        self._pipeline = handle
        self.model_name = model_name
        future.set_result(handle)
        logger.info(
            "Entity-recognition model loaded successfully",
            extra={"model": model_name},
        )

    def get(self) -> NerPipeline:
        """Returns the model, loading it in the calling thread if needed.

        Raises:
            ModelUnavailableError: If neither model could be loaded.
        """
        if self._pipeline is not None:
            return self._pipeline

        future, owner = self._claim()
        if owner:
            self._load_into(future)
        return future.result()

    async def aget(self) -> NerPipeline:
        """Async variant of get(); the load runs in a worker thread.

        Raises:
            ModelUnavailableError: If neither model could be loaded.
        """
        if self._pipeline is not None:
            return self._pipeline

        future, owner = self._claim()
        if owner:
            await asyncio.to_thread(self._load_into, future)
        return await asyncio.wrap_future(future)


_loader: Optional[NerModelLoader] = None
_loader_lock = threading.Lock()


def get_model_loader() -> NerModelLoader:
    """Returns the process-wide model loader configured from settings."""
    global _loader

    if _loader is None:
        with _loader_lock:
            # Double-checked locking pattern
            if _loader is None:
                _loader = NerModelLoader(
                    primary_model=settings.ner_primary_model,
                    fallback_model=settings.ner_fallback_model,
                    device=settings.ner_device,
                )

    return _loader

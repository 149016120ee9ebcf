"""
Transit Hub - AI Model Capability

Selects the generative model used by document extraction. Candidate models are
probed in order at startup and the first one that answers is kept.

State machine:
    uninitialized -> probing -> ready
                             -> unavailable   (no key, or every model failed)

One instance is built by the server lifespan and handed to whatever needs it;
callers check is_ready / await ensure_ready() instead of reaching for a global.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"

Probe = Callable[[str], Awaitable[None]]


class AIState(str, Enum):
    UNINITIALIZED = "uninitialized"
    PROBING = "probing"
    READY = "ready"
    UNAVAILABLE = "unavailable"


class AICapability:
    """Lazily probed model selection."""

    def __init__(self, models: List[str], probe: Optional[Probe]):
        self.models = list(models)
        self.probe = probe
        self.state = AIState.UNINITIALIZED
        self.model_name: Optional[str] = None
        self.last_error: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_ready(self) -> bool:
        return self.state == AIState.READY

    def start(self) -> None:
        """Kick off probing in the background. Safe to call more than once."""
        if self._task is None and self.state == AIState.UNINITIALIZED:
            self._task = asyncio.get_running_loop().create_task(self._initialize())

    async def ensure_ready(self) -> bool:
        """Wait for probing to finish; True when a model was selected."""
        if self.state == AIState.UNINITIALIZED:
            self.start()
        if self._task is not None:
            await asyncio.shield(self._task)
        return self.is_ready

    async def _initialize(self) -> None:
        if self.probe is None or not self.models:
            self.state = AIState.UNAVAILABLE
            self.last_error = "AI not configured"
            logger.warning("AI capability unavailable: no API key or no candidate models")
            return

        self.state = AIState.PROBING
        for model in self.models:
            try:
                await self.probe(model)
            except Exception as e:
                self.last_error = str(e)[:200]
                logger.warning("AI model %s unavailable: %s", model, str(e)[:80])
                continue
            self.model_name = model
            self.state = AIState.READY
            logger.info("AI model selected: %s", model)
            return

        self.state = AIState.UNAVAILABLE
        logger.error("No AI model available out of %s", self.models)

    async def close(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    def to_dict(self) -> Dict:
        return {
            "state": self.state.value,
            "model": self.model_name,
            "candidates": self.models,
            "error": self.last_error if self.state == AIState.UNAVAILABLE else None,
        }


def gemini_probe(api_key: str, timeout: float = 20.0) -> Optional[Probe]:
    """Probe that sends a one-word prompt to the Gemini REST API."""
    if not api_key:
        return None

    async def probe(model: str) -> None:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(
                f"{GEMINI_API_BASE}/models/{model}:generateContent",
                params={"key": api_key},
                json={"contents": [{"parts": [{"text": "test"}]}]},
            )
            response.raise_for_status()

    return probe

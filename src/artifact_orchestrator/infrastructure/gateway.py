"""Completion gateway: the single seam between the orchestrator and an LLM.

Every model call in the package goes through :class:`CompletionGateway`.
It wraps a LangChain ``BaseChatModel`` in a ``prompt | model | parser``
chain and enforces two disciplines uniformly:

* an explicit timeout, after which the call is abandoned with
  :class:`CompletionTimeoutError`;
* cooperative cancellation through a ``threading.Event``, checked before the
  call and while waiting for it.

Other failures raised by the model propagate unchanged so that the error
classifier sees the provider's own message (``ECONNREFUSED``, quota
errors, ...).
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate

from artifact_orchestrator.domain.exceptions import (
    CompletionCancelledError,
    CompletionTimeoutError,
)
from artifact_orchestrator.infrastructure.config import GatewayConfig

logger = logging.getLogger(__name__)

# How often a waiting call re-checks its cancellation token.
_POLL_INTERVAL = 0.05

DEFAULT_SYSTEM_PROMPT = (
    "You are an expert software engineer who composes production-ready code "
    "modules from business requirements. Follow the requested output format "
    "exactly."
)


@dataclass(frozen=True)
class CompletionOptions:
    """Per-call overrides.  ``None`` means "use the gateway config"."""

    temperature: float | None = None
    max_tokens: int | None = None
    timeout: float | None = None


class CompletionGateway:
    """Timeout- and cancellation-aware wrapper around a chat model.

    Parameters
    ----------
    model:
        A LangChain chat model (e.g. ``ChatAnthropic``, ``ChatOpenAI``).
    config:
        Gateway configuration; supplies the default timeout.
    system_prompt:
        System message used when a call does not supply its own.
    """

    def __init__(
        self,
        model: BaseChatModel,
        config: GatewayConfig | None = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> None:
        self.model = model
        self.config = config or GatewayConfig()
        self.system_prompt = system_prompt
        self._prompt = ChatPromptTemplate.from_messages(
            [("system", "{system}"), ("human", "{prompt}")]
        )
        self._chain = self._build_chain()

    def _build_chain(self, **bind_kwargs: Any) -> Any:
        model: Any = self.model.bind(**bind_kwargs) if bind_kwargs else self.model
        return self._prompt | model | StrOutputParser()

    def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        options: CompletionOptions | None = None,
        cancel_event: threading.Event | None = None,
    ) -> str:
        """Send *prompt* to the model and return its text.

        Raises
        ------
        CompletionTimeoutError
            The call did not finish within the configured timeout.
        CompletionCancelledError
            *cancel_event* was set before or during the call.
        """
        opts = options or CompletionOptions()
        timeout = opts.timeout if opts.timeout is not None else self.config.timeout

        overrides: dict[str, Any] = {}
        if opts.temperature is not None:
            overrides["temperature"] = opts.temperature
        if opts.max_tokens is not None:
            overrides["max_tokens"] = opts.max_tokens
        chain = self._build_chain(**overrides) if overrides else self._chain

        inputs = {"system": system or self.system_prompt, "prompt": prompt}
        logger.debug(
            "CompletionGateway: sending %d-char prompt (timeout=%.1fs)",
            len(prompt),
            timeout,
        )
        text = self._invoke_with_timeout(chain, inputs, timeout, cancel_event)
        return text if isinstance(text, str) else str(text)

    def _invoke_with_timeout(
        self,
        chain: Any,
        inputs: dict[str, Any],
        timeout: float,
        cancel_event: threading.Event | None,
    ) -> Any:
        """Invoke the chain in a worker thread, polling for cancellation."""
        if cancel_event is not None and cancel_event.is_set():
            raise CompletionCancelledError("Completion cancelled before it started")

        pool = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        future = pool.submit(chain.invoke, inputs)
        deadline = time.monotonic() + timeout
        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.warning(
                        "CompletionGateway: call exceeded %.1fs timeout", timeout
                    )
                    raise CompletionTimeoutError(
                        f"Completion timed out after {timeout:.1f}s",
                        timeout=timeout,
                    )
                done, _ = concurrent.futures.wait(
                    [future], timeout=min(remaining, _POLL_INTERVAL)
                )
                if done:
                    return future.result()
                if cancel_event is not None and cancel_event.is_set():
                    raise CompletionCancelledError("Completion cancelled")
        finally:
            # The worker thread cannot be interrupted; abandon it.
            pool.shutdown(wait=False, cancel_futures=True)

"""Chat-model factory for the completion gateway.

Registry-based factory that builds LangChain chat models by provider name.
Provider packages are imported lazily inside each constructor, so a missing
optional dependency only fails when that provider is actually requested.

Usage::

    factory = ChatModelFactory()
    model = factory.create(GatewayConfig(provider="anthropic", model="claude-sonnet-4-5"))
    gateway = CompletionGateway(model, config)
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from langchain_core.language_models import BaseChatModel

from artifact_orchestrator.infrastructure.config import GatewayConfig

logger = logging.getLogger(__name__)

ModelConstructor = Callable[[GatewayConfig], BaseChatModel]


class ChatModelFactory:
    """Maps provider names to chat-model constructors.

    Built-in providers are ``anthropic``, ``openai`` and ``mock`` (a
    :class:`~artifact_orchestrator.testing.ScriptedChatModel` with an empty
    script).  Custom providers can be added via :meth:`register`.
    """

    def __init__(self, auto_discover: bool = True) -> None:
        self._registry: dict[str, ModelConstructor] = {}
        if auto_discover:
            self._registry["anthropic"] = self._create_anthropic
            self._registry["openai"] = self._create_openai
            self._registry["mock"] = self._create_mock

    def register(
        self,
        name: str,
        constructor: ModelConstructor,
        overwrite: bool = False,
    ) -> None:
        """Register a constructor under *name*.

        Raises ``ValueError`` if the name is taken and *overwrite* is false.
        """
        if name in self._registry and not overwrite:
            raise ValueError(
                f"Provider {name!r} is already registered. "
                f"Use overwrite=True to replace it."
            )
        self._registry[name] = constructor
        logger.debug("ChatModelFactory: registered provider %r", name)

    def create(self, config: GatewayConfig) -> BaseChatModel:
        """Build the chat model described by *config*.

        Raises
        ------
        ValueError
            If the provider is not registered.
        ImportError
            If the provider's integration package is not installed.
        """
        constructor = self._registry.get(config.provider)
        if constructor is None:
            available = ", ".join(sorted(self._registry))
            raise ValueError(
                f"Unknown provider {config.provider!r}. "
                f"Available providers: {available}"
            )
        logger.info(
            "ChatModelFactory: creating %r model %r", config.provider, config.model
        )
        return constructor(config)

    @property
    def registered_providers(self) -> list[str]:
        return sorted(self._registry)

    def __contains__(self, name: str) -> bool:
        return name in self._registry

    # -- built-in constructors ------------------------------------------------

    @staticmethod
    def _create_anthropic(config: GatewayConfig) -> BaseChatModel:
        from langchain_anthropic import ChatAnthropic

        kwargs: dict[str, Any] = {
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
            "timeout": config.timeout,
        }
        return ChatAnthropic(model=config.model or "claude-sonnet-4-5", **kwargs)

    @staticmethod
    def _create_openai(config: GatewayConfig) -> BaseChatModel:
        from langchain_openai import ChatOpenAI

        kwargs: dict[str, Any] = {
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
            "timeout": config.timeout,
        }
        return ChatOpenAI(model=config.model or "gpt-4o", **kwargs)

    @staticmethod
    def _create_mock(config: GatewayConfig) -> BaseChatModel:
        from artifact_orchestrator.testing.mock_llm import ScriptedChatModel

        return ScriptedChatModel()


def create_chat_model(config: GatewayConfig) -> BaseChatModel:
    """Shortcut for ``ChatModelFactory().create(config)``."""
    return ChatModelFactory().create(config)

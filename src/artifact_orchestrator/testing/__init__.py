"""Public testing utilities for the artifact orchestrator.

Provides a scripted chat model for writing self-contained tests and
examples without API keys.
"""

from artifact_orchestrator.testing.mock_llm import Delayed, ScriptedChatModel

__all__ = ["Delayed", "ScriptedChatModel"]

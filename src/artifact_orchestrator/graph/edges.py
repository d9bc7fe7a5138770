"""Conditional edge functions for the pipeline graph.

These functions determine routing between nodes based on the current state.
"""

from __future__ import annotations

from typing import Any, Literal


def after_compose(state: dict[str, Any]) -> Literal["assess", "recover", "finish"]:
    """Failed -> recover; cancelled with nothing to show -> finish; otherwise assess."""
    if state.get("failure"):
        return "recover"
    if not state.get("artifacts"):
        return "finish"
    return "assess"


def after_assess(state: dict[str, Any]) -> Literal["refine", "finish"]:
    """A cancelled run is scored but not refined further."""
    if state.get("cancelled"):
        return "finish"
    return "refine"


def after_refine(state: dict[str, Any]) -> Literal["validate", "finish"]:
    if state.get("cancelled"):
        return "finish"
    return "validate"


def after_validate(state: dict[str, Any]) -> Literal["recover", "finish"]:
    if state.get("failure"):
        return "recover"
    return "finish"


def after_recover(state: dict[str, Any]) -> Literal["assess", "finish"]:
    """Resume at assess with recovered artifacts; anything else ends the run."""
    recovery = state.get("recovery")
    if (
        recovery is not None
        and recovery.success
        and state.get("artifacts")
        and not state.get("failure")
        and not state.get("cancelled")
    ):
        return "assess"
    return "finish"

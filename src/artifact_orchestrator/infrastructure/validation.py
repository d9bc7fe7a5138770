"""Validator interface and the built-in static artifact validator.

The static validator never executes generated code.  It checks syntax as
far as that is possible without a compiler (``ast.parse`` for Python,
delimiter balance for brace languages) and reports integration smells as
warnings: a module without exports, an SDK import without a client, and
environment access without a config loader.
"""

from __future__ import annotations

import ast
import logging
import re
from collections.abc import Iterable, Sequence
from typing import Protocol, runtime_checkable

from artifact_orchestrator.domain.values import GeneratedArtifact, ValidationResult

logger = logging.getLogger(__name__)


@runtime_checkable
class Validator(Protocol):
    """Validates one generated artifact."""

    def validate(self, artifact: GeneratedArtifact) -> ValidationResult: ...


# ---------------------------------------------------------------------------
# Syntax helpers
# ---------------------------------------------------------------------------

_STRIP_RE = re.compile(
    r"//[^\n]*|/\*.*?\*/|\"(?:\\.|[^\"\\\n])*\"|'(?:\\.|[^'\\\n])*'",
    re.DOTALL,
)
_PAIRS = {")": "(", "]": "[", "}": "{"}
_BRACE_EXECUTABLE_RE = re.compile(r"\bfunction\b|\bclass\b|=>")
_PYTHON_EXECUTABLE_RE = re.compile(r"^\s*(?:async\s+)?def\s|^\s*class\s|\blambda\b", re.MULTILINE)

PYTHON_LANGUAGES = frozenset({"python", "py"})


def has_executable_construct(content: str, language: str = "typescript") -> bool:
    """Whether *content* defines at least one function, class or arrow function."""
    if language.lower() in PYTHON_LANGUAGES:
        return bool(_PYTHON_EXECUTABLE_RE.search(content))
    return bool(_BRACE_EXECUTABLE_RE.search(content))


def check_balanced_delimiters(content: str) -> list[str]:
    """Return problems with ``()[]{}`` nesting, ignoring strings and comments."""
    stripped = _STRIP_RE.sub("", content)
    stack: list[tuple[str, int]] = []
    for line_no, line in enumerate(stripped.splitlines(), start=1):
        for char in line:
            if char in "([{":
                stack.append((char, line_no))
            elif char in _PAIRS:
                if not stack or stack[-1][0] != _PAIRS[char]:
                    return [f"Unexpected '{char}' on line {line_no}"]
                stack.pop()
    if stack:
        char, line_no = stack[-1]
        return [f"Unclosed '{char}' opened on line {line_no}"]
    return []


def check_syntax(content: str, language: str = "typescript") -> list[str]:
    """Return syntax problems for *content*; empty means it looks well-formed."""
    if not content.strip():
        return ["Artifact is empty"]
    if language.lower() in PYTHON_LANGUAGES:
        try:
            ast.parse(content)
        except SyntaxError as exc:
            return [f"SyntaxError: {exc.msg} (line {exc.lineno})"]
        return []
    return check_balanced_delimiters(content)


# ---------------------------------------------------------------------------
# StaticArtifactValidator
# ---------------------------------------------------------------------------

class StaticArtifactValidator:
    """Heuristic validator used when no project toolchain is available.

    Parameters
    ----------
    sdk_markers:
        Import strings identifying the domain SDK.  When one is present the
        module is expected to construct a ``Client``.
    require_executable:
        If ``True``, an artifact with no function, class or arrow function
        fails validation.
    """

    def __init__(
        self,
        sdk_markers: Sequence[str] = ("@hashgraph/sdk",),
        require_executable: bool = True,
    ) -> None:
        self.sdk_markers = tuple(sdk_markers)
        self.require_executable = require_executable

    def validate(self, artifact: GeneratedArtifact) -> ValidationResult:
        content = artifact.content
        issues = check_syntax(content, artifact.language)
        warnings: list[str] = []

        if (
            not issues
            and self.require_executable
            and not has_executable_construct(content, artifact.language)
        ):
            issues.append("No function, class or arrow function found")

        if artifact.language.lower() not in PYTHON_LANGUAGES:
            if "import" not in content and "require(" not in content:
                warnings.append("No import statements found - may need dependencies")
            if "export" not in content and "module.exports" not in content:
                warnings.append("No export statements found - may not be reusable")
            if "process.env" in content and "dotenv" not in content:
                warnings.append("Environment variables used without a config loader (dotenv)")

        if any(marker in content for marker in self.sdk_markers) and "Client" not in content:
            warnings.append("SDK imported but no Client is constructed")
        if "try" not in content:
            warnings.append("No structured error handling found")

        result = ValidationResult(passed=not issues, issues=tuple(issues), warnings=tuple(warnings))
        logger.debug(
            "StaticArtifactValidator: %s passed=%s issues=%d warnings=%d",
            artifact.path,
            result.passed,
            len(result.issues),
            len(result.warnings),
        )
        return result

    def validate_all(self, artifacts: Iterable[GeneratedArtifact]) -> ValidationResult:
        """Validate every artifact; issues are prefixed with the artifact path."""
        return merge_results(
            (artifact.path, self.validate(artifact)) for artifact in artifacts
        )


def merge_results(results: Iterable[tuple[str, ValidationResult]]) -> ValidationResult:
    """Fold per-artifact results into one, prefixing messages with the path."""
    issues: list[str] = []
    warnings: list[str] = []
    for path, result in results:
        issues.extend(f"{path}: {issue}" for issue in result.issues)
        warnings.extend(f"{path}: {warning}" for warning in result.warnings)
    return ValidationResult(passed=not issues, issues=tuple(issues), warnings=tuple(warnings))

"""
ExportStep — abstract base class for the export workflow's steps.

The engine hands each step to the StepExecutor under the step's `name`,
so a step's side effects happen once per workflow id. Steps only need to
implement the business logic and return a JSON-serializable result.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from usfm_export.pipeline.context import ExportContext


class ExportStep(ABC):
    """
    Base class for every export step.

    Subclasses MUST implement:
        - name (str)          — ledger key, e.g. "initialize"
        - description (str)   — human-readable label for logs
        - execute(ctx)        — the actual business logic

    Raise an ExportError subclass on failure; never swallow exceptions.
    """

    name: str = "unnamed_step"
    description: str = "No description"

    @abstractmethod
    async def execute(self, ctx: ExportContext) -> dict[str, Any]:
        """Run the step's logic and return its (JSON-serializable) result."""
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name}>"

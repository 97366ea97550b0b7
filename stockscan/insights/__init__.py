"""Insight backend base class, prompt and factory."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import date
from typing import TYPE_CHECKING

from ..errors import InsightsError
from ..models import Product
from .parser import Insight, parse_insights

if TYPE_CHECKING:
    from ..config import StockscanConfig

NO_PRODUCTS_MARKDOWN = (
    "### No Products\nThere are no products in the inventory to analyze."
)

_PROMPT = """\
You are an expert inventory analyst. Your task is to analyze the provided \
list of products and generate a concise, actionable summary in markdown format.

The current date is {today}.

Your analysis must include the following sections, each starting with a '###' \
title on its own line. There MUST be a newline character after each title.
- ### Expiring Soon
  List products that will expire within the next 30 days. Include the product \
name and expiry date. If none, state "No items are expiring soon."
- ### Low Stock
  List products with a quantity of 5 or less. Include the product name and \
current quantity. If none, state "No items are low in stock."
- ### Overall Summary
  Provide a brief, one-paragraph, high-level summary of the inventory's status.

Analyze the following products:
{products}

Reply with the markdown only. Be clear and concise.
"""


def build_prompt(products: Iterable[Product], today: date | None = None) -> str:
    today = today or date.today()
    data = [{"id": p.id, **p.to_record()} for p in products]
    return _PROMPT.format(
        today=today.isoformat(),
        products=json.dumps(data, ensure_ascii=False, indent=2, default=str),
    )


class InsightBackend(ABC):
    """Abstract base for markdown inventory insight generation."""

    async def generate_insights(self, products: Iterable[Product]) -> str:
        """Return a markdown insight document for the given products.

        An empty inventory is answered locally without calling the model.

        Raises:
            InsightsError: If the model returns no text.
        """
        products = list(products)
        if not products:
            return NO_PRODUCTS_MARKDOWN

        text = await self._complete(build_prompt(products))
        if not text or not text.strip():
            raise InsightsError("Failed to generate inventory insights.")
        return text

    @abstractmethod
    async def _complete(self, prompt: str) -> str:
        """Send the prompt to the model and return its text reply."""
        ...


def create_backend(config: StockscanConfig) -> InsightBackend:
    """Create an insight backend based on configuration."""
    backend_name = config.insights.backend

    match backend_name:
        case "claude":
            from .claude import ClaudeInsightBackend

            return ClaudeInsightBackend(
                api_key=config.insights.claude.api_key,
                model=config.insights.claude.model,
            )
        case "gemini":
            from .gemini import GeminiInsightBackend

            return GeminiInsightBackend(
                api_key=config.insights.gemini.api_key,
                model=config.insights.gemini.model,
            )
        case _:
            raise ValueError(
                f"Unknown insights backend: {backend_name!r} "
                "(choose claude or gemini)"
            )


__all__ = [
    "Insight",
    "InsightBackend",
    "NO_PRODUCTS_MARKDOWN",
    "build_prompt",
    "create_backend",
    "parse_insights",
]

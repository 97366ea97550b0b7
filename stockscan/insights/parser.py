"""Lenient parser for markdown insight documents.

The model is asked for ``###`` sections titled "Expiring Soon", "Low Stock"
and "Overall Summary" ("No Products" for an empty inventory). Titles are
matched by substring, unknown sections are ignored and a document without
any headings yields no insights.
"""

from __future__ import annotations

from dataclasses import dataclass, field

EXPIRING_SOON = "Expiring Soon"
LOW_STOCK = "Low Stock"
OVERALL_SUMMARY = "Overall Summary"
NO_PRODUCTS = "No Products"


@dataclass
class Insight:
    title: str
    variant: str  # "destructive" | "warning" | "default"
    items: list[str] = field(default_factory=list)
    summary: str | None = None

    @property
    def has_items(self) -> bool:
        """False when the section is empty or only says there are no items."""
        if not self.items or not self.items[0]:
            return False
        return "no items" not in self.items[0].lower()


def parse_insights(markdown: str | None) -> list[Insight]:
    if not markdown:
        return []

    insights: list[Insight] = []
    for section in _strip_fences(markdown).split("###"):
        lines = [line.strip() for line in section.split("\n") if line.strip()]
        if not lines:
            continue
        title, *content = lines

        if EXPIRING_SOON in title:
            insights.append(
                Insight(title=title, variant="destructive", items=_items(content))
            )
        elif LOW_STOCK in title:
            insights.append(
                Insight(title=title, variant="warning", items=_items(content))
            )
        elif OVERALL_SUMMARY in title or NO_PRODUCTS in title:
            insights.append(
                Insight(title=title, variant="default", summary="\n".join(content))
            )
    return insights


def _items(lines: list[str]) -> list[str]:
    items = []
    for line in lines:
        if line[:1] in ("-", "*"):
            line = line[1:]
        items.append(line.strip())
    return items


def _strip_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    return cleaned

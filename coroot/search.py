"""The search view: every application and node, sorted by name."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any


def _app_name(application_id: str) -> str:
    return application_id.split(":", 2)[-1]


@dataclass
class SearchView:
    """Application ids (`namespace:kind:name`) and node names to search through."""

    applications: list[str] = field(default_factory=list)
    nodes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the view in its JSON shape."""
        return {
            "applications": [{"id": a} for a in self.applications],
            "nodes": [{"name": n} for n in self.nodes],
        }


def render(application_ids: Iterable[str], node_names: Iterable[str]) -> SearchView:
    """Build the search view, applications sorted by name, nodes by node name."""
    return SearchView(
        applications=sorted(application_ids, key=_app_name),
        nodes=sorted(node_names),
    )
"""
Drift Detector — set differences between the draft and published state.

Two uses share the same diff shape:
- Publish preview: widget names vs. the previous Version's widgets.
- Environment drift banner: data-source names vs. the last published snapshot.

Also derives the widget/data-source dependency graph. Widgets with declared
``source_refs`` bind to exactly those sources; widgets without refs
(imported or legacy) fall back to a case-insensitive substring match of the
source name inside the widget name.
"""

from typing import Dict, Iterable, List, Optional

from dashgate.models.dashboard import DashboardConfig, Widget
from dashgate.models.publish import DriftDiff, PublishedSnapshot
from dashgate.models.version import Version


def _unique(items: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for item in items:
        if item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


def diff(current: Iterable[str], previous: Iterable[str]) -> DriftDiff:
    """Order-preserving set difference in both directions."""
    current_items = _unique(current)
    previous_items = _unique(previous)
    previous_set = set(previous_items)
    current_set = set(current_items)
    return DriftDiff(
        added=[c for c in current_items if c not in previous_set],
        removed=[p for p in previous_items if p not in current_set],
    )


def publish_preview_diff(
    config: DashboardConfig, previous_version: Optional[Version]
) -> DriftDiff:
    previous = [w.name for w in previous_version.widgets] if previous_version else []
    return diff((w.name for w in config.widgets), previous)


def environment_drift(
    config: DashboardConfig, snapshot: Optional[PublishedSnapshot]
) -> DriftDiff:
    previous = list(snapshot.data_sources) if snapshot else []
    return diff(config.data_sources.keys(), previous)


def widget_sources(widget: Widget, source_names: Iterable[str]) -> List[str]:
    """Data sources a widget is bound to."""
    names = list(source_names)
    if widget.source_refs:
        known = set(names)
        return [ref for ref in _unique(widget.source_refs) if ref in known]
    lowered = widget.name.lower()
    return [n for n in names if n and n.lower() in lowered]


def dependency_graph(config: DashboardConfig) -> Dict[str, List[str]]:
    """Map each data source to the widget names bound to it."""
    graph: Dict[str, List[str]] = {name: [] for name in config.data_sources}
    for widget in config.widgets:
        for source in widget_sources(widget, config.data_sources.keys()):
            if widget.name not in graph[source]:
                graph[source].append(widget.name)
    return graph


def unbound_sources(config: DashboardConfig) -> List[str]:
    return [name for name, widgets in dependency_graph(config).items() if not widgets]

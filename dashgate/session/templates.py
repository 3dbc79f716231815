"""Starter widget sets. Each entry is (widget name, declared data sources)."""

from typing import Dict, List, Tuple

TEMPLATES: Dict[str, List[Tuple[str, List[str]]]] = {
    "revenue": [
        ("Revenue Overview", ["Orders"]),
        ("Average Order Value", ["Orders"]),
        ("Refund Rate", ["Orders", "Returns"]),
    ],
    "marketing": [
        ("Traffic by Channel", ["Traffic"]),
        ("Campaign ROAS", ["Ads", "Orders"]),
        ("Email Click-through", ["Email"]),
    ],
    "operations": [
        ("Fulfillment Latency", ["Fulfillment"]),
        ("Inventory at Risk", ["Inventory"]),
    ],
}

"""
Chart Projection

Pure functions shaping computed metrics into Chart.js-style structures for
the dashboard. Inputs are the serialized day buckets and channel rows from
a metrics payload, so cached payloads can be charted without recomputation.
"""

from typing import Any, Callable, Dict, List, Optional

Series = List[Dict[str, Any]]

TOTAL_COLOR = "#3B82F6"
PROCESSED_COLOR = "#10B981"
OPEN_COLOR = "#F59E0B"
ITEMS_COLOR = "#8B5CF6"

CHANNEL_PALETTE = [
    "#3B82F6",  # blue
    "#10B981",  # green
    "#F59E0B",  # amber
    "#EF4444",  # red
    "#8B5CF6",  # purple
    "#EC4899",  # pink
    "#14B8A6",  # teal
    "#F97316",  # orange
    "#6366F1",  # indigo
    "#84CC16",  # lime
]

_FILLS = {
    TOTAL_COLOR: "rgba(59, 130, 246, 0.1)",
    PROCESSED_COLOR: "rgba(16, 185, 129, 0.1)",
    OPEN_COLOR: "rgba(245, 158, 11, 0.1)",
    ITEMS_COLOR: "rgba(139, 92, 246, 0.1)",
}


def single_day_chart_options(dual_axis: bool = False) -> Dict[str, Any]:
    """Layout padding that centres a lone data point."""
    y_axis = {"beginAtZero": True, "grace": "15%"}
    options: Dict[str, Any] = {
        "layout": {
            "padding": {"left": 40, "right": 40, "top": 20, "bottom": 10},
        },
        "scales": {
            "x": {"offset": True, "grid": {"offset": True}},
            "y": dict(y_axis),
        },
    }
    if dual_axis:
        options["scales"]["y1"] = dict(y_axis)
    return options


def needs_padding(series: Series, single_day: bool = False) -> bool:
    """A lone point, or no point at all, renders centred."""
    return single_day or sum(1 for day in series if day["orders"] > 0) <= 1


def _dataset(label: str, data: List[Any], color: str, dashed: bool = False, **extra: Any) -> Dict[str, Any]:
    dataset = {
        "label": label,
        "data": data,
        "borderColor": color,
        "backgroundColor": _FILLS.get(color, color),
        "tension": 0.4,
        "fill": True,
        "borderWidth": 2,
    }
    if dashed:
        dataset["borderDash"] = [5, 5]
    dataset.update(extra)
    return dataset


def _finish(chart: Dict[str, Any], series: Series, single_day: bool, dual_axis: bool = False) -> Dict[str, Any]:
    chart["meta"] = {"iso_dates": [day["iso_date"] for day in series]}
    if needs_padding(series, single_day):
        chart["options"] = single_day_chart_options(dual_axis=dual_axis)
    return chart


def _revenue_labels(series: Series, currency: str) -> List[str]:
    return [f"{day['date']} - {currency}{day['revenue']:,.0f}" for day in series]


def line_chart(series: Series, single_day: bool = False, currency: str = "£") -> Dict[str, Any]:
    """Daily revenue split into total, processed and open lines."""
    chart = {
        "labels": _revenue_labels(series, currency),
        "datasets": [
            _dataset(f"Total Revenue ({currency})", [d["revenue"] for d in series], TOTAL_COLOR),
            _dataset(f"Processed Orders Revenue ({currency})", [d["processed_revenue"] for d in series], PROCESSED_COLOR),
            _dataset(f"Open Orders Revenue ({currency})", [d["open_revenue"] for d in series], OPEN_COLOR, dashed=True),
        ],
    }
    return _finish(chart, series, single_day)


def bar_chart(series: Series, single_day: bool = False, currency: str = "£") -> Dict[str, Any]:
    """Daily revenue as bars, processed and open side by side."""
    chart = {
        "labels": _revenue_labels(series, currency),
        "datasets": [
            {
                "label": f"Processed Orders Revenue ({currency})",
                "data": [d["processed_revenue"] for d in series],
                "backgroundColor": PROCESSED_COLOR,
                "borderRadius": 4,
            },
            {
                "label": f"Open Orders Revenue ({currency})",
                "data": [d["open_revenue"] for d in series],
                "backgroundColor": OPEN_COLOR,
                "borderRadius": 4,
            },
        ],
    }
    return _finish(chart, series, single_day)


def order_count_chart(series: Series, single_day: bool = False) -> Dict[str, Any]:
    chart = {
        "labels": [f"{d['date']} - {d['orders']}" for d in series],
        "datasets": [
            _dataset("Total Orders", [d["orders"] for d in series], TOTAL_COLOR),
            _dataset("Processed Orders", [d["processed_orders"] for d in series], PROCESSED_COLOR),
            _dataset("Open Orders", [d["open_orders"] for d in series], OPEN_COLOR, dashed=True),
        ],
    }
    return _finish(chart, series, single_day)


def items_chart(series: Series, single_day: bool = False) -> Dict[str, Any]:
    chart = {
        "labels": [f"{d['date']} - {d['items']}" for d in series],
        "datasets": [
            _dataset("Items Sold", [d["items"] for d in series], ITEMS_COLOR),
        ],
    }
    return _finish(chart, series, single_day)


def orders_vs_revenue_chart(series: Series, single_day: bool = False, currency: str = "£") -> Dict[str, Any]:
    """Orders on the left axis, revenue on the right."""
    chart = {
        "labels": [f"{d['date']} - {d['orders']} / {currency}{d['revenue']:,.0f}" for d in series],
        "datasets": [
            _dataset("Orders", [d["orders"] for d in series], TOTAL_COLOR, yAxisID="y"),
            _dataset(f"Revenue ({currency})", [d["revenue"] for d in series], PROCESSED_COLOR, yAxisID="y1"),
        ],
    }
    return _finish(chart, series, single_day, dual_axis=True)


def doughnut_chart(channels: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Revenue share per channel row."""
    return {
        "labels": [channel["name"] for channel in channels],
        "datasets": [
            {
                "label": "Revenue by Channel",
                "data": [channel["revenue"] for channel in channels],
                "backgroundColor": CHANNEL_PALETTE[: len(channels)],
                "borderWidth": 2,
            }
        ],
    }


def order_status_doughnut(processed: int, open_orders: int) -> Dict[str, Any]:
    return {
        "labels": ["Processed", "Open"],
        "datasets": [
            {
                "label": "Orders by Status",
                "data": [processed, open_orders],
                "backgroundColor": [PROCESSED_COLOR, OPEN_COLOR],
                "borderWidth": 2,
            }
        ],
    }


def _series_chart(builder: Callable[..., Dict[str, Any]], uses_currency: bool):
    def build(payload: Dict[str, Any], single_day: bool, currency: str) -> Dict[str, Any]:
        if uses_currency:
            return builder(payload["daily_series"], single_day=single_day, currency=currency)
        return builder(payload["daily_series"], single_day=single_day)
    return build


CHART_BUILDERS: Dict[str, Callable[[Dict[str, Any], bool, str], Dict[str, Any]]] = {
    "revenue": _series_chart(line_chart, uses_currency=True),
    "revenue_bar": _series_chart(bar_chart, uses_currency=True),
    "orders": _series_chart(order_count_chart, uses_currency=False),
    "items": _series_chart(items_chart, uses_currency=False),
    "orders_vs_revenue": _series_chart(orders_vs_revenue_chart, uses_currency=True),
    "channels": lambda payload, single_day, currency: doughnut_chart(payload["top_channels"]),
    "channels_grouped": lambda payload, single_day, currency: doughnut_chart(payload["channels_grouped"]),
    "status": lambda payload, single_day, currency: order_status_doughnut(
        payload["processed_orders"], payload["open_orders"]
    ),
}


def build_chart(
    kind: str,
    payload: Dict[str, Any],
    single_day: bool = False,
    currency: str = "£",
) -> Optional[Dict[str, Any]]:
    """Chart ``kind`` for a metrics payload, or None for an unknown kind."""
    builder = CHART_BUILDERS.get(kind)
    if builder is None:
        return None
    return builder(payload, single_day, currency)

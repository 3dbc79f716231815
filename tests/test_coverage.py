"""Tests for the Coverage Calculator."""

from dashgate.coverage.calculator import (
    average_latency,
    compute_coverage,
    owner_coverage,
    pii_coverage,
    target_coverage,
)
from dashgate.models.dashboard import DashboardConfig, DataSource, Widget


def _make_config(n_widgets: int = 3, targets: int = 1) -> DashboardConfig:
    widgets = [Widget(id=f"w{i}", name=f"Widget {i}") for i in range(n_widgets)]
    return DashboardConfig(
        widgets=widgets,
        targets={w.id: ">= 99%" for w in widgets[:targets]},
        data_sources={
            "Orders": DataSource(name="Orders", owner="finance", pii_reviewed=True, latency_ms=200),
            "Traffic": DataSource(name="Traffic", latency_ms=301),
        },
    )


class TestCoverage:
    def test_empty_config_is_zero(self):
        metrics = compute_coverage(DashboardConfig())
        assert metrics.target_coverage == 0
        assert metrics.owner_coverage == 0
        assert metrics.pii_coverage == 0
        assert metrics.average_latency == 0

    def test_target_coverage_rounds_half_up(self):
        # 1 of 3 -> 33.33, 2 of 3 -> 66.67
        assert target_coverage(_make_config(3, 1)) == 33
        assert target_coverage(_make_config(3, 2)) == 67
        # 1 of 8 -> 12.5
        assert target_coverage(_make_config(8, 1)) == 13

    def test_blank_target_counts_as_missing(self):
        config = _make_config(2, 2)
        config.targets["w0"] = "   "
        assert target_coverage(config) == 50

    def test_owner_and_pii_coverage(self):
        config = _make_config()
        assert owner_coverage(config) == 50
        assert pii_coverage(config) == 50

    def test_whitespace_owner_is_missing(self):
        config = _make_config()
        config.data_sources["Traffic"].owner = "  "
        assert owner_coverage(config) == 50

    def test_average_latency_skips_unrecorded(self):
        assert average_latency([200, 301, None]) == 251
        assert average_latency([None]) == 0
        assert average_latency([]) == 0

    def test_compute_coverage_average(self):
        metrics = compute_coverage(_make_config())
        assert metrics.average_latency == 251

    def test_full_coverage(self):
        config = _make_config(2, 2)
        for ds in config.data_sources.values():
            ds.owner = "team"
            ds.pii_reviewed = True
        metrics = compute_coverage(config)
        assert metrics.target_coverage == 100
        assert metrics.owner_coverage == 100
        assert metrics.pii_coverage == 100

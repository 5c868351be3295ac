"""Shared fixtures for marketing tests."""

import pytest

from growth_predictor.config import OptimizationConfig
from growth_predictor.core.contracts import ChannelPerformance, MarketingChannel


@pytest.fixture
def channels():
    """Two channels: 'a' saturates at 12k, 'b' is still efficient."""
    return [
        MarketingChannel(
            id="a", name="Search", current_spend=10_000, current_roi=2.0,
            min_effective_spend=1_000, incremental_cac=500,
        ),
        MarketingChannel(
            id="b", name="Events", current_spend=8_000, current_roi=1.5,
            min_effective_spend=1_000, incremental_cac=300,
        ),
    ]


@pytest.fixture
def history():
    """Channel 'a' loses 25% efficiency above 10k; 'b' is flat."""
    points = {
        "a": [(4_000, 40), (8_000, 80), (10_000, 100), (12_000, 90)],
        "b": [(2_000, 20), (5_000, 50), (9_000, 90)],
    }
    return [
        ChannelPerformance(channel_id=cid, spend=spend, conversions=conv, leads=conv * 5)
        for cid, rows in points.items()
        for spend, conv in rows
    ]


@pytest.fixture
def seeded_config():
    return OptimizationConfig(random_seed=7, monte_carlo_runs=500)

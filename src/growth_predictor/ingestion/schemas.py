"""
Pandera schemas for tabular telemetry.

The schemas check structure (required columns, types) and coerce
values.  Range repair (negative or missing numbers, out-of-range
rates) is left to the contracts so that tabular and document inputs
are repaired the same way.
"""

from typing import Optional

import pandera as pa
from pandera.typing import Series


class ChannelPerformanceSchema(pa.DataFrameModel):
    """
    One row per channel and reporting period.

    Example:
        channel_id | period_start | period_end | spend  | leads | conversions | revenue
        search     | 2024-01-01   | 2024-01-31 | 8000.0 | 40    | 6           | 300000
    """

    channel_id: Series[str] = pa.Field(
        str_length={"min_value": 1},
        description="Channel identifier",
        coerce=True,
    )
    spend: Series[float] = pa.Field(nullable=True, coerce=True)
    period_start: Optional[Series[pa.DateTime]] = pa.Field(nullable=True, coerce=True)
    period_end: Optional[Series[pa.DateTime]] = pa.Field(nullable=True, coerce=True)
    impressions: Optional[Series[float]] = pa.Field(nullable=True, coerce=True)
    clicks: Optional[Series[float]] = pa.Field(nullable=True, coerce=True)
    leads: Optional[Series[float]] = pa.Field(nullable=True, coerce=True)
    conversions: Optional[Series[float]] = pa.Field(nullable=True, coerce=True)
    revenue: Optional[Series[float]] = pa.Field(nullable=True, coerce=True)

    class Config:
        strict = False  # Allow additional columns
        coerce = True


class ProcessStageSchema(pa.DataFrameModel):
    """
    One row per stage; flow-level fields repeat on every row of a flow.

    Example:
        flow_id | avg_cycle_time | volume_per_month | stage_id    | avg_duration | wait_time
        sales   | 21             | 50               | negotiation | 7            | 3
    """

    flow_id: Series[str] = pa.Field(str_length={"min_value": 1}, coerce=True)
    stage_id: Series[str] = pa.Field(str_length={"min_value": 1}, coerce=True)
    avg_duration: Series[float] = pa.Field(nullable=True, coerce=True)
    flow_name: Optional[Series[str]] = pa.Field(nullable=True, coerce=True)
    avg_cycle_time: Optional[Series[float]] = pa.Field(nullable=True, coerce=True)
    volume_per_month: Optional[Series[float]] = pa.Field(nullable=True, coerce=True)
    stage_name: Optional[Series[str]] = pa.Field(nullable=True, coerce=True)
    min_duration: Optional[Series[float]] = pa.Field(nullable=True, coerce=True)
    max_duration: Optional[Series[float]] = pa.Field(nullable=True, coerce=True)
    wait_time: Optional[Series[float]] = pa.Field(nullable=True, coerce=True)
    rework_rate: Optional[Series[float]] = pa.Field(nullable=True, coerce=True)
    drop_off_rate: Optional[Series[float]] = pa.Field(nullable=True, coerce=True)

    class Config:
        strict = False
        coerce = True

"""
Loaders for telemetry and configuration documents.

Tables (performance history, process stages) are read with pandas from
CSV or Parquet and validated with pandera.  Documents (channels, flows,
business constraints, current spend) are read from JSON or YAML.  Every
loader returns contract objects, so repair rules apply uniformly.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Sequence

import pandas as pd
from pandera.errors import SchemaError
import yaml
from loguru import logger
from pydantic import ValidationError

from growth_predictor.core.contracts import (
    BusinessConstraints,
    ChannelPerformance,
    DateRange,
    MarketingChannel,
    ProcessFlow,
    ProcessStage,
    finite_non_negative,
)
from growth_predictor.core.exceptions import IngestionError
from growth_predictor.ingestion.schemas import ChannelPerformanceSchema, ProcessStageSchema


TABLE_SUFFIXES = (".csv", ".parquet", ".pq")
DOCUMENT_SUFFIXES = (".json", ".yaml", ".yml")

PERFORMANCE_COLUMNS = [
    "channel_id", "period_start", "period_end", "spend", "impressions",
    "clicks", "leads", "conversions", "revenue",
]


# ---------------------------------------------------------------------------
# Raw readers
# ---------------------------------------------------------------------------

def _validate_source(source: str | Path) -> Path:
    path = Path(source)
    if not path.exists():
        raise IngestionError(f"Source not found: {source}", source=str(source))
    return path


def read_table(source: str | Path) -> pd.DataFrame:
    """Read a CSV or Parquet file into a DataFrame."""
    path = _validate_source(source)
    suffix = path.suffix.lower()
    logger.info(f"Loading table from {path}")

    if suffix == ".csv":
        return pd.read_csv(path)
    if suffix in (".parquet", ".pq"):
        return pd.read_parquet(path)

    raise IngestionError(
        f"Unsupported table format '{suffix}' (expected one of {TABLE_SUFFIXES})",
        source=str(path),
    )


def read_document(source: str | Path) -> Any:
    """Read a JSON or YAML document."""
    path = _validate_source(source)
    suffix = path.suffix.lower()
    logger.info(f"Loading document from {path}")

    with open(path) as f:
        try:
            if suffix == ".json":
                return json.load(f)
            if suffix in (".yaml", ".yml"):
                return yaml.safe_load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise IngestionError(f"Could not parse {path}: {exc}", source=str(path)) from exc

    raise IngestionError(
        f"Unsupported document format '{suffix}' (expected one of {DOCUMENT_SUFFIXES})",
        source=str(path),
    )


def _records(df: pd.DataFrame) -> list[dict[str, Any]]:
    """Rows as dicts with missing values as None."""
    return df.astype(object).where(df.notna(), None).to_dict("records")


def _items(document: Any, key: str, source: str | Path) -> list[dict[str, Any]]:
    """Accept either a bare list or a mapping holding the list under ``key``."""
    if isinstance(document, dict):
        document = document.get(key, [])
    if not isinstance(document, list):
        raise IngestionError(f"Expected a list of {key}", source=str(source))
    return document


# ---------------------------------------------------------------------------
# Performance history
# ---------------------------------------------------------------------------

def validate_performance_frame(df: pd.DataFrame) -> pd.DataFrame:
    try:
        return ChannelPerformanceSchema.validate(df)
    except SchemaError as exc:
        raise IngestionError(f"Invalid performance history: {exc}") from exc


def history_from_frame(df: pd.DataFrame) -> list[ChannelPerformance]:
    """Convert a performance table into contract records."""
    validated = validate_performance_frame(df)
    history = []

    for row in _records(validated):
        start, end = row.pop("period_start", None), row.pop("period_end", None)
        period = None
        if start is not None and end is not None:
            period = DateRange(start=pd.Timestamp(start).to_pydatetime(),
                               end=pd.Timestamp(end).to_pydatetime())
        history.append(ChannelPerformance(period=period, **row))

    return history


def load_performance_history(source: str | Path) -> list[ChannelPerformance]:
    """Load channel performance history from CSV or Parquet."""
    history = history_from_frame(read_table(source))
    logger.info(f"Loaded {len(history)} performance records")
    return history


def performance_frame(history: Sequence[ChannelPerformance]) -> pd.DataFrame:
    """Flatten performance records into a table (inverse of ``history_from_frame``)."""
    rows = [
        {
            "channel_id": h.channel_id,
            "period_start": h.period.start if h.period else None,
            "period_end": h.period.end if h.period else None,
            "spend": h.spend,
            "impressions": h.impressions,
            "clicks": h.clicks,
            "leads": h.leads,
            "conversions": h.conversions,
            "revenue": h.revenue,
        }
        for h in history
    ]
    return pd.DataFrame(rows, columns=PERFORMANCE_COLUMNS)


# ---------------------------------------------------------------------------
# Process flows
# ---------------------------------------------------------------------------

def flows_from_frame(df: pd.DataFrame) -> list[ProcessFlow]:
    """Group a stage table into flows, keeping row order within each flow."""
    try:
        validated = ProcessStageSchema.validate(df)
    except SchemaError as exc:
        raise IngestionError(f"Invalid process stage table: {exc}") from exc

    flows: dict[str, dict[str, Any]] = {}
    for row in _records(validated):
        flow = flows.setdefault(row["flow_id"], {
            "id": row["flow_id"],
            "name": row.get("flow_name") or row["flow_id"],
            "avg_cycle_time": finite_non_negative(row.get("avg_cycle_time")),
            "volume_per_month": finite_non_negative(row.get("volume_per_month")),
            "stages": [],
        })
        flow["stages"].append(ProcessStage(
            id=row["stage_id"],
            name=row.get("stage_name") or row["stage_id"],
            avg_duration=row.get("avg_duration"),
            min_duration=row.get("min_duration"),
            max_duration=row.get("max_duration", row.get("avg_duration")),
            wait_time=row.get("wait_time"),
            rework_rate=row.get("rework_rate"),
            drop_off_rate=row.get("drop_off_rate"),
        ))

    return [ProcessFlow(**flow) for flow in flows.values()]


def load_process_flows(source: str | Path) -> list[ProcessFlow]:
    """Load flows from a JSON/YAML document or a CSV/Parquet stage table."""
    path = Path(source)
    if path.suffix.lower() in TABLE_SUFFIXES:
        flows = flows_from_frame(read_table(path))
    else:
        items = _items(read_document(path), "flows", path)
        flows = _validate_all(ProcessFlow, items, path)

    logger.info(f"Loaded {len(flows)} process flow(s)")
    return flows


# ---------------------------------------------------------------------------
# Channels, constraints, current spend
# ---------------------------------------------------------------------------

def load_channels(source: str | Path) -> list[MarketingChannel]:
    """Load marketing channels from JSON/YAML or CSV."""
    path = Path(source)
    if path.suffix.lower() in TABLE_SUFFIXES:
        items = _records(read_table(path))
    else:
        items = _items(read_document(path), "channels", path)

    channels = _validate_all(MarketingChannel, items, path)
    logger.info(f"Loaded {len(channels)} channel(s)")
    return channels


def load_business_constraints(source: str | Path) -> BusinessConstraints:
    document = read_document(source) or {}
    try:
        return BusinessConstraints.model_validate(document)
    except ValidationError as exc:
        raise IngestionError(f"Invalid business constraints: {exc}", source=str(source)) from exc


def load_spend_map(source: str | Path) -> dict[str, float]:
    """Channel id -> spend, from a JSON/YAML mapping."""
    document = read_document(source) or {}
    if not isinstance(document, dict):
        raise IngestionError("Expected a mapping of channel id to spend", source=str(source))
    return {str(k): finite_non_negative(v) for k, v in document.items()}


def _validate_all(model, items: list[dict[str, Any]], source: str | Path) -> list:
    try:
        return [model.model_validate(item) for item in items]
    except ValidationError as exc:
        raise IngestionError(f"Invalid {model.__name__} in {source}: {exc}", source=str(source)) from exc

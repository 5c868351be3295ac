"""
Data ingestion for Growth Predictor.

Loads performance history, process flows, channels and constraints from
files into validated contract objects.
"""

from growth_predictor.ingestion.loaders import (
    flows_from_frame,
    history_from_frame,
    load_business_constraints,
    load_channels,
    load_performance_history,
    load_process_flows,
    load_spend_map,
    performance_frame,
    read_document,
    read_table,
)
from growth_predictor.ingestion.schemas import ChannelPerformanceSchema, ProcessStageSchema

__all__ = [
    "ChannelPerformanceSchema",
    "ProcessStageSchema",
    "flows_from_frame",
    "history_from_frame",
    "load_business_constraints",
    "load_channels",
    "load_performance_history",
    "load_process_flows",
    "load_spend_map",
    "performance_frame",
    "read_document",
    "read_table",
]

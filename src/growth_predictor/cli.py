"""
Command-line interface for Growth Predictor.

Provides commands for:
  - Detecting bottlenecks in process flows
  - Optimising a marketing spend plan
  - Validating a plan against business guardrails
  - Comparing budget scenarios
  - Running the full engine on synthetic demo data
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Optional

import numpy as np
import typer
from loguru import logger

app = typer.Typer(
    name="growth-predictor",
    help="Growth Predictor -- bottlenecks, spend plans and guardrails",
    add_completion=False,
)


def _setup(config_path: Optional[Path], verbose: bool):
    """Load config and route logs to stderr so stdout stays valid JSON."""
    from growth_predictor.config import load_config

    cfg = load_config(config_path)
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else cfg.logging.level)
    return cfg


def _emit(payload: Any, output: Optional[Path]) -> None:
    text = json.dumps(payload, indent=2, default=str)
    if output is None:
        typer.echo(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text)
    logger.info(f"Wrote {output}")


def _load_constraints(path: Optional[Path]):
    from growth_predictor.core.contracts import BusinessConstraints
    from growth_predictor.ingestion import load_business_constraints

    return load_business_constraints(path) if path else BusinessConstraints()


def _fail(exc: Exception) -> None:
    logger.error(str(exc))
    raise typer.Exit(1)


# ---------------------------------------------------------------------------
# bottlenecks
# ---------------------------------------------------------------------------

@app.command()
def bottlenecks(
    flows: Path = typer.Argument(..., help="Process flows (JSON/YAML document or CSV/Parquet stage table)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON here instead of stdout"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Rank bottlenecks by monthly cost of delay."""
    from growth_predictor.core.exceptions import GrowthPredictorError
    from growth_predictor.engine import detect_bottlenecks
    from growth_predictor.ingestion import load_process_flows

    cfg = _setup(config_path, verbose)
    try:
        found = detect_bottlenecks(load_process_flows(flows), cfg)
    except GrowthPredictorError as exc:
        _fail(exc)

    for b in found:
        logger.info(f"  {b.flow_name} / {b.stage.name}: {b.severity.value} (${b.cost_of_delay:,.0f}/mo)")
    _emit([b.to_dict() for b in found], output)


# ---------------------------------------------------------------------------
# optimize
# ---------------------------------------------------------------------------

@app.command()
def optimize(
    budget: float = typer.Option(..., "--budget", "-b", help="Total budget to allocate"),
    channels: Path = typer.Option(..., "--channels", help="Channels (JSON/YAML/CSV)"),
    history: Path = typer.Option(..., "--history", help="Performance history (CSV/Parquet)"),
    objective: str = typer.Option(
        "maximize_roi", "--objective",
        help="maximize_roi, maximize_volume, minimize_cac or balanced_growth",
    ),
    constraints: Optional[Path] = typer.Option(None, "--constraints", help="Business constraints (JSON/YAML)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Save plan JSON (and CSV alongside)"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Build a spend plan for the given budget and objective."""
    from growth_predictor.core.exceptions import GrowthPredictorError
    from growth_predictor.engine import optimize_spend
    from growth_predictor.ingestion import load_channels, load_performance_history

    cfg = _setup(config_path, verbose)
    try:
        plan = optimize_spend(
            total_budget=budget,
            period=None,
            channels=load_channels(channels),
            history=load_performance_history(history),
            constraints=_load_constraints(constraints),
            objective=objective,
            config=cfg,
        )
    except GrowthPredictorError as exc:
        _fail(exc)

    if output is not None:
        plan.save(output)
        logger.info(f"Plan saved to {output}")
    else:
        _emit(plan.to_dict(), None)


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------

@app.command()
def validate(
    plan_path: Path = typer.Option(..., "--plan", help="Plan JSON written by 'optimize'"),
    constraints: Optional[Path] = typer.Option(None, "--constraints", help="Business constraints (JSON/YAML)"),
    current_spend: Optional[Path] = typer.Option(
        None, "--current-spend", help="Channel id -> current spend (JSON/YAML)",
    ),
    day: float = typer.Option(1, "--day", help="Day of month for the pacing check"),
    output: Optional[Path] = typer.Option(None, "--output", "-o"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Check a plan against guardrails; exits 2 when the plan is invalid."""
    from growth_predictor.core.exceptions import GrowthPredictorError
    from growth_predictor.engine import validate_spend_plan
    from growth_predictor.ingestion import load_spend_map, read_document
    from growth_predictor.optimization import SpendPlan

    cfg = _setup(config_path, verbose)
    try:
        plan = SpendPlan.from_dict(read_document(plan_path))
        spend = load_spend_map(current_spend) if current_spend else {}
        result = validate_spend_plan(plan, spend, day, _load_constraints(constraints), cfg)
    except (GrowthPredictorError, ValueError) as exc:
        _fail(exc)

    for v in result.violations:
        logger.log("ERROR" if v.is_error else "WARNING", f"{v.type.value}: {v.suggestion}")
    _emit(result.to_dict(), output)

    if not result.valid:
        raise typer.Exit(2)


# ---------------------------------------------------------------------------
# scenarios
# ---------------------------------------------------------------------------

@app.command()
def scenarios(
    budget: float = typer.Option(..., "--budget", "-b", help="Base budget"),
    channels: Path = typer.Option(..., "--channels", help="Channels (JSON/YAML/CSV)"),
    history: Path = typer.Option(..., "--history", help="Performance history (CSV/Parquet)"),
    objective: str = typer.Option("maximize_roi", "--objective"),
    constraints: Optional[Path] = typer.Option(None, "--constraints"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write comparison CSV here"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """What-if comparison of the plan at several budget levels."""
    from growth_predictor.core.exceptions import GrowthPredictorError
    from growth_predictor.ingestion import load_channels, load_performance_history
    from growth_predictor.optimization import SpendOptimizer, compare_scenarios, create_budget_scenarios

    cfg = _setup(config_path, verbose)
    try:
        results = create_budget_scenarios(
            channels=load_channels(channels),
            history=load_performance_history(history),
            base_budget=budget,
            objective=objective,
            constraints=_load_constraints(constraints),
            optimizer=SpendOptimizer(cfg.optimization, cfg.economics),
        )
    except GrowthPredictorError as exc:
        _fail(exc)

    comparison = compare_scenarios(results)
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        comparison.to_csv(output, index=False)
        logger.info(f"Comparison saved to {output}")
    else:
        typer.echo(comparison.to_string(index=False))


# ---------------------------------------------------------------------------
# demo
# ---------------------------------------------------------------------------

DEMO_CHANNELS = {
    # id: (type, current spend, cost per lead, conversion rate)
    "search": ("paid", 8_000, 180, 0.12),
    "social": ("paid", 5_000, 260, 0.08),
    "events": ("owned", 6_000, 450, 0.15),
    "content": ("owned", 2_000, 120, 0.05),
    "partners": ("earned", 3_000, 300, 0.20),
}


def _demo_inputs(months: int, seed: int):
    """Synthetic channels and monthly history with diminishing returns."""
    import pandas as pd

    from growth_predictor.core.contracts import ChannelPerformance, DateRange, MarketingChannel

    rng = np.random.default_rng(seed)
    ends = pd.date_range(end=pd.Timestamp.now().normalize(), periods=months, freq="ME")

    channels, history = [], []
    for cid, (ctype, spend, cpl, rate) in DEMO_CHANNELS.items():
        revenue_total = 0.0
        for end in ends:
            month_spend = max(0.0, spend * rng.uniform(0.5, 1.5))
            # Square-root response so later dollars buy fewer leads
            leads = (month_spend / cpl) * np.sqrt(spend / max(month_spend, 1.0))
            leads *= 1 + rng.normal(0, 0.1)
            conversions = max(0.0, leads * rate)
            revenue = conversions * 50_000
            revenue_total += revenue
            history.append(ChannelPerformance(
                channel_id=cid,
                period=DateRange(start=(end - pd.offsets.MonthBegin(1)).to_pydatetime(),
                                 end=end.to_pydatetime()),
                spend=round(month_spend, 2),
                impressions=round(month_spend * rng.uniform(40, 60)),
                clicks=round(month_spend * rng.uniform(0.3, 0.5)),
                leads=round(max(leads, 0.0), 1),
                conversions=round(conversions, 1),
                revenue=round(revenue, 2),
            ))
        channels.append(MarketingChannel(
            id=cid,
            name=cid.title(),
            type=ctype,
            current_spend=spend,
            current_roi=revenue_total / (spend * months),
            min_effective_spend=spend * 0.2,
        ))

    return channels, history


@app.command()
def demo(
    budget: float = typer.Option(30_000, "--budget", "-b", help="Total budget for the plan"),
    months: int = typer.Option(12, "--months", help="Months of synthetic history"),
    seed: int = typer.Option(42, "--seed"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the engine report JSON here"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """
    Run the full engine on synthetic data.

    The fastest way to see the framework in action:

        growth-predictor demo --budget 40000
    """
    from growth_predictor.audit import AuditLogger
    from growth_predictor.bottleneck import generate_sample_process_flow
    from growth_predictor.engine import DecisionEngine

    cfg = _setup(config_path, verbose)
    channels, history = _demo_inputs(months, seed)
    logger.info(f"Generated {len(history)} performance records for {len(channels)} channels")

    engine = DecisionEngine(cfg, audit=AuditLogger(cfg.audit))
    report = engine.run(
        flows=[generate_sample_process_flow()],
        channels=channels,
        history=history,
        total_budget=budget,
    )

    plan = report.final_plan
    logger.info(f"Top bottleneck: {report.bottlenecks[0].stage.name}" if report.bottlenecks else "No bottlenecks")
    for alloc in plan.allocations:
        logger.info(f"  {alloc.channel_id}: ${alloc.recommended_amount:,.0f} ({alloc.recommended_percent:.1f}%)")
    logger.info(f"Expected revenue ${plan.expected_outcome.revenue:,.0f}, ROI {plan.expected_outcome.roi:.2f}")

    _emit(report.to_dict(), output)


if __name__ == "__main__":
    app()

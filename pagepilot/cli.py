"""
PagePilot - Command-line interface.

Inspect and exercise the decision core from a shell:

    python -m pagepilot stats
    python -m pagepilot tokens --primary "#0ea5e9" --tone minimal --industry saas
    python -m pagepilot audit .logs/sup/audit.jsonl
    python -m pagepilot gate 72 --a11y-issues
"""

import json
import logging
import sys
from typing import Any, Optional

import click

from . import __version__


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, sort_keys=True))


@click.group()
@click.version_option(version=__version__)
@click.option("--store-dir", type=click.Path(file_okay=False), default=None,
              help="Directory for persisted state (default: $PAGEPILOT_STORE_DIR or .cache)")
@click.option("--memory", is_flag=True, default=False,
              help="Use a throwaway in-memory store")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging")
def cli(store_dir: Optional[str], memory: bool, verbose: bool):
    """
    PagePilot - adaptive decisions for generated web pages.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if store_dir or memory:
        from .storage import StorageConfig, get_storage_config, get_store, reset_store

        base = get_storage_config()
        reset_store()
        get_store(StorageConfig(
            backend="memory" if memory else "file",
            store_dir=store_dir or base.store_dir,
            indent=base.indent,
        ))


@cli.command()
def stats():
    """
    Show strategy and expert bandit statistics.
    """
    from .routing import get_expert_bandit, get_strategy_bandit

    _echo_json({
        "strategies": get_strategy_bandit().get_stats(),
        "experts": get_expert_bandit().get_stats(),
    })


@cli.command()
@click.option("--primary", default=None, help="Brand color as hex")
@click.option("--dark/--light", default=False, help="Background mode")
@click.option("--tone", type=click.Choice(["minimal", "playful", "serious", "brutalist"]),
              default="serious", show_default=True)
@click.option("--goal", default=None, help="Page goal, e.g. purchase, waitlist, demo")
@click.option("--industry", default=None, help="Industry, e.g. saas, ecommerce, portfolio")
@click.option("--wide", is_flag=True, default=False,
              help="Run the uncached palette-neighbourhood search instead")
def tokens(primary: Optional[str], dark: bool, tone: str, goal: Optional[str],
           industry: Optional[str], wide: bool):
    """
    Search for the best design tokens and print them as JSON.
    """
    from .design import search_best_tokens_cached, wide_token_search

    if wide:
        _echo_json(wide_token_search(primary, dark, tone).to_dict())
        return
    result = search_best_tokens_cached(primary, dark, tone, goal=goal, industry=industry)
    click.echo(result.to_json())


@cli.command()
@click.argument("path", type=click.Path(dir_okay=False))
@click.option("--window", type=int, default=1000, show_default=True,
              help="Only summarise the last N rows")
def audit(path: str, window: int):
    """
    Summarise a JSONL guardrail audit log.
    """
    from .audit import derive_sup_rates, load_sup_audit_rows, summarize_sup_audit

    if window <= 0:
        click.echo("❌ Error: --window must be positive", err=True)
        sys.exit(1)
    summary = summarize_sup_audit(load_sup_audit_rows(path, window=window))
    _echo_json({"summary": summary.to_dict(), "rates": derive_sup_rates(summary)})


@cli.command()
@click.argument("score", type=float)
@click.option("--a11y-issues", is_flag=True, default=False, help="Accessibility checks failed")
@click.option("--perf-issues", is_flag=True, default=False, help="Performance checks failed")
@click.option("--hard-fail", type=float, default=None, help="Downgrade threshold (default 60)")
@click.option("--soft", type=float, default=None, help="Patch threshold (default 80)")
def gate(score: float, a11y_issues: bool, perf_issues: bool,
         hard_fail: Optional[float], soft: Optional[float]):
    """
    Run the layout gate and guardrail for an LQR score.
    """
    from .qa import LayoutGateInput, LayoutGateOptions, decide_layout_sup_gate

    result = decide_layout_sup_gate(
        LayoutGateInput(lqr_score=score, has_a11y_issues=a11y_issues, has_perf_issues=perf_issues),
        LayoutGateOptions(hard_fail_threshold=hard_fail, soft_threshold=soft),
    )
    _echo_json(result.to_dict())


def main() -> None:
    cli()


if __name__ == "__main__":
    main()

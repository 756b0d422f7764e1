"""CLI entry point using Hydra.

Usage examples:
  report-enhancer report_file=report.md transcript_file=interview.txt output_file=enhanced.md
  report-enhancer mode=identify report_file=report.md
  report-enhancer mode=apply report_file=report.md results_file=results.json output_file=out.md
  report-enhancer --config-dir configs/ --config-name config reference_files=[docs/]
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import hydra
from omegaconf import DictConfig, OmegaConf
from pydantic import TypeAdapter

from ._hydra_conf import CLI_ONLY_KEYS, register_configs
from .config import apply_azure_fallbacks
from .logging_config import RichEventSink, console, setup_logging
from .models import EnhancementResult, ProjectConfig

register_configs()

# ---------------------------------------------------------------------------
# Hydra DictConfig → Pydantic ProjectConfig bridge
# ---------------------------------------------------------------------------


def _to_project_config(cfg: DictConfig) -> ProjectConfig:
    """Convert a Hydra *DictConfig* to a Pydantic ``ProjectConfig``.

    CLI-only keys (``mode``, ``report_file``, etc.) are stripped before
    validation. Azure credential env-var fallbacks are applied afterwards.
    """
    container: dict[str, Any] = OmegaConf.to_container(cfg, resolve=True)  # type: ignore[assignment]
    for key in CLI_ONLY_KEYS:
        container.pop(key, None)
    config = ProjectConfig.model_validate(container)
    return apply_azure_fallbacks(config)


def _require(cfg: DictConfig, key: str) -> str:
    value = cfg.get(key)
    if not value:
        console.print(f"[red]{key} is required for mode={cfg.get('mode', 'run')}[/]")
        sys.exit(1)
    return str(value)


def _write_output(report: str, output_file: str | None) -> None:
    if output_file:
        Path(output_file).write_text(report, encoding="utf-8")
        console.print(f"[green]Written to {output_file}[/]")
    else:
        console.print(report, markup=False, highlight=False)


# ---------------------------------------------------------------------------
# Mode handlers
# ---------------------------------------------------------------------------


def _run_mode(cfg: DictConfig) -> None:
    from .pipeline import EnhancementPipeline
    from .tools.documents import load_references, read_text_file

    config = _to_project_config(cfg)
    report = read_text_file(_require(cfg, "report_file"))
    transcript = read_text_file(cfg.transcript_file) if cfg.get("transcript_file") else ""
    references = load_references(list(cfg.get("reference_files") or []))

    pipeline = EnhancementPipeline(config, event_sink=RichEventSink())

    console.print("[bold]Starting report enhancement...[/]")
    result = pipeline.run_sync(report, transcript, references)

    console.print(f"\n[bold green]Enhancement finished[/] ({result.states[-2].value})")
    console.print(f"  Replacements: {result.replacements}")
    console.print(f"  Length: {len(result.original_report)} -> {len(result.enhanced_report)} "
                  f"({result.improvement_pct:+.1f}%)")
    for task_id in result.unmatched:
        console.print(f"  [yellow]Unmatched quote:[/] {task_id}")
    for err in result.errors:
        console.print(f"  [red]{err}[/]")

    _write_output(result.enhanced_report, cfg.get("output_file"))


def _identify_mode(cfg: DictConfig) -> None:
    import asyncio

    from .agents.task_identifier import identify_enhancement_tasks
    from .client import AutogenGenerationClient
    from .models import EnhancementEvent
    from .tools.documents import read_text_file

    config = _to_project_config(cfg)
    report = read_text_file(_require(cfg, "report_file"))

    identification = asyncio.run(
        identify_enhancement_tasks(report, AutogenGenerationClient(config), config)
    )
    if identification is None:
        console.print("[yellow]No enhancement tasks identified.[/]")
        return
    RichEventSink()(EnhancementEvent.TASKS, identification)

    if cfg.get("output_file"):
        Path(cfg.output_file).write_text(identification.model_dump_json(indent=2), encoding="utf-8")
        console.print(f"[green]Tasks written to {cfg.output_file}[/]")


def _apply_mode(cfg: DictConfig) -> None:
    from .tools.documents import read_text_file
    from .tools.quote_substitution import apply_enhancements

    report = read_text_file(_require(cfg, "report_file"))
    raw = json.loads(read_text_file(_require(cfg, "results_file")))
    results = TypeAdapter(list[EnhancementResult]).validate_python(raw)

    outcome = apply_enhancements(report, results)
    console.print(f"[bold]Replacements:[/] {outcome.replacements}/{len(results)}")
    for task_id in outcome.unmatched:
        console.print(f"  [yellow]Unmatched quote:[/] {task_id}")

    _write_output(outcome.report, cfg.get("output_file"))


_MODE_DISPATCH: dict[str, Any] = {
    "run": _run_mode,
    "identify": _identify_mode,
    "apply": _apply_mode,
}


# ---------------------------------------------------------------------------
# Hydra entry point
# ---------------------------------------------------------------------------


@hydra.main(config_path="conf", config_name="config", version_base=None)
def hydra_entry(cfg: DictConfig) -> None:
    """Hydra-managed CLI entry point."""
    setup_logging(verbose=cfg.get("verbose", False), quiet=cfg.get("quiet", False))

    mode = cfg.get("mode", "run")
    handler = _MODE_DISPATCH.get(mode)
    if handler is None:
        console.print(f"[red]Unknown mode: {mode!r}. Choose from: {', '.join(_MODE_DISPATCH)}[/]")
        sys.exit(1)

    handler(cfg)


def main() -> None:
    """Package entry point (``[project.scripts]`` target)."""
    hydra_entry()  # pylint: disable=no-value-for-parameter

"""CLI entry point using Hydra.

Usage examples:
  thesis-orchestrator mode=plan
  thesis-orchestrator mode=run config_file=my_thesis/thesis.yaml
  thesis-orchestrator --config-dir my_thesis --config-name config mode=run
  thesis-orchestrator mode=run resume=true
  thesis-orchestrator mode=flag section=12
  thesis-orchestrator mode=regenerate section=12
  thesis-orchestrator mode=verify
  thesis-orchestrator mode=export output_dir=out/
"""

from __future__ import annotations

import signal
import sys
from pathlib import Path
from typing import Any

import hydra
from omegaconf import DictConfig, OmegaConf

from ._hydra_conf import CLI_ONLY_KEYS, register_configs
from .config import apply_azure_fallbacks, load_config
from .logging_config import RichCallbacks, console, print_verification, render_plan_table, setup_logging
from .models import ProjectConfig, RunState, RunStatus

register_configs()

# ---------------------------------------------------------------------------
# Hydra DictConfig → Pydantic ProjectConfig bridge
# ---------------------------------------------------------------------------


def _to_project_config(cfg: DictConfig) -> ProjectConfig:
    """Convert a Hydra *DictConfig* to a Pydantic ``ProjectConfig``.

    CLI-only keys (``mode``, ``section``, etc.) are stripped before validation.
    Azure credential env-var fallbacks are applied afterwards.
    """
    container: dict[str, Any] = OmegaConf.to_container(cfg, resolve=True)  # type: ignore[assignment]
    for key in CLI_ONLY_KEYS:
        container.pop(key, None)
    config = ProjectConfig.model_validate(container)
    return apply_azure_fallbacks(config)


def _get_config_dir() -> Path:
    """Extract ``--config-dir`` from *sys.argv* (before Hydra consumes it).

    Falls back to the current working directory.
    """
    for i, arg in enumerate(sys.argv):
        if arg == "--config-dir" and i + 1 < len(sys.argv):
            return Path(sys.argv[i + 1])
        if arg.startswith("--config-dir="):
            return Path(arg.split("=", 1)[1])
    return Path.cwd()


def _resolve_config(cfg: DictConfig) -> tuple[ProjectConfig, Path]:
    """Project config and the directory its relative paths hang off.

    ``config_file=<yaml>`` replaces the Hydra-composed project settings with
    a standalone thesis file.
    """
    config_file = cfg.get("config_file")
    if config_file:
        try:
            config = load_config(config_file)
        except FileNotFoundError as e:
            console.print(f"[red]{e}[/]")
            sys.exit(1)
        return config, Path(config_file).resolve().parent
    return _to_project_config(cfg), _get_config_dir()


def _build(cfg: DictConfig):
    """Config, orchestrator and resolved output directory for a mode handler."""
    from .orchestrator import Orchestrator
    from .services import AgentServices
    from .tools.plan_parser import load_outline

    config, config_dir = _resolve_config(cfg)
    output_dir = config_dir / config.output_dir

    orchestrator = Orchestrator(
        config,
        AgentServices(config, config_dir=config_dir),
        callbacks=RichCallbacks(quiet=cfg.get("quiet", False)),
        outline_text=load_outline(config, config_dir),
    )
    return config, orchestrator, output_dir


def _require_section(cfg: DictConfig) -> int:
    section = cfg.get("section")
    if section is None:
        console.print(f"[red]section=<index> is required for {cfg.mode} mode[/]")
        sys.exit(1)
    return int(section)


def _load_checkpoint(output_dir: Path) -> RunState:
    from .tools.exporter import load_run_state

    try:
        return load_run_state(output_dir)
    except FileNotFoundError as e:
        console.print(f"[red]{e}. Run mode=run first.[/]")
        sys.exit(1)


def _drive(orchestrator, state: RunState, max_steps: int | None) -> RunState:
    """Run the loop with Ctrl-C mapped to a cooperative pause."""
    previous = signal.getsignal(signal.SIGINT)

    def _on_sigint(signum, frame):
        console.print("\n[yellow]Pause requested; finishing the current section...[/]")
        orchestrator.request_pause()

    signal.signal(signal.SIGINT, _on_sigint)
    try:
        return orchestrator.run(state, max_steps=max_steps)
    finally:
        signal.signal(signal.SIGINT, previous)


def _report(state: RunState, manifest) -> None:
    console.print(f"\n[bold]Status:[/] {state.status.value}: {state.status_message}")
    console.print(
        f"  Sections: {manifest.sections_completed}/{manifest.sections_total}  "
        f"Words: {manifest.cumulative_word_count:,}/{manifest.global_target:,}  "
        f"Citations: {manifest.citations_total}"
    )
    console.print(f"  Output: {manifest.output_dir}")


# ---------------------------------------------------------------------------
# Mode handlers
# ---------------------------------------------------------------------------


def _run_mode(cfg: DictConfig) -> None:
    from .tools.exporter import export_run

    config, orchestrator, output_dir = _build(cfg)
    if cfg.get("resume", False):
        state = _load_checkpoint(output_dir)
    else:
        state = orchestrator.initialize()
    if not state.is_system_ok:
        console.print(f"[bold red]{state.status_message}[/]")
        sys.exit(1)

    console.print("[bold]Starting thesis generation...[/]")
    state = _drive(orchestrator, state, cfg.get("max_steps"))
    manifest = export_run(state, output_dir, config.project_name)
    _report(state, manifest)

    if state.verification is not None and not state.verification.passed:
        print_verification(state.verification)
    if state.status == RunStatus.FAILED:
        sys.exit(1)


def _plan_mode(cfg: DictConfig) -> None:
    _, orchestrator, _ = _build(cfg)
    state = orchestrator.initialize()

    console.print(render_plan_table(state.plan))
    total = sum(s.target_word_count for s in state.plan)
    console.print(f"  Sections: {len(state.plan)}  Balanced total: {total:,} / {state.global_target:,}")
    if state.is_system_ok:
        console.print(f"[bold green]{state.status_message}[/]")
    else:
        console.print(f"[bold red]{state.status_message}[/]")
        sys.exit(1)


def _regenerate_mode(cfg: DictConfig) -> None:
    from .tools.exporter import export_run

    index = _require_section(cfg)
    config, orchestrator, output_dir = _build(cfg)
    state = orchestrator.regenerate(_load_checkpoint(output_dir), index)
    if state.status != RunStatus.PAUSED or state.cursor != index:
        console.print(f"[red]{state.session_log[-1]}[/]")
        sys.exit(1)

    state = _drive(orchestrator, state, cfg.get("max_steps"))
    manifest = export_run(state, output_dir, config.project_name)
    _report(state, manifest)
    if state.status == RunStatus.FAILED:
        sys.exit(1)


def _flag_mode(cfg: DictConfig) -> None:
    from .tools.exporter import save_run_state

    index = _require_section(cfg)
    _, orchestrator, output_dir = _build(cfg)
    state = orchestrator.toggle_flag(_load_checkpoint(output_dir), index)
    save_run_state(state, output_dir)
    if 0 <= index < len(state.plan):
        section = state.plan[index]
        flag = "[red]flagged[/]" if section.is_flagged else "[green]unflagged[/]"
        console.print(f"Section {section.id} ({section.title}): {flag}")
    else:
        console.print(f"[red]{state.session_log[-1]}[/]")
        sys.exit(1)


def _verify_mode(cfg: DictConfig) -> None:
    from .tools.exporter import export_run

    config, orchestrator, output_dir = _build(cfg)
    state = orchestrator.run_verification(_load_checkpoint(output_dir))
    export_run(state, output_dir, config.project_name)

    if state.verification is None:
        console.print(f"[red]{state.session_log[-1]}[/]")
        sys.exit(1)
    print_verification(state.verification)
    if not state.verification.passed:
        sys.exit(1)


def _export_mode(cfg: DictConfig) -> None:
    from .tools.exporter import export_run

    config, config_dir = _resolve_config(cfg)
    output_dir = config_dir / config.output_dir
    state = _load_checkpoint(output_dir)
    manifest = export_run(state, output_dir, config.project_name)
    _report(state, manifest)
    console.print(f"  Draft: {output_dir / manifest.document_file}")
    console.print(f"  Session log: {output_dir / manifest.session_log_file}")


_MODE_DISPATCH: dict[str, Any] = {
    "run": _run_mode,
    "plan": _plan_mode,
    "regenerate": _regenerate_mode,
    "flag": _flag_mode,
    "verify": _verify_mode,
    "export": _export_mode,
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

#!/usr/bin/env python3
# flowcheck/cli.py

import json
import logging
import os
from pathlib import Path
from typing import Optional

import typer

from flowcheck.catalog.client import StaticCatalog
from flowcheck.errors import CatalogError, WorkflowLoadError
from flowcheck.rules.profiles import DEFAULT_PROFILE, PROFILES, WORKFLOW_PROFILE
from flowcheck.utils.io import list_files, load_any, write_json
from flowcheck.utils.logger import get_logger, set_level
from flowcheck.validator import ValidationOptions, validate_node, validate_workflow

app = typer.Typer(help="flowcheck CLI - Validate n8n workflows before they run")
logger = get_logger("cli")


def _check_profile(profile: str) -> str:
    profile = profile.lower()
    if profile not in PROFILES:
        raise typer.BadParameter(f"Invalid profile '{profile}'. Choose one of: {', '.join(PROFILES)}")
    return profile


def _load_catalog(path: Optional[Path]) -> Optional[StaticCatalog]:
    path = path or (Path(os.environ["FLOWCHECK_CATALOG"]) if os.environ.get("FLOWCHECK_CATALOG") else None)
    if path is None:
        return None
    try:
        return StaticCatalog.from_file(path)
    except CatalogError as e:
        typer.echo(f"[error] {e}", err=True)
        raise typer.Exit(code=2)


def _load(path: Path):
    try:
        return load_any(path)
    except WorkflowLoadError as e:
        typer.echo(f"[error] {e}", err=True)
        raise typer.Exit(code=2)


@app.command()
def validate(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Path to workflow JSON/YAML"),
    catalog: Optional[Path] = typer.Option(None, "--catalog", "-c", help="Node-type catalog (JSON/YAML); defaults to $FLOWCHECK_CATALOG"),
    profile: str = typer.Option(WORKFLOW_PROFILE, "--profile", "-p", help="minimal | runtime | ai-friendly | strict"),
    nodes: bool = typer.Option(True, "--nodes/--no-nodes", help="Run per-node configuration rules"),
    connections: bool = typer.Option(True, "--connections/--no-connections", help="Check connections and AI topology"),
    expressions: bool = typer.Option(True, "--expressions/--no-expressions", help="Check template expressions"),
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON"),
    out: Optional[Path] = typer.Option(None, "--out", help="Write a JSON report to this path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log catalog lookups and per-node progress"),
):
    """
    Validate one workflow. Exits with code 1 when the workflow is invalid.
    """
    if verbose:
        set_level(logging.DEBUG)
    profile = _check_profile(profile)
    wf = _load(input)
    opts = ValidationOptions(validate_nodes=nodes, validate_connections=connections,
                             validate_expressions=expressions, profile=profile)
    result = validate_workflow(wf, opts, catalog=_load_catalog(catalog))
    payload = result.to_dict()

    if out is not None:
        write_json(out, dict(payload, input=str(input), profile=profile))
        typer.echo(f"[ok] wrote report to {out}")

    if as_json:
        typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        stats = result.statistics
        typer.echo(f"Valid:       {result.valid}")
        typer.echo(f"Nodes:       {stats.enabled_nodes}/{stats.total_nodes} enabled, {stats.trigger_nodes} trigger(s)")
        typer.echo(f"Connections: {stats.valid_connections} valid, {stats.invalid_connections} invalid")
        typer.echo(f"Expressions: {stats.expressions_validated}")
        if result.errors:
            typer.echo("Errors:")
            for issue in result.errors:
                typer.echo(f"- {issue}")
        if result.warnings:
            typer.echo("Warnings:")
            for issue in result.warnings:
                typer.echo(f"- {issue}")
        if result.suggestions:
            typer.echo("Suggestions:")
            for s in result.suggestions:
                typer.echo(f"- {s}")

    if not result.valid:
        raise typer.Exit(code=1)


@app.command()
def node(
    node_type: str = typer.Option(..., "--type", "-t", help="Node type, e.g. n8n-nodes-base.httpRequest"),
    config: Path = typer.Option(..., "--config", "-c", exists=True, readable=True, help="Path to the node parameters JSON/YAML"),
    settings: Optional[Path] = typer.Option(None, "--settings", help="Node-level settings (onError, retryOnFail, ...) JSON/YAML"),
    profile: str = typer.Option(DEFAULT_PROFILE, "--profile", "-p", help="minimal | runtime | ai-friendly | strict"),
    catalog: Optional[Path] = typer.Option(None, "--catalog", help="Node-type catalog (JSON/YAML)"),
):
    """
    Run the configuration rules for a single node and print the result as JSON.
    """
    profile = _check_profile(profile)
    params = _load(config)
    node_settings = _load(settings) if settings is not None else None
    result = validate_node(node_type, params, catalog=_load_catalog(catalog), profile=profile,
                           settings=node_settings)
    typer.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    if not result.valid:
        raise typer.Exit(code=1)


@app.command()
def batch(
    folder: Path = typer.Option(..., "--dir", "-d", exists=True, file_okay=False, help="Folder of workflow JSON files"),
    out: Path = typer.Option(Path("reports/flowcheck.csv"), "--out", "-o", help="CSV path to write results"),
    pattern: str = typer.Option("*.json", "--glob", help="File pattern inside the folder"),
    profile: str = typer.Option(WORKFLOW_PROFILE, "--profile", "-p", help="minimal | runtime | ai-friendly | strict"),
    catalog: Optional[Path] = typer.Option(None, "--catalog", "-c", help="Node-type catalog (JSON/YAML)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log per-file progress"),
):
    """
    Validate every workflow in a folder and export a CSV report.
    """
    import pandas as pd

    if verbose:
        set_level(logging.DEBUG)
    profile = _check_profile(profile)
    cat = _load_catalog(catalog)
    rows = []
    for fp in list_files(folder, pattern):
        try:
            wf = load_any(fp)
        except WorkflowLoadError as e:
            logger.warning(str(e))
            rows.append({"file": fp.name, "valid": False, "errors": 1, "warnings": 0,
                         "nodes": 0, "connections": 0, "first_error": str(e)})
            continue
        if not isinstance(wf, dict) or "nodes" not in wf:
            typer.echo(f"[skip] {fp} does not look like a workflow JSON (missing 'nodes'); skipping")
            continue

        result = validate_workflow(wf, ValidationOptions(profile=profile), catalog=cat)
        logger.info(f"{fp.name}: {len(result.errors)} errors, {len(result.warnings)} warnings")
        rows.append({
            "file": fp.name,
            "valid": result.valid,
            "errors": len(result.errors),
            "warnings": len(result.warnings),
            "nodes": result.statistics.total_nodes,
            "connections": result.statistics.valid_connections,
            "first_error": result.errors[0].message if result.errors else "",
        })

    df = pd.DataFrame(rows, columns=["file", "valid", "errors", "warnings", "nodes", "connections", "first_error"])
    out.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(out, index=False)
    n_valid = int(df["valid"].sum()) if len(df) else 0
    typer.echo(f"[ok] {n_valid}/{len(df)} workflows valid; wrote {out}")


if __name__ == "__main__":
    app()

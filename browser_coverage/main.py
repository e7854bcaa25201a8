import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from typing_extensions import Annotated

from browser_coverage.config import CoverageSettings
from browser_coverage.core.collector import CoverageCollector
from browser_coverage.core.context import RunContext
from browser_coverage.core.reporter import CoverageReporter
from browser_coverage.core.sweep import sweep_uncovered
from browser_coverage.core.validator import ThresholdValidator
from browser_coverage.errors import CoverageThresholdError

app = typer.Typer()


def _configure_logging(settings: CoverageSettings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_settings(
    include: Optional[List[str]],
    exclude: Optional[List[str]],
    reporters: Optional[List[str]],
) -> CoverageSettings:
    overrides = {}
    if include:
        overrides["include"] = include
    if exclude:
        overrides["exclude"] = exclude
    if reporters:
        overrides["reporters"] = reporters
    return CoverageSettings(**overrides)


@app.command()  # type: ignore
def check(
    files: Annotated[
        List[Path],
        typer.Argument(
            ...,
            exists=True,
            dir_okay=False,
            help="Istanbul coverage JSON files to merge.",
        ),
    ],
    root: Annotated[
        Optional[Path],
        typer.Option(
            "--root",
            file_okay=False,
            exists=True,
            help="Served root to sweep for eligible files missing from the coverage.",
        ),
    ] = None,
    include: Annotated[
        Optional[List[str]],
        typer.Option("--include", help="Glob of assets to account for."),
    ] = None,
    exclude: Annotated[
        Optional[List[str]],
        typer.Option("--exclude", help="Glob of assets to leave out."),
    ] = None,
    reporter: Annotated[
        Optional[List[str]],
        typer.Option("--reporter", help="Reporter to run (repeatable)."),
    ] = None,
) -> None:
    """
    Merge saved coverage, write reports and enforce thresholds.
    """
    settings = _load_settings(include, exclude, reporter)
    _configure_logging(settings)

    collector = CoverageCollector()
    for path in files:
        collector.add(json.loads(path.read_text(encoding="utf-8")))

    base = root if root is not None else Path.cwd()
    if root is not None:
        context = RunContext.from_settings(root, settings)
        for _asset_path, record in sweep_uncovered(
            context, known=collector.final_coverage().keys()
        ):
            collector.add_file(record)

    CoverageReporter(base / settings.dir, settings.reporters, root=root).write(
        collector
    )

    failures = ThresholdValidator(settings.thresholds).validate(collector)
    if failures:
        print(str(CoverageThresholdError(failures)))
        raise typer.Exit(code=1)
    print("Coverage thresholds met.")


@app.command()  # type: ignore
def serve(
    root: Annotated[
        Path,
        typer.Argument(
            ..., file_okay=False, exists=True, help="Package directory to serve."
        ),
    ],
    package: Annotated[
        str,
        typer.Option("--package", help="URL segment naming the package under test."),
    ] = "",
    client_root: Annotated[
        str,
        typer.Option("--client-root", help="URL prefix packages are served under."),
    ] = "/",
    host: Annotated[str, typer.Option("--host")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port")] = 8000,
) -> None:
    """
    Serve a package with instrumented assets until interrupted, then report.
    """
    import uvicorn

    from browser_coverage.api.main import create_app
    from browser_coverage.plugin import CoveragePlugin

    settings = CoverageSettings()
    _configure_logging(settings)

    plugin = CoveragePlugin(
        settings, root, client_root=client_root, package_name=package
    )
    print(f"Serving {root} with coverage on http://{host}:{port}")
    uvicorn.run(
        create_app(plugin), host=host, port=port, log_level=settings.log_level.lower()
    )

    try:
        plugin.on_run_end()
    except CoverageThresholdError as e:
        print(str(e))
        raise typer.Exit(code=1) from None


if __name__ == "__main__":
    app()

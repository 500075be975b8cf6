"""CLI entry point: compsync.

Subcommands:
    compsync import                     # refresh objects of everything declared
    compsync import --write             # ... and rewrite the working copies
    compsync import remote/bar/foo      # import one component (and its closure)
    compsync import -c remote/envs/babel
    compsync import remote/bar/foo -- --index-url https://pypi.example.com/simple

Arguments after ``--`` are passed to the package manager unchanged.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from compsync.core.config import Settings
from compsync.core.logging import setup_logging
from compsync.engines.importer.options import EnvironmentOptions, ImportOptions
from compsync.engines.importer.runner import ImportRunner
from compsync.exceptions import CompsyncError
from compsync.report import render_report

_PACKAGE_MANAGER_ARGS = "compsync.package_manager_args"


class _ImportCommand(click.Command):
    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        if "--" in args:
            split = args.index("--")
            ctx.meta[_PACKAGE_MANAGER_ARGS] = tuple(args[split + 1 :])
            args = args[:split]
        return super().parse_args(ctx, args)


@click.group()
@click.version_option(package_name="compsync")
def main() -> None:
    """compsync: import and synchronize components into a workspace."""


@main.command("import", cls=_ImportCommand)
@click.argument("ids", nargs=-1)
@click.option("-t", "--tester", is_flag=True, help="import a tester environment component")
@click.option("-c", "--compiler", is_flag=True, help="import a compiler environment component")
@click.option("--extension", is_flag=True, help="import an extension component")
@click.option(
    "-e",
    "--environment",
    is_flag=True,
    help="install development environment dependencies (compiler and tester)",
)
@click.option(
    "-p", "--path", "path", default=None, help="import components into a specific directory"
)
@click.option(
    "-o",
    "--objects",
    is_flag=True,
    help="import components objects only, don't write the components to the file system. "
    "This is the default behavior for import with no id",
)
@click.option(
    "--write",
    is_flag=True,
    help="in case of import-all (when no id is specified), write the components to the file system",
)
@click.option(
    "-d", "--display-dependencies", is_flag=True, help="display the imported dependencies"
)
@click.option("-O", "--override", is_flag=True, help="override local changes")
@click.option("-v", "--verbose", is_flag=True, help="showing verbose output for inspection")
@click.option("--ignore-dist", is_flag=True, help="don't write dist files (when exist)")
@click.option("--conf", is_flag=True, help="write the component configuration file")
@click.option(
    "--skip-package-install",
    is_flag=True,
    help="do not install packages required by the imported components",
)
@click.option(
    "--skip-package-descriptor",
    is_flag=True,
    help="do not generate a package descriptor for the imported components "
    "(implies --skip-package-install)",
)
@click.option(
    "--workspace",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="workspace root",
)
@click.pass_context
def import_cmd(
    ctx: click.Context,
    ids: tuple[str, ...],
    tester: bool,
    compiler: bool,
    extension: bool,
    environment: bool,
    path: str | None,
    objects: bool,
    write: bool,
    display_dependencies: bool,
    override: bool,
    verbose: bool,
    ignore_dist: bool,
    conf: bool,
    skip_package_install: bool,
    skip_package_descriptor: bool,
    workspace: Path,
) -> None:
    """Import components into your current workspace.

    Arguments after ``--`` are forwarded to the package manager.
    """
    try:
        setup_logging("DEBUG" if verbose else None)
        options = ImportOptions(
            ids=ids,
            verbose=verbose,
            write_to_path=path,
            objects_only=objects,
            write_to_fs=write,
            with_environments=environment,
            override=override,
            write_dists=not ignore_dist,
            write_config=conf,
            install_packages=not skip_package_install,
            write_package_descriptor=not skip_package_descriptor,
            package_manager_args=ctx.meta.get(_PACKAGE_MANAGER_ARGS, ()),
            environment=EnvironmentOptions(compiler=compiler, tester=tester, extension=extension),
        )
        runner = ImportRunner(workspace.resolve(), settings=Settings.from_env())
        result = asyncio.run(runner.run(options))
    except CompsyncError as exc:
        click.echo(click.style(str(exc), fg="red"), err=True)
        sys.exit(1)

    click.echo(render_report(result, display_dependencies=display_dependencies))


if __name__ == "__main__":
    main()

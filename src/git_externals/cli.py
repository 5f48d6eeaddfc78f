from collections.abc import Iterable
from pathlib import Path

import click

from .core.types import ExitCode, ExternalEntry
from .result import Failure

USAGE = """Usage: git-externals (clean | checkout | prepare)

clean: Deletes previously checked out externals. Required before merging
       commits that replace externals with paths directly in the repository.

checkout: Checks out externals in the svn repository corresponding to this
          git-svn repo. Will try to be atomic, i.e. delete already checked
          out externals if a checkout fails. Will fail if a path into which
          an external should be checked out exists.

prepare: PLANNED - NOT YET IMPLEMENTED. Deletes externals not present in the
         new corresponding revision in SVN.

"""


def _finish_with_cleanup(ctx: click.Context, paths: Iterable[Path]) -> None:
    from .checkout import clean_up_externals

    cleanup = clean_up_externals(paths)
    if isinstance(cleanup, Failure):
        failed = "\n".join(sorted(str(p) for p in cleanup.error))
        click.echo(f"Cleanup reported errors for paths:\n{failed}\n", err=True)
        ctx.exit(int(ExitCode.FAIL_CLEANUP_FAIL))
    click.echo("Cleanup done.", err=True)
    ctx.exit(int(ExitCode.FAIL_CLEANUP_OK))


def _working_root(ctx: click.Context) -> Path:
    from .git.worktree import find_working_root

    root = find_working_root()
    if isinstance(root, Failure):
        click.echo(f"Could not find working dir root:\n{root.error}", err=True)
        ctx.exit(int(ExitCode.ERROR_BEFORE_WRITE))
    return root.value


def _registry(ctx: click.Context, root: Path):
    from .registry import registry_for

    registry = registry_for(root)
    if isinstance(registry, Failure):
        click.echo(f"Could not locate registered externals:\n{registry.error}", err=True)
        ctx.exit(int(ExitCode.ERROR_BEFORE_WRITE))
    return registry.value


def ui_checkout(ctx: click.Context) -> None:
    from . import discover
    from .checkout import checkout_externals

    root = _working_root(ctx)
    registry = _registry(ctx, root)

    found = discover(root)
    if isinstance(found, Failure):
        click.echo(found.error, err=True)
        ctx.exit(int(ExitCode.ERROR_BEFORE_WRITE))
    externals = found.value
    if not externals:
        click.echo("No externals found! Done here.", err=True)
        ctx.exit(int(ExitCode.SUCCESS))

    result = checkout_externals(root, externals)
    if isinstance(result, Failure):
        click.echo(
            f"Checking out externals failed:\n{result.error.message}\nCleaning up!",
            err=True,
        )
        _finish_with_cleanup(ctx, result.error.paths)

    created = [
        ExternalEntry(path, source)
        for source, paths in result.value.items()
        for path in paths
    ]
    saved = registry.save(created)
    if isinstance(saved, Failure):
        click.echo(
            f"Registering externals failed:\n{saved.error}\nCleaning up!", err=True
        )
        _finish_with_cleanup(ctx, [entry.target_path for entry in created])

    click.echo(f"Checkout done: {len(created)} externals.", err=True)
    ctx.exit(int(ExitCode.SUCCESS))


def ui_clean(ctx: click.Context) -> None:
    from .checkout import clean_up_externals

    root = _working_root(ctx)
    registry = _registry(ctx, root)

    loaded = registry.load()
    if isinstance(loaded, Failure):
        click.echo(f"Could not load registered externals:\n{loaded.error}", err=True)
        ctx.exit(int(ExitCode.ERROR_BEFORE_WRITE))

    paths = [root / entry.target_path for entry in loaded.value]
    cleanup = clean_up_externals(paths)
    if isinstance(cleanup, Failure):
        failed = "\n".join(sorted(str(p) for p in cleanup.error))
        click.echo(f"Cleanup reported errors for paths:\n{failed}\n", err=True)
        ctx.exit(int(ExitCode.FAIL_CLEANUP_FAIL))

    cleared = registry.save([])
    if isinstance(cleared, Failure):
        click.echo(f"Externals removed, but the registry was kept:\n{cleared.error}", err=True)
        ctx.exit(int(ExitCode.FAIL_CLEANUP_FAIL))

    click.echo(f"Cleanup done: {len(paths)} externals removed.", err=True)
    ctx.exit(int(ExitCode.FAIL_CLEANUP_OK))


def ui_prepare(ctx: click.Context) -> None:
    click.echo("not implemented, sorry!", err=True)
    ctx.exit(int(ExitCode.NOT_IMPLEMENTED_YET))


def ui_usage(ctx: click.Context) -> None:
    click.echo(USAGE, err=True, nl=False)
    ctx.exit(int(ExitCode.SUCCESS))


MODES = {
    "checkout": ui_checkout,
    "clean": ui_clean,
    "prepare": ui_prepare,
}


@click.command(
    context_settings={"ignore_unknown_options": True},
    add_help_option=False,
)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def cli(ctx, args):
    """
    git-externals - check out svn:externals of a git-svn clone
    """
    if len(args) != 1:
        ui_usage(ctx)
    MODES.get(args[0], ui_usage)(ctx)


def main():
    cli()


if __name__ == "__main__":
    main()

import asyncio
import logging
import signal
import sys
from functools import update_wrapper
from pathlib import Path
from typing import Optional

import click

from hackcd import __version__
from hackcd.runtime import Runtime

pass_runtime = click.make_pass_decorator(Runtime)

LOGGER = logging.getLogger(__name__)


def _install_cancel_handlers(runtime: Optional[Runtime]):
    """Turn SIGINT/SIGTERM into a cancellation request checked before the next external command"""
    if runtime is None:
        return
    loop = asyncio.get_running_loop()

    def _cancel(signame):
        LOGGER.warning("%s received, stopping before the next command...", signame)
        runtime.cancel_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _cancel, sig.name)
        except (NotImplementedError, RuntimeError):
            # not supported on this platform / not in the main thread
            pass


def click_coroutine(f):
    """A wrapper to allow to use asyncio with click.
    https://github.com/pallets/click/issues/85
    """

    def wrapper(*args, **kwargs):
        ctx = click.get_current_context(silent=True)
        runtime = ctx.find_object(Runtime) if ctx else None

        async def _main():
            _install_cancel_handlers(runtime)
            return await f(*args, **kwargs)

        return asyncio.run(_main())

    return update_wrapper(wrapper, f)


def print_version(ctx, param, value):
    if not value or ctx.resilient_parsing:
        return
    click.echo('hackcd v{}'.format(__version__))
    click.echo('Python v{}'.format(sys.version))
    ctx.exit()


# ============================================================================
# GLOBAL OPTIONS: parameters for all commands
# ============================================================================
@click.group(context_settings=dict(help_option_names=['-h', '--help']))
@click.option(
    '--version',
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Print version information and quit",
)
@click.option("--config", "-c", metavar='PATH', help="Configuration file ('~/.config/hackcd.toml' by default)")
@click.option(
    "--working-dir",
    "-C",
    metavar='PATH',
    default=None,
    help="Existing directory in which file operations should be performed (current directory by default)",
)
@click.option("--dry-run", is_flag=True, help="don't actually change anything; just print what would be done")
@click.option("--verbosity", "-v", count=True, help="[MULTIPLE] increase output verbosity")
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], working_dir: Optional[str], dry_run: bool, verbosity: int):
    working_dir = working_dir or Path.cwd()
    # configure logging
    if not verbosity:
        logging.basicConfig(level=logging.WARNING)
    elif verbosity == 1:
        logging.basicConfig(level=logging.INFO)
    elif verbosity >= 2:
        logging.basicConfig(level=logging.DEBUG)
    else:
        raise ValueError(f"Invalid verbosity {verbosity}")
    config_filename = Path(config).expanduser() if config else None
    ctx.obj = Runtime.from_config_file(config_filename, working_dir=Path(working_dir), dry_run=dry_run)

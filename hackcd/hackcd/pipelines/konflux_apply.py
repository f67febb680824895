import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import click
from hackcommonlib import exectools

from hackcd import constants
from hackcd.cli import cli, click_coroutine, pass_runtime
from hackcd.runtime import Runtime


class KonfluxApplyPipeline:
    """Applies the generated .konflux/<version> manifest trees to the current cluster with kubectl"""

    def __init__(self, runtime: Runtime, versions: Optional[List[str]] = None, dry_run: bool = False):
        self.runtime = runtime
        self.versions = versions or []
        self.dry_run = dry_run or runtime.dry_run
        self.konflux_dir = Path(runtime.working_dir, constants.KONFLUX_DIR)
        self._logger = logging.getLogger(__name__)

    def version_dirs(self) -> List[Path]:
        """Directories to apply, in order
        :raises FileNotFoundError: if a requested version has no directory, or .konflux itself is missing
        """
        if self.versions:
            dirs = []
            for version in self.versions:
                version_dir = self.konflux_dir / version
                if not version_dir.is_dir():
                    raise FileNotFoundError(f"Version directory {version_dir} does not exist")
                dirs.append(version_dir)
            return dirs
        if not self.konflux_dir.is_dir():
            raise FileNotFoundError(f"Failed to read {self.konflux_dir} directory")
        return sorted(entry for entry in self.konflux_dir.iterdir() if entry.is_dir())

    async def apply(self, version_dir: Path):
        self._logger.info("Applying manifests from %s", version_dir)
        cmd = ["kubectl", "apply"]
        if self.dry_run:
            cmd.append("--dry-run=client")
        cmd.extend(["-R", "-f", str(version_dir)])
        if self.runtime.cancel_event.is_set():
            raise asyncio.CancelledError(f"Cancelled before applying {version_dir}")
        await exectools.cmd_assert_async(cmd)

    async def run(self):
        for version_dir in self.version_dirs():
            await self.apply(version_dir)
        self._logger.info("Done applying Konflux manifests")


def parse_versions(value: Optional[str]) -> List[str]:
    """'1-22, 0-2,' -> ['1-22', '0-2']"""
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


@cli.command("apply", help="Apply the manifests generated under .konflux/ to the current cluster")
@click.option(
    "--versions",
    default="",
    help="comma-separated versions to apply (e.g., '1-22,0-2'). If not provided, applies all versions in .konflux/",
)
@click.option("--dry-run", is_flag=True, help="Run kubectl in client-side dry-run mode")
@pass_runtime
@click_coroutine
async def apply(runtime: Runtime, versions: str, dry_run: bool):
    pipeline = KonfluxApplyPipeline(runtime=runtime, versions=parse_versions(versions), dry_run=dry_run)
    await pipeline.run()

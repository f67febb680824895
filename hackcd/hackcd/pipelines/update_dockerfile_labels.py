import logging
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

import click
from hackcommonlib import format_util

from hackcd import constants, github, image_digest
from hackcd.cli import cli, click_coroutine, pass_runtime
from hackcd.config import Branch, LabelConfig, RepositoryDescriptor, load_label_config
from hackcd.dockerfile import cpe_label, update_dockerfile_label
from hackcd.exceptions import PreconditionError
from hackcd.git import GitRepository
from hackcd.runtime import LabelUpdateSettings, Runtime


class UpdateDockerfileLabelsPipeline:
    """
    Installs the CPE label of a release into the Konflux Dockerfiles of every repository/branch of the given
    configurations, refreshes their base image digest, and proposes the result as a pull request.
    Repositories and branches are processed one after the other; the first error stops the whole batch.
    """

    def __init__(
        self,
        runtime: Runtime,
        configs: Sequence[LabelConfig],
        version: str,
        working_dir: Path,
        dry_run: bool = False,
    ):
        self.runtime = runtime
        self.configs = configs
        self.version = version
        self.working_dir = Path(working_dir)
        self.dry_run = dry_run or runtime.dry_run
        self.settings: LabelUpdateSettings = runtime.label_settings
        self.label = cpe_label(version, self.settings.cpe_template)
        self.runner = runtime.new_command_runner()
        self._digest: Optional[str] = None
        self._logger = logging.getLogger(__name__)

    def checkout_dir(self, repo: RepositoryDescriptor, branch: Branch) -> Path:
        return self.working_dir / f"{repo.name}-{branch.branch_name}"

    def update_dockerfiles(self, checkout: Path) -> List[Path]:
        """Patch every Dockerfile of the checkout, skipping (with a warning) those failing a precondition.
        :return: Dockerfiles whose content changed
        """
        updated = []
        for dockerfile in sorted(checkout.glob(self.settings.dockerfiles_glob)):
            self._logger.info("Updating %s", dockerfile)
            try:
                changed = update_dockerfile_label(
                    dockerfile,
                    self.label,
                    digest=self._digest,
                    base_image=self.settings.base_image,
                    base_image_arg=self.settings.base_image_arg,
                )
            except PreconditionError as e:
                self._logger.warning("Failed to update %s: %s", dockerfile, e)
                continue
            if changed:
                updated.append(dockerfile)
        return updated

    async def process_branch(self, config: LabelConfig, repo: RepositoryDescriptor, branch: Branch):
        remote_url = repo.clone_url(self.settings.github_org)
        checkout = self.checkout_dir(repo, branch)
        target = branch.branch_name
        intent = github.label_update_intent(
            config.name, target, self.label, prefix=self.settings.branch_prefix, labels=self.settings.pr_labels
        )
        self._logger.info("Processing %s (%s) on branch %s in %s", repo.name, remote_url, target, checkout)

        repository = GitRepository(checkout, self.runner)
        await repository.sync(remote_url, target, intent.head)

        dockerfiles_dir = (checkout / self.settings.dockerfiles_glob).parent
        if not dockerfiles_dir.is_dir():
            self._logger.info("No %s directory found in %s, skipping", dockerfiles_dir.relative_to(checkout), repo.name)
            return
        if not self.update_dockerfiles(checkout):
            self._logger.info("No Dockerfiles updated in %s", repo.name)
            return

        if self.dry_run:
            self._logger.warning(
                "[DRY RUN] Would have committed, pushed %s and opened a pull request against %s", intent.head, target
            )
            return
        pushed = await repository.commit_push(
            target,
            intent.head,
            github.commit_message(target, self.label),
            self.settings.dockerfiles_glob,
            self.settings.author_name,
            self.settings.author_email,
        )
        if pushed:
            await github.create_or_update_pull_request(self.runner, checkout, intent)

    async def run(self):
        self._logger.info("Updating Dockerfiles with CPE label: %s", self.label)
        self._digest = await image_digest.get_latest_digest(self.settings.base_image)
        for config in self.configs:
            format_util.cprint(f"Processing repositories for {config.name}")
            for repo in config.repos:
                format_util.start_group(f" Processing repository {repo.clone_url(self.settings.github_org)}")
                for branch in repo.branches:
                    await self.process_branch(config, repo, branch)
                format_util.end_group()


@cli.command("update-labels", help="Add the release CPE label to Konflux Dockerfiles and open pull requests")
@click.option(
    "--version",
    "cpe_version",
    default=constants.DEFAULT_CPE_VERSION,
    show_default=True,
    help="Version for CPE label (e.g., 1.21)",
)
@click.option("--dry-run", is_flag=True, help="Dry run (no commit, no PR)")
@click.option(
    "--dir",
    "directory",
    default=constants.UPDATE_LABELS_WORKING_DIR,
    show_default=True,
    help="folder to work in (a temporary directory when empty)",
)
@click.argument("config_files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@pass_runtime
@click_coroutine
async def update_labels(runtime: Runtime, cpe_version: str, dry_run: bool, directory: str, config_files):
    dry_run = dry_run or runtime.dry_run
    if not dry_run:
        github.ensure_gh_available()
    working_dir = Path(directory) if directory else Path(tempfile.mkdtemp(prefix="update-dockerfile-labels"))
    configs = [load_label_config(path) for path in config_files]
    pipeline = UpdateDockerfileLabelsPipeline(
        runtime=runtime, configs=configs, version=cpe_version, working_dir=working_dir, dry_run=dry_run
    )
    await pipeline.run()

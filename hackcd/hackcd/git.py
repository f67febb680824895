import logging
from pathlib import Path
from typing import Union

from hackcommonlib import git_helper, logutil
from hackcommonlib.exectools import CommandRunner, ExternalToolError
from hackcommonlib.telemetry import start_as_current_span_async
from opentelemetry import trace

from hackcd.exceptions import BranchNotFound

LOGGER = logging.getLogger(__name__)
TRACER = trace.get_tracer(__name__)


class GitRepository:
    """A working checkout of one branch of a remote repository.

    The checkout directory is reused across runs: an existing clone is fetched and reset instead of cloned again.
    """

    def __init__(self, directory: Union[str, Path], runner: CommandRunner, logger: logging.Logger = LOGGER):
        """
        :param directory: local directory bound to a single (repository, branch) pair
        :param runner: runs git in the checkout
        """
        self.directory = Path(directory)
        self.runner = runner
        self._logger = logutil.EntityLoggingAdapter(logger=logger, extra={'entity': str(self.directory)})

    async def _git(self, *args: str) -> str:
        return await git_helper.run_git(self.runner, self.directory, *args)

    @start_as_current_span_async(TRACER, "git_repository.sync")
    async def sync(self, remote_url: str, branch: str, derived_branch: str):
        """Bring the checkout to the tip of `branch` on the remote and switch to a fresh `derived_branch` from there.
        Local changes from an earlier run are discarded.
        :raises BranchNotFound: if the remote has no `branch`; no local branch is touched in that case
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        if git_helper.is_git_checkout(self.directory):
            self._logger.info("Fetching %s", remote_url)
            await self._git("fetch", "--all")
        else:
            self._logger.info("Cloning %s", remote_url)
            await self._git("clone", remote_url, ".")

        await self._git("reset", "--hard", "HEAD", "--")

        heads = await self._git("ls-remote", "--heads", "origin", branch)
        if not heads.strip():
            raise BranchNotFound(remote_url, branch)

        await self._git("checkout", f"origin/{branch}", "-B", branch)
        await self._git("checkout", "-B", derived_branch)

    @start_as_current_span_async(TRACER, "git_repository.commit_push")
    async def commit_push(
        self, branch: str, derived_branch: str, message: str, paths: str, author_name: str, author_email: str
    ) -> bool:
        """Commit changes under `paths` and force push them to `derived_branch`.
        :param branch: target branch, only used for logging
        :param paths: pathspec handed to git add
        :return: False if there was nothing to commit, True once the commit is pushed
        """
        status = await self._git("status", "--porcelain")
        if not status.strip():
            self._logger.info("No changes on %s, skipping commit and PR", branch)
            return False

        await self._git("config", "user.name", author_name)
        await self._git("config", "user.email", author_email)
        await self._git("add", paths)
        try:
            await self._git("commit", "-m", message)
        except ExternalToolError as e:
            # changes outside of `paths` are not staged; a re-run may have nothing new to commit
            if "nothing to commit" in e.output:
                self._logger.info("No new changes to commit")
                return False
            raise

        self._logger.info("Pushing changes to branch %s", derived_branch)
        await self._git("push", "-f", "origin", derived_branch)
        return True

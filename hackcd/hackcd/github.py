import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

from hackcommonlib.exectools import CommandRunner

from hackcd import constants

LOGGER = logging.getLogger(__name__)

PR_TITLE = "[bot:{config}:{branch}] Update Dockerfile CPE labels and base images"
PR_BODY = (
    "This PR updates Dockerfile CPE labels and base images.\n\n"
    "**Changes:**\n"
    "- Label added to existing LABEL block: {label}\n"
    "- Updated UBI9 base image to latest digest\n\n"
    "This PR was automatically generated by the update-dockerfile-labels command from openshift-pipelines/hack repository"
)
COMMIT_MESSAGE = "[bot:{branch}] Update Dockerfile CPE labels and base images\n\nAdd CPE label: {label}\nUpdate UBI9 base image to latest"


@dataclass(frozen=True)
class PullRequestIntent:
    """Everything needed to find or open the pull request of one (repository, branch) pair"""

    base: str
    head: str
    title: str
    body: str
    labels: Tuple[str, ...] = tuple(constants.PR_LABELS)


def derived_branch_name(config_name: str, branch: str, prefix: str = constants.UPDATE_LABELS_BRANCH_PREFIX) -> str:
    """Name of the branch carrying the automated changes, stable across runs so reruns update the same PR"""
    return f"{prefix}{config_name}{branch}"


def commit_message(branch: str, label: str) -> str:
    return COMMIT_MESSAGE.format(branch=branch, label=label)


def label_update_intent(
    config_name: str,
    branch: str,
    label: str,
    prefix: str = constants.UPDATE_LABELS_BRANCH_PREFIX,
    labels: Sequence[str] = constants.PR_LABELS,
) -> PullRequestIntent:
    return PullRequestIntent(
        base=branch,
        head=derived_branch_name(config_name, branch, prefix),
        title=PR_TITLE.format(config=config_name, branch=branch),
        body=PR_BODY.format(label=label),
        labels=tuple(labels),
    )


def ensure_gh_available():
    if not shutil.which("gh"):
        raise FileNotFoundError("Couldn't find gh in your path, bailing.")


async def find_pull_request(runner: CommandRunner, directory: Union[str, Path], intent: PullRequestIntent) -> Optional[str]:
    """Number of the open PR from intent.head into intent.base, or None"""
    args = ["pr", "list", "--base", intent.base, "--head", intent.head, "--json", "number,url", "--jq", ".[0].number"]
    out = await runner.run(directory, "gh", *args)
    return out.strip() or None


async def create_or_update_pull_request(
    runner: CommandRunner, directory: Union[str, Path], intent: PullRequestIntent
) -> Optional[str]:
    """
    Open the pull request described by `intent` unless one already exists.
    An existing PR needs no call: the force push of its head branch already updated it.
    :return: number of the existing PR, or None when a new one was created
    """
    number = await find_pull_request(runner, directory, intent)
    if number:
        LOGGER.info("[%s] PR #%s already exists and has been updated with force push", directory, number)
        return number

    LOGGER.info("[%s] Creating new PR", directory)
    args = ["pr", "create", "--base", intent.base, "--head", intent.head]
    args.extend(f"--label={label}" for label in intent.labels)
    args.extend(["--title", intent.title, "--body", intent.body])
    await runner.run(directory, "gh", *args)
    return None

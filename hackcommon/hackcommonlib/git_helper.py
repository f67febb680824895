import os
from pathlib import Path
from typing import Dict, Optional, Union

from hackcommonlib import constants
from hackcommonlib.exectools import CommandRunner


def git_env(env: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Returns a copy of the current environment with git prompts disabled.
    :param env: Optional environment variables to set on top
    """
    set_env = os.environ.copy()
    set_env.update(constants.GIT_NO_PROMPTS)
    if env:
        set_env.update(env)
    return set_env


def is_git_checkout(directory: Union[str, Path]) -> bool:
    """Whether `directory` already holds git metadata from an earlier clone"""
    return Path(directory, ".git").exists()


async def run_git(runner: CommandRunner, directory: Union[str, Path], *args: str) -> str:
    """Run a git command in `directory` through `runner` and return its combined output.
    Raises exectools.ExternalToolError if git exits with a non-zero status.
    """
    return await runner.run(directory, "git", *args)

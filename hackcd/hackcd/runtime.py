import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import tomli
from hackcommonlib.exectools import CommandRunner
from hackcommonlib.git_helper import git_env

from hackcd import constants


@dataclass(frozen=True)
class LabelUpdateSettings:
    """Knobs of the update-labels workflow, read from the [update_labels] section of the config file"""

    branch_prefix: str = constants.UPDATE_LABELS_BRANCH_PREFIX
    cpe_template: str = constants.CPE_TEMPLATE
    base_image: str = constants.BASE_IMAGE
    base_image_arg: str = constants.BASE_IMAGE_ARG
    dockerfiles_glob: str = constants.DOCKERFILES_GLOB
    pr_labels: List[str] = field(default_factory=lambda: list(constants.PR_LABELS))
    github_org: str = constants.GITHUB_ORG
    author_name: str = constants.GIT_AUTHOR_NAME
    author_email: str = constants.GIT_AUTHOR_EMAIL


class Runtime:
    def __init__(self, config: Dict[str, Any], working_dir: Path, dry_run: bool):
        self.config = config
        self.working_dir = working_dir
        self.dry_run = dry_run
        self.logger = self.init_logger()
        # set by the CLI on SIGINT/SIGTERM; checked before every external command
        self.cancel_event = asyncio.Event()

        # checks working_dir
        if not self.working_dir.is_dir():
            raise IOError(f"Working directory {self.working_dir.absolute()} doesn't exist.")

    @staticmethod
    def init_logger():
        root = logging.getLogger()
        if root.handlers:
            root.removeHandler(root.handlers[0])
        logger = logging.getLogger('hackcd')
        if not logger.handlers:
            formatter = logging.Formatter('%(asctime)s %(name)s:%(levelname)s %(message)s')
            handler = logging.StreamHandler()
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        return logger

    @classmethod
    def from_config_file(cls, config_filename: Optional[Path], working_dir: Path, dry_run: bool):
        """Load the TOML config file. Without an explicit file, a missing default file means built-in defaults."""
        if config_filename is None:
            config_filename = Path(constants.DEFAULT_CONFIG_PATH).expanduser()
            if not config_filename.exists():
                return Runtime(config={}, working_dir=working_dir, dry_run=dry_run)
        with open(config_filename, "rb") as config_file:
            config_dict = tomli.load(config_file)
        return Runtime(config=config_dict, working_dir=working_dir, dry_run=dry_run)

    @property
    def github_org(self) -> str:
        return self.config.get("github", {}).get("org", constants.GITHUB_ORG)

    @property
    def label_settings(self) -> LabelUpdateSettings:
        section = dict(self.config.get("update_labels", {}))
        git_config = self.config.get("git", {})
        section.setdefault("github_org", self.github_org)
        section.setdefault("author_name", git_config.get("author_name", constants.GIT_AUTHOR_NAME))
        section.setdefault("author_email", git_config.get("author_email", constants.GIT_AUTHOR_EMAIL))
        unknown = set(section) - set(LabelUpdateSettings.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown keys in [update_labels] config section: {', '.join(sorted(unknown))}")
        return LabelUpdateSettings(**section)

    def new_command_runner(self) -> CommandRunner:
        return CommandRunner(cancel_event=self.cancel_event, env=git_env())

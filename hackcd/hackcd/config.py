"""
Models of the YAML descriptors read by the hackcd commands.

Unknown keys are rejected so that typos in a descriptor fail loudly instead of being ignored.
"""

import logging
from pathlib import Path
from typing import Any, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from hackcd.exceptions import ConfigError

LOGGER = logging.getLogger(__name__)


class StrictBaseModel(BaseModel):
    # do not allow extra fields
    model_config = ConfigDict(extra='forbid', populate_by_name=True, frozen=True)


class Patch(StrictBaseModel):
    name: str
    script: str


class Version(StrictBaseModel):
    version: str
    release: Optional[str] = None


class GitHub(StrictBaseModel):
    update_sources: str = Field(default="", alias="update-sources")


class Tekton(StrictBaseModel):
    watched_sources: str = Field(default="", alias="watched-sources")
    event_type: str = ""
    nudge_files: str = Field(default="", alias="build-nudge-files")


class Component(StrictBaseModel):
    name: str
    nudges: List[str] = []
    dockerfile: str = ""
    platforms: List[str] = []
    image_prefix: str = Field(default="", alias="image-prefix")
    image_suffix: str = Field(default="", alias="image-suffix")
    prefetch_input: str = Field(default="", alias="prefetch-input")


class Branch(StrictBaseModel):
    name: Optional[str] = None
    version: Optional[str] = None
    upstream: Optional[str] = None  # upstream branch this downstream branch follows
    versions: List[Version] = []
    patches: List[Patch] = []
    platforms: List[str] = []

    @property
    def branch_name(self) -> str:
        """Name of the downstream git branch"""
        if self.name:
            return self.name
        if self.version:
            return f"release-v{self.version}.x"
        raise ConfigError("A branch needs either a name or a version")


def _components_from_names(value: Any) -> Any:
    # `components: [a, b]` is shorthand for `components: [{name: a}, {name: b}]`
    if isinstance(value, list):
        return [{"name": item} if isinstance(item, str) else item for item in value]
    return value


class RepositoryDescriptor(StrictBaseModel):
    """One repository of the fleet, as found in repos/<name>.yaml"""

    name: str
    url: Optional[str] = None
    upstream: str = ""
    components: List[Component] = []
    branches: List[Branch] = []
    github: GitHub = GitHub()
    tekton: Tekton = Tekton()
    patches: List[Patch] = []
    platforms: List[str] = []
    release_plan: bool = Field(default=False, alias="release-plan")

    @field_validator("components", mode="before")
    @classmethod
    def normalize_components(cls, value):
        return _components_from_names(value)

    def clone_url(self, github_org: str) -> str:
        return self.url or f"https://github.com/{github_org}/{self.name}.git"


class LabelConfig(StrictBaseModel):
    """Top-level config handed to update-labels; `resources` name files under repos/ next to it"""

    name: str
    resources: List[str] = []
    repos: List[RepositoryDescriptor] = []


class KonfluxConfig(StrictBaseModel):
    """Repository configuration from which the .konflux/.github/.tekton trees are generated"""

    repository: str
    upstream: str = ""
    github: GitHub = GitHub()
    tekton: Tekton = Tekton()
    components: List[Component] = []
    branches: List[Branch] = []
    patches: List[Patch] = []
    platforms: List[str] = []
    release_plan: bool = Field(default=False, alias="release-plan")

    @field_validator("components", mode="before")
    @classmethod
    def normalize_components(cls, value):
        return _components_from_names(value)


def load_yaml(path: Union[str, Path]) -> Any:
    path = Path(path)
    try:
        with open(path) as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ConfigError(f"Config file {path} does not exist") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file {path} is not valid YAML: {e}") from e


def _parse(model, path: Path):
    data = load_yaml(path)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Error while parsing config {path}: {e}") from e


def load_repository(path: Union[str, Path]) -> RepositoryDescriptor:
    return _parse(RepositoryDescriptor, Path(path))


def load_label_config(path: Union[str, Path]) -> LabelConfig:
    """Load an update-labels config and append the repositories named in `resources`"""
    path = Path(path)
    config = _parse(LabelConfig, path)
    repos = list(config.repos)
    for resource in config.resources:
        repo_path = path.parent / "repos" / f"{resource}.yaml"
        LOGGER.debug("Loading repository %s from %s", resource, repo_path)
        repos.append(load_repository(repo_path))
    return config.model_copy(update={"repos": repos})


def load_konflux_config(path: Union[str, Path]) -> KonfluxConfig:
    return _parse(KonfluxConfig, Path(path))

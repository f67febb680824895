import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import click
from hackcommonlib.util import basename, hyphenize

from hackcd import constants
from hackcd.cli import cli, pass_runtime
from hackcd.config import Branch, Component, GitHub, KonfluxConfig, Patch, Tekton, Version, load_konflux_config
from hackcd.runtime import Runtime
from hackcd.templating import TemplateRenderer

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComponentData:
    """Render context of the per-component templates"""

    name: str
    application: str
    repository: str
    branch: str
    version: str
    tekton: Tekton = field(default_factory=Tekton)
    platforms: List[str] = field(default_factory=list)
    nudges: List[str] = field(default_factory=list)
    dockerfile: str = ""
    image_prefix: str = constants.DEFAULT_IMAGE_PREFIX
    image_suffix: str = constants.DEFAULT_IMAGE_SUFFIX
    prefetch_input: str = ""
    tenant: str = constants.KONFLUX_TENANT

    @property
    def application_name(self) -> str:
        return f"{hyphenize(self.application)}-{hyphenize(self.version)}"

    @property
    def component_name(self) -> str:
        return f"{hyphenize(self.name)}-{hyphenize(self.version)}"

    @property
    def image_name(self) -> str:
        return f"{self.image_prefix}{self.name}{self.image_suffix}"

    @property
    def dockerfile_path(self) -> str:
        return self.dockerfile or f"{constants.KONFLUX_DIR}/dockerfiles/{self.name}.Dockerfile"

    @property
    def file_prefix(self) -> str:
        """Common prefix of the .tekton PipelineRun files of this component"""
        return f"{hyphenize(basename(self.repository))}-{hyphenize(self.version)}-{self.name}"


@dataclass(frozen=True)
class Application:
    """Render context of the per-branch templates"""

    name: str
    repository: str
    upstream: str
    branch: str
    upstream_branch: str
    version: str
    components: List[ComponentData] = field(default_factory=list)
    github: GitHub = field(default_factory=GitHub)
    tekton: Tekton = field(default_factory=Tekton)
    patches: List[Patch] = field(default_factory=list)
    platforms: List[str] = field(default_factory=list)
    release_plan: bool = False
    releases: List[Version] = field(default_factory=list)
    tenant: str = constants.KONFLUX_TENANT

    @property
    def application_name(self) -> str:
        return f"{hyphenize(self.name)}-{hyphenize(self.version)}"


def tekton_with_defaults(tekton: Tekton) -> Tekton:
    return tekton.model_copy(
        update={
            "watched_sources": tekton.watched_sources or constants.DEFAULT_WATCHED_SOURCES,
            "event_type": tekton.event_type or constants.DEFAULT_EVENT_TYPE,
        }
    )


class KonfluxGeneratePipeline:
    """Expands the manifests of one repository into the .konflux, .github and .tekton trees under `target`"""

    def __init__(
        self, runtime: Runtime, config: KonfluxConfig, target: Path, renderer: Optional[TemplateRenderer] = None
    ):
        self.runtime = runtime
        self.config = config
        self.target = Path(target)
        self.renderer = renderer or TemplateRenderer()
        self._logger = logging.getLogger(__name__)

    def _component(self, component: Component, branch: str, version: str, platforms: List[str]) -> ComponentData:
        return ComponentData(
            name=component.name,
            application=self.config.repository,
            repository=f"{self.runtime.github_org}/{self.config.repository}",
            branch=branch,
            version=version,
            tekton=tekton_with_defaults(self.config.tekton),
            platforms=component.platforms or platforms,
            nudges=component.nudges,
            dockerfile=component.dockerfile,
            image_prefix=component.image_prefix or constants.DEFAULT_IMAGE_PREFIX,
            image_suffix=component.image_suffix or constants.DEFAULT_IMAGE_SUFFIX,
            prefetch_input=component.prefetch_input,
        )

    def _application(
        self, branch: str, upstream_branch: str, version: str, source: Optional[Branch] = None
    ) -> Application:
        config = self.config
        patches = (source.patches if source else []) or config.patches
        platforms = (source.platforms if source else []) or config.platforms or constants.DEFAULT_PLATFORMS
        return Application(
            name=config.repository,
            repository=f"{self.runtime.github_org}/{config.repository}",
            upstream=config.upstream,
            branch=branch,
            upstream_branch=upstream_branch,
            version=version,
            components=[self._component(c, branch, version, platforms) for c in config.components],
            github=config.github,
            tekton=tekton_with_defaults(config.tekton),
            patches=patches,
            platforms=platforms,
            release_plan=config.release_plan,
            releases=source.versions if source else [],
        )

    def applications(self) -> List[Application]:
        """The main branch first, then every configured release branch in configuration order"""
        apps = [self._application(constants.MAIN_BRANCH, constants.MAIN_BRANCH, constants.MAIN_BRANCH)]
        for branch in self.config.branches:
            branch_name = branch.branch_name
            apps.append(
                self._application(
                    branch_name,
                    branch.upstream or constants.MAIN_BRANCH,
                    branch.version or branch_name,
                    source=branch,
                )
            )
        return apps

    def generate_konflux(self, app: Application, target: Path):
        self._logger.info("Generate konflux manifest in %s", target)
        out_dir = target / app.branch
        self.renderer.render_to_file("konflux/application.yaml", app, out_dir / "application.yaml")
        self.renderer.render_to_file("konflux/tests.yaml", app, out_dir / "tests.yaml")
        for component in app.components:
            self.renderer.render_to_file("konflux/component.yaml", component, out_dir / f"component-{component.name}.yaml")
            self.renderer.render_to_file("konflux/image.yaml", component, out_dir / f"image-{component.name}.yaml")
        if app.release_plan:
            self.renderer.render_to_file("konflux/release-plan.yaml", app, out_dir / "release-plan.yaml")

    def generate_github(self, app: Application, target: Path):
        if not app.upstream:
            # Only generate the github workflows if there is an upstream
            return
        self._logger.info("Generate github manifests in %s", target)
        workflows = target / "workflows"
        self.renderer.render_to_file(
            "github/update-sources.yaml", app, workflows / f"update-sources.{app.branch}.yaml"
        )
        self.renderer.render_to_file("github/auto-merge.yaml", app, workflows / f"auto-merge.{app.branch}.yaml")

    def generate_tekton(self, app: Application, target: Path):
        self._logger.info("Generate tekton manifest in %s", target)
        docker_build = target / "docker-build.yaml"
        if docker_build.exists():
            self._logger.info("Keeping existing %s", docker_build)
        else:
            self.renderer.render_to_file("tekton/docker-build.yaml", app, docker_build)
        for component in app.components:
            self.renderer.render_to_file(
                "tekton/component-pull-request.yaml", component, target / f"{component.file_prefix}-pull-request.yaml"
            )
            self.renderer.render_to_file(
                "tekton/component-push.yaml", component, target / f"{component.file_prefix}-push.yaml"
            )

    def run(self):
        for app in self.applications():
            self._logger.info("Generate configurations for %s branch", app.branch)
            self.generate_konflux(app, self.target / constants.KONFLUX_DIR)
            self.generate_github(app, self.target / constants.GITHUB_DIR)
            # PipelineRuns live on the main branch only
            if app.branch == constants.MAIN_BRANCH:
                self.generate_tekton(app, self.target / constants.TEKTON_DIR)


@cli.command("generate", help="Generate .konflux, .github and .tekton manifests from a repository configuration")
@click.option(
    "--config",
    "config_path",
    default=constants.DEFAULT_KONFLUX_CONFIG,
    show_default=True,
    help="Repository configuration",
)
@click.option("--target", default=".", show_default=True, help="Target folder to generate files in")
@pass_runtime
def generate(runtime: Runtime, config_path: str, target: str):
    config = load_konflux_config(Path(runtime.working_dir, config_path))
    pipeline = KonfluxGeneratePipeline(runtime=runtime, config=config, target=Path(runtime.working_dir, target))
    pipeline.run()

import tempfile
from pathlib import Path
from unittest import TestCase
from unittest.mock import MagicMock

import yaml

from hackcd import constants
from hackcd.config import KonfluxConfig
from hackcd.pipelines.konflux_generate import KonfluxGeneratePipeline


def relative_files(root: Path):
    return sorted(str(p.relative_to(root)) for p in root.rglob("*") if p.is_file())


class TestKonfluxGeneratePipeline(TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmpdir.cleanup)
        self.target = Path(self._tmpdir.name)
        self.runtime = MagicMock()
        self.runtime.github_org = "openshift-pipelines"

    def generate(self, data: dict):
        config = KonfluxConfig.model_validate(data)
        KonfluxGeneratePipeline(runtime=self.runtime, config=config, target=self.target).run()

    def load(self, relative_path: str):
        return list(yaml.safe_load_all(self.target.joinpath(relative_path).read_text()))

    def test_minimal_config(self):
        self.generate({"repository": "foo", "components": ["a", "b"]})

        self.assertEqual(
            relative_files(self.target / ".konflux"),
            [
                "main/application.yaml",
                "main/component-a.yaml",
                "main/component-b.yaml",
                "main/image-a.yaml",
                "main/image-b.yaml",
                "main/tests.yaml",
            ],
        )
        # no upstream, no workflows
        self.assertFalse(self.target.joinpath(".github").exists())
        self.assertEqual(
            relative_files(self.target / ".tekton"),
            [
                "docker-build.yaml",
                "foo-main-a-pull-request.yaml",
                "foo-main-a-push.yaml",
                "foo-main-b-pull-request.yaml",
                "foo-main-b-push.yaml",
            ],
        )

        application = self.load(".konflux/main/application.yaml")[0]
        self.assertEqual(application["kind"], "Application")
        self.assertEqual(application["metadata"]["name"], "foo-main")

        component = self.load(".konflux/main/component-a.yaml")[0]
        self.assertEqual(component["metadata"]["name"], "a-main")
        self.assertEqual(component["spec"]["application"], "foo-main")
        self.assertEqual(component["spec"]["source"]["git"]["url"], "https://github.com/openshift-pipelines/foo")
        self.assertEqual(component["spec"]["source"]["git"]["revision"], "main")
        self.assertEqual(component["spec"]["source"]["git"]["dockerfileUrl"], ".konflux/dockerfiles/a.Dockerfile")
        self.assertNotIn("build-nudges-ref", component["spec"])

        image = self.load(".konflux/main/image-b.yaml")[0]
        self.assertEqual(image["spec"]["image"]["name"], "tekton-ecosystem-tenant/main/pipelines-b-rhel9")

        tests = self.load(".konflux/main/tests.yaml")[0]
        self.assertEqual(tests["spec"]["application"], "foo-main")

    def test_tekton_defaults(self):
        self.generate({"repository": "foo", "components": ["a"]})
        run = self.load(".tekton/foo-main-a-pull-request.yaml")[0]
        cel = run["metadata"]["annotations"]["pipelinesascode.tekton.dev/on-cel-expression"]
        self.assertTrue(cel.startswith('event == "pull_request" && target_branch == "main"'))
        self.assertIn(constants.DEFAULT_WATCHED_SOURCES, cel)
        self.assertIn('".tekton/foo-main-a-pull-request.yaml".pathChanged()', cel)
        self.assertEqual(run["metadata"]["name"], "a-main-on-pull-request")
        params = {p["name"]: p["value"] for p in run["spec"]["params"]}
        self.assertEqual(params["revision"], "{{revision}}")
        self.assertEqual(params["build-platforms"], constants.DEFAULT_PLATFORMS)

        push = self.load(".tekton/foo-main-a-push.yaml")[0]
        self.assertTrue(
            push["metadata"]["annotations"]["pipelinesascode.tekton.dev/on-cel-expression"].startswith(
                'event == "push"'
            )
        )

    def test_docker_build_pipeline_is_kept(self):
        self.target.joinpath(".tekton").mkdir()
        self.target.joinpath(".tekton/docker-build.yaml").write_text("# customized\n")
        self.generate({"repository": "foo", "components": ["a"]})
        self.assertEqual(self.target.joinpath(".tekton/docker-build.yaml").read_text(), "# customized\n")

    def test_branches_and_upstream(self):
        self.generate(
            {
                "repository": "tektoncd-pipeline",
                "upstream": "tektoncd/pipeline",
                "components": [
                    "controller",
                    {"name": "webhook", "nudges": ["operator-bundle"], "platforms": ["linux/x86_64"]},
                ],
                "tekton": {"watched-sources": '"cmd/***".pathChanged()', "build-nudge-files": "operator/*.yaml"},
                "branches": [{"version": "1.21", "upstream": "release-v1.0.x"}],
                "patches": [{"name": "fix-go-mod", "script": "go mod tidy\ngo mod vendor"}],
            }
        )
        self.assertEqual(
            relative_files(self.target / ".github"),
            [
                "workflows/auto-merge.main.yaml",
                "workflows/auto-merge.release-v1.21.x.yaml",
                "workflows/update-sources.main.yaml",
                "workflows/update-sources.release-v1.21.x.yaml",
            ],
        )
        self.assertTrue(self.target.joinpath(".konflux/release-v1.21.x/component-webhook.yaml").is_file())
        # PipelineRuns are generated for main only
        self.assertFalse(any("1-21" in name for name in relative_files(self.target / ".tekton")))

        workflow = self.load(".github/workflows/update-sources.release-v1.21.x.yaml")[0]
        self.assertEqual(workflow["name"], "update-sources-release-v1.21.x")
        steps = {step["name"]: step for step in workflow["jobs"]["update-sources"]["steps"]}
        clone = steps["Clone tektoncd/pipeline"]["run"]
        self.assertIn("git clone https://github.com/tektoncd/pipeline upstream", clone)
        self.assertIn("git checkout -B release-v1.0.x origin/release-v1.0.x", clone)
        self.assertEqual(steps["Apply patches"]["run"], "# fix-go-mod\ngo mod tidy\ngo mod vendor\n")
        self.assertEqual(
            workflow["jobs"]["update-sources"]["steps"][-1]["env"]["GH_TOKEN"], "${{ secrets.OPENSHIFT_PIPELINES_ROBOT }}"
        )

        webhook = self.load(".konflux/release-v1.21.x/component-webhook.yaml")[0]
        self.assertEqual(webhook["metadata"]["name"], "webhook-1-21")
        self.assertEqual(webhook["spec"]["application"], "tektoncd-pipeline-1-21")
        self.assertEqual(webhook["spec"]["build-nudges-ref"], ["operator-bundle-1-21"])

        push = self.load(".tekton/tektoncd-pipeline-main-webhook-push.yaml")[0]
        annotations = push["metadata"]["annotations"]
        self.assertEqual(annotations["build.appstudio.openshift.io/build-nudge-files"], "operator/*.yaml")
        self.assertIn('"cmd/***".pathChanged()', annotations["pipelinesascode.tekton.dev/on-cel-expression"])
        params = {p["name"]: p["value"] for p in push["spec"]["params"]}
        self.assertEqual(params["build-platforms"], ["linux/x86_64"])

    def test_update_sources_script_is_expanded(self):
        self.generate(
            {
                "repository": "foo",
                "upstream": "tektoncd/foo",
                "components": ["a"],
                "github": {"update-sources": "./hack/update.sh {{ branch }}"},
            }
        )
        workflow = self.load(".github/workflows/update-sources.main.yaml")[0]
        steps = {step["name"]: step for step in workflow["jobs"]["update-sources"]["steps"]}
        self.assertEqual(steps["Update sources"]["run"], "./hack/update.sh main\n")

    def test_release_plan(self):
        self.generate(
            {
                "repository": "foo",
                "components": ["a"],
                "release-plan": True,
                "branches": [{"version": "1.21", "versions": [{"version": "1.21.0", "release": "rpa-1-21"}]}],
            }
        )
        main_plan = self.load(".konflux/main/release-plan.yaml")
        self.assertEqual(len(main_plan), 1)
        self.assertEqual(main_plan[0]["metadata"]["name"], "foo-main-release-plan")
        plans = self.load(".konflux/release-v1.21.x/release-plan.yaml")
        self.assertEqual(plans[0]["metadata"]["name"], "foo-1-21-1-21-0-release-plan")
        self.assertEqual(
            plans[0]["metadata"]["labels"]["release.appstudio.openshift.io/releasePlanAdmission"], "rpa-1-21"
        )

    def test_applications(self):
        config = KonfluxConfig.model_validate(
            {"repository": "foo", "components": ["a"], "branches": [{"name": "next"}, {"version": "1.21"}]}
        )
        apps = KonfluxGeneratePipeline(runtime=self.runtime, config=config, target=self.target).applications()
        self.assertEqual([a.branch for a in apps], ["main", "next", "release-v1.21.x"])
        self.assertEqual([a.version for a in apps], ["main", "next", "1.21"])
        self.assertEqual(apps[0].repository, "openshift-pipelines/foo")

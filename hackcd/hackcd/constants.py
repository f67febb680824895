from hackcommonlib.constants import GIT_AUTHOR_EMAIL, GIT_AUTHOR_NAME, GITHUB_ORG  # noqa: F401

DEFAULT_CONFIG_PATH = "~/.config/hackcd.toml"

# update-labels
UPDATE_LABELS_BRANCH_PREFIX = "actions/update/dockerfile-labels-"
UPDATE_LABELS_WORKING_DIR = "/tmp/dockerfile-labels"
CPE_TEMPLATE = "cpe:/a:redhat:openshift_pipelines:{version}::el9"
DEFAULT_CPE_VERSION = "1.21"
BASE_IMAGE = "registry.access.redhat.com/ubi9/ubi-minimal"
BASE_IMAGE_ARG = "RUNTIME"
DOCKERFILES_GLOB = ".konflux/dockerfiles/*.Dockerfile"
PR_LABELS = ["hack", "automated"]

# generate / apply
KONFLUX_DIR = ".konflux"
GITHUB_DIR = ".github"
TEKTON_DIR = ".tekton"
MAIN_BRANCH = "main"
DEFAULT_WATCHED_SOURCES = (
    '"upstream/***".pathChanged() || "openshift/patches/***".pathChanged() || "openshift/rpms/***".pathChanged()'
)
DEFAULT_EVENT_TYPE = "pull_request"
DEFAULT_KONFLUX_CONFIG = "config/konflux/repository.yaml"
DEFAULT_PLATFORMS = ["linux/x86_64", "linux-m2xlarge/arm64", "linux/ppc64le", "linux/s390x"]
DEFAULT_IMAGE_PREFIX = "pipelines-"
DEFAULT_IMAGE_SUFFIX = "-rhel9"
KONFLUX_TENANT = "tekton-ecosystem-tenant"

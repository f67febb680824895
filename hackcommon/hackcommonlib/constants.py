# constants shared across multiple sub-projects

GITHUB_ORG = "openshift-pipelines"

# Environment variables to disable Git stdin prompts for username, password, etc
GIT_NO_PROMPTS = {
    "GIT_SSH_COMMAND": "ssh -oBatchMode=yes",
    "GIT_TERMINAL_PROMPT": "0",
}

# Identity used for commits made by automation
GIT_AUTHOR_NAME = "openshift-pipelines-bot"
GIT_AUTHOR_EMAIL = "pipelines-extcomm@redhat.com"

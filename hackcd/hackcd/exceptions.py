class HackcdError(Exception):
    """Base of the errors raised by hackcd itself (failing external commands raise exectools.ExternalToolError)"""


class ConfigError(HackcdError, ValueError):
    """A descriptor is missing, is not valid YAML or does not match the expected shape"""


class PreconditionError(HackcdError):
    """The input is not in the state a workflow step needs before it changes anything"""


class BranchNotFound(PreconditionError):
    def __init__(self, repository: str, branch: str):
        self.repository = repository
        self.branch = branch
        super().__init__(f"branch {branch} does not exist in remote repository {repository}")


class MissingLabelBlock(PreconditionError):
    def __init__(self, path):
        self.path = path
        super().__init__(f"no LABEL block found in Dockerfile {path}")


class MissingNameKey(PreconditionError):
    def __init__(self, path):
        self.path = path
        super().__init__(f"LABEL block of Dockerfile {path} is missing required 'name' key")

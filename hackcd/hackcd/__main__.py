from typing import Optional, Sequence

from hackcd.cli import cli
from hackcd.pipelines import konflux_apply, konflux_generate, matrix, update_dockerfile_labels  # noqa: F401


def main(args: Optional[Sequence[str]] = None):
    # pylint: disable=no-value-for-parameter
    cli(args)


if __name__ == "__main__":
    main()

import json
from typing import Iterable, List

import click
from hackcommonlib.util import stem

from hackcd.cli import cli


def project_names(files: Iterable[str]) -> List[str]:
    """config/konflux/pipeline.yaml -> pipeline"""
    return [stem(f) for f in files]


@cli.command("matrix", help="Print the base names (without extension) of FILES as a JSON array, for GitHub Actions matrices")
@click.argument("files", nargs=-1)
def matrix(files):
    click.echo(json.dumps(project_names(files), separators=(",", ":")))

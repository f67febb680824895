import click


def stringify(val):
    """
    Accepts either str or bytes and returns a str
    """
    try:
        val = val.decode("utf-8")
    except (UnicodeDecodeError, AttributeError):
        pass
    return val


def cprint(msg, file=None):
    """Wrapper for click.echo"""
    click.echo(stringify(msg), file=file)


def start_group(title, file=None):
    """Open a collapsible log group (GitHub Actions syntax)"""
    cprint(f"::group::{title}", file=file)


def end_group(file=None):
    cprint("::endgroup::", file=file)

import posixpath
import re
from pathlib import PurePath

# Kubernetes object names only allow lower case alphanumerics and '-'
NAME_FIELD_INVALID_CHARS = re.compile(r"[^a-z0-9]")


def hyphenize(s: str) -> str:
    """
    Replaces every character that is not allowed in a resource name with a hyphen.
    e.g. "tektoncd/pipeline" -> "tektoncd-pipeline", "1.21" -> "1-21"
    """
    return NAME_FIELD_INVALID_CHARS.sub("-", s)


def basename(s: str) -> str:
    """Last element of a slash separated path, ignoring trailing slashes ("." for an empty string)"""
    if not s:
        return "."
    stripped = s.rstrip("/")
    if not stripped:
        return "/"
    return posixpath.basename(stripped)


def indent(spaces: int, text: str) -> str:
    """Prefixes every line of `text` (including the first one) with `spaces` blanks"""
    pad = " " * spaces
    return pad + text.replace("\n", "\n" + pad)


def contains(haystack: str, needle: str) -> bool:
    return needle in haystack


def stem(path: str) -> str:
    """File name without directories and without its last extension"""
    return PurePath(path).stem

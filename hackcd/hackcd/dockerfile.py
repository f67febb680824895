"""
Installs a CPE label into the LABEL block of a Konflux Dockerfile, and optionally refreshes the
digest of the runtime base image.

The file is first classified line by line (see `parse_lines`) and then rewritten in a single pass
over those records, so every line except the ones we deliberately touch is written back verbatim.
"""

import io
import logging
import re
import shlex
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Union

from dockerfile_parse import DockerfileParser

from hackcd import constants
from hackcd.exceptions import MissingLabelBlock, MissingNameKey

LOGGER = logging.getLogger(__name__)

CONTINUATION = "\\"
LABEL_INSTRUCTION = re.compile(r"LABEL(\s|$)", re.IGNORECASE)
# a cpe=... pair at a key position, or any quoted value (matched whole so a "cpe=" inside
# another label's value is left alone); "com.vendor.cpe=" and friends are different keys
QUOTED_OR_CPE_PAIR = re.compile(r'"(?:[^"\\]|\\.)*"|(?<![\w.=-])cpe=(?:"(?:[^"\\]|\\.)*"|[^\s\\"]+)')
DIGEST_SEPARATOR = "@sha256:"
# continuation lines added after a one-line LABEL line up with the text after "LABEL "
LABEL_CONTINUATION_INDENT = " " * len("LABEL ")


class LineKind(Enum):
    PLAIN = "plain"
    LABEL_OPEN = "label-open"  # LABEL line continued on the next line
    LABEL_CONTINUATION = "label-continuation"
    LABEL_CLOSE = "label-close"  # last line of a label block, a one-line LABEL included


@dataclass(frozen=True)
class DockerfileLine:
    text: str
    kind: LineKind
    block: Optional[int] = None  # index of the label block this line belongs to

    @property
    def stripped(self) -> str:
        return self.text.strip()

    @property
    def indent(self) -> str:
        return self.text[: len(self.text) - len(self.text.lstrip())]

    @property
    def is_label_instruction(self) -> bool:
        return bool(LABEL_INSTRUCTION.match(self.stripped))

    @property
    def is_continued(self) -> bool:
        return self.stripped.endswith(CONTINUATION)


def cpe_label(version: str, template: str = constants.CPE_TEMPLATE) -> str:
    """Formats the label pair installed by the patcher, e.g. cpe="cpe:/a:redhat:openshift_pipelines:1.21::el9" """
    return 'cpe="{}"'.format(template.format(version=version))


def parse_lines(text: str) -> List[DockerfileLine]:
    """
    Classify every line of a Dockerfile.
    A label block opens on a LABEL instruction and runs while lines end with a backslash; blank and
    comment lines inside the block do not end it. A block still open at the end of the file has no
    LABEL_CLOSE record.
    """
    records = []
    block = -1
    in_block = False
    for line in text.split("\n"):
        stripped = line.strip()
        if not in_block:
            if LABEL_INSTRUCTION.match(stripped):
                block += 1
                in_block = stripped.endswith(CONTINUATION)
                records.append(DockerfileLine(line, LineKind.LABEL_OPEN if in_block else LineKind.LABEL_CLOSE, block))
            else:
                records.append(DockerfileLine(line, LineKind.PLAIN))
        elif stripped.endswith(CONTINUATION) or not stripped or stripped.startswith("#"):
            records.append(DockerfileLine(line, LineKind.LABEL_CONTINUATION, block))
        else:
            in_block = False
            records.append(DockerfileLine(line, LineKind.LABEL_CLOSE, block))
    return records


def label_keys(text: str) -> List[str]:
    """Keys declared by the LABEL instructions of every build stage, in order"""
    dfp = DockerfileParser(fileobj=io.BytesIO(text.replace("\r\n", "\n").encode("utf-8")))
    keys = []
    for instruction in dfp.structure:
        if instruction["instruction"] != "LABEL":
            continue
        try:
            tokens = shlex.split(instruction["value"])
        except ValueError:
            # unbalanced quotes
            tokens = instruction["value"].split()
        if tokens and "=" not in tokens[0]:
            # legacy "LABEL key value" form
            keys.append(tokens[0])
        else:
            keys.extend(token.split("=", 1)[0] for token in tokens if "=" in token)
    return keys


def has_name_label(text: str) -> bool:
    """Whether some LABEL instruction declares a `name` key (plain or namespaced like com.example.name)"""
    return any(key == "name" or key.endswith(".name") for key in label_keys(text))


def _line_ending(line: str) -> str:
    return "\r" if line.endswith("\r") else ""


def _replace_digest(line: str, digest: str) -> str:
    parts = line.split(DIGEST_SEPARATOR)
    if len(parts) != 2:
        return line
    return f"{parts[0]}@{digest}{_line_ending(line)}"


def _replace_cpe_pair(line: str, label: str) -> Tuple[str, bool]:
    found = False

    def substitute(match: re.Match) -> str:
        nonlocal found
        if match.group().startswith('"'):
            return match.group()
        found = True
        return label

    return QUOTED_OR_CPE_PAIR.sub(substitute, line), found


def patch_dockerfile_text(
    text: str,
    label: str,
    digest: Optional[str] = None,
    base_image: str = constants.BASE_IMAGE,
    base_image_arg: str = constants.BASE_IMAGE_ARG,
    path: Union[str, Path, None] = None,
) -> str:
    """
    Return `text` with `label` installed into its last label block.

    :param text: Dockerfile content
    :param label: key="value" pair to install, see `cpe_label`
    :param digest: new digest (sha256:...) for the `ARG <base_image_arg>=<base_image>...@sha256:...` line, if any
    :param path: only used in error messages
    :raises MissingLabelBlock: if the Dockerfile has no LABEL instruction at all
    :raises MissingNameKey: if no `name` label is declared
    """
    records = parse_lines(text)
    if not any(r.kind is not LineKind.PLAIN for r in records):
        raise MissingLabelBlock(path or "<text>")
    if not has_name_label(text):
        LOGGER.warning("Dockerfile %s does not have 'name' key in LABEL block", path or "<text>")
        raise MissingNameKey(path or "<text>")

    arg_prefix = f"ARG {base_image_arg}="
    output: List[str] = []
    label_found = False
    last_close: Optional[int] = None  # position in `output` of the last line closing a label block
    last_close_record: Optional[DockerfileLine] = None

    for record in records:
        line = record.text
        if digest and record.kind is LineKind.PLAIN:
            if record.stripped.startswith(arg_prefix) and base_image in line:
                line = _replace_digest(line, digest)
        elif record.kind is not LineKind.PLAIN:
            line, replaced = _replace_cpe_pair(line, label)
            label_found = label_found or replaced

        if record.kind is LineKind.LABEL_CLOSE:
            last_close = len(output)
            last_close_record = record
        output.append(line)

    if not label_found:
        # new lines follow the file's line endings (CRLF or LF)
        eol = "\r" if "\r\n" in text else ""
        if last_close is not None:
            closing = output[last_close]
            indent = LABEL_CONTINUATION_INDENT if last_close_record.is_label_instruction else last_close_record.indent
            if not closing.strip().endswith(CONTINUATION):
                output[last_close] = closing.rstrip() + " " + CONTINUATION + _line_ending(closing)
            output.insert(last_close + 1, indent + label + _line_ending(closing))
        else:
            # no complete label block to extend; declare the label on its own
            ends_with_newline = bool(output) and output[-1] == ""
            if ends_with_newline:
                output.pop()
            else:
                output[-1] += eol
            output.extend([eol, f"LABEL {label}"])
            if ends_with_newline:
                output[-1] += eol
                output.append("")

    return "\n".join(output)


def update_dockerfile_label(
    path: Union[str, Path],
    label: str,
    digest: Optional[str] = None,
    base_image: str = constants.BASE_IMAGE,
    base_image_arg: str = constants.BASE_IMAGE_ARG,
) -> bool:
    """
    Patch the Dockerfile at `path` in place.
    Nothing is written when a precondition fails or the content is already up to date.
    :return: True if the file content changed
    """
    path = Path(path)
    # newline="" keeps CRLF line endings as they are
    with path.open(newline="") as f:
        content = f.read()
    patched = patch_dockerfile_text(
        content, label, digest=digest, base_image=base_image, base_image_arg=base_image_arg, path=path
    )
    if patched == content:
        LOGGER.info("%s is already up to date", path)
        return False
    with path.open("w", newline="") as f:
        f.write(patched)
    return True

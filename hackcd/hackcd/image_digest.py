import json
import logging
from typing import Optional

from async_lru import alru_cache
from hackcommonlib import exectools

from hackcd import constants

LOGGER = logging.getLogger(__name__)


def _digest_from_pull_output(output: str) -> Optional[str]:
    """docker and podman both print a `Digest: sha256:...` line when pulling"""
    for line in output.splitlines():
        if "Digest:" in line:
            fields = line.split()
            if len(fields) >= 2:
                return fields[-1]
    return None


async def _inspect_with_skopeo(image: str) -> Optional[str]:
    rc, stdout, _ = await exectools.cmd_gather_async(["skopeo", "inspect", f"docker://{image}"], check=False)
    if rc != exectools.SUCCESS:
        return None
    try:
        digest = json.loads(stdout).get("Digest")
    except (ValueError, AttributeError):
        return None
    return digest if isinstance(digest, str) else None


async def _pull_with(tool: str, image: str) -> Optional[str]:
    rc, stdout, stderr = await exectools.cmd_gather_async([tool, "pull", image], check=False)
    if rc != exectools.SUCCESS:
        return None
    return _digest_from_pull_output(stdout + "\n" + stderr)


@alru_cache
async def get_latest_digest(image: str = constants.BASE_IMAGE) -> Optional[str]:
    """
    Resolve the digest currently behind `<image>:latest`.
    skopeo is asked first, then docker and podman are used to pull the image.
    The result is cached for the lifetime of the process.

    :return: the digest (sha256:...), or None if no tool could resolve it
    """
    reference = f"{image}:latest"
    lookups = (
        ("skopeo", _inspect_with_skopeo),
        ("docker", lambda ref: _pull_with("docker", ref)),
        ("podman", lambda ref: _pull_with("podman", ref)),
    )
    for tool, lookup in lookups:
        try:
            digest = await lookup(reference)
        except OSError as e:
            LOGGER.debug("%s is not usable: %s", tool, e)
            continue
        if digest:
            LOGGER.info("Found latest digest of %s via %s: %s", image, tool, digest)
            return digest
    LOGGER.warning(
        "Could not determine latest digest of %s using skopeo, docker, or podman; base images will not be updated",
        image,
    )
    return None

import json
import unittest
from unittest.mock import AsyncMock, call, patch

from hackcd import image_digest

IMAGE = "registry.access.redhat.com/ubi9/ubi-minimal"


class TestGetLatestDigest(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        image_digest.get_latest_digest.cache_clear()
        self.addCleanup(image_digest.get_latest_digest.cache_clear)

    @patch("hackcd.image_digest.exectools.cmd_gather_async", new_callable=AsyncMock)
    async def test_skopeo(self, cmd_gather_async: AsyncMock):
        cmd_gather_async.return_value = (0, json.dumps({"Digest": "sha256:abcd"}), "")
        self.assertEqual(await image_digest.get_latest_digest(IMAGE), "sha256:abcd")
        cmd_gather_async.assert_awaited_once_with(["skopeo", "inspect", f"docker://{IMAGE}:latest"], check=False)

    @patch("hackcd.image_digest.exectools.cmd_gather_async", new_callable=AsyncMock)
    async def test_falls_back_to_docker_then_podman(self, cmd_gather_async: AsyncMock):
        cmd_gather_async.side_effect = [
            (1, "", "skopeo: unauthorized"),
            FileNotFoundError("docker"),
            (0, "Trying to pull...\nDigest: sha256:beef\nWriting manifest\n", ""),
        ]
        self.assertEqual(await image_digest.get_latest_digest(IMAGE), "sha256:beef")
        self.assertEqual(
            cmd_gather_async.await_args_list,
            [
                call(["skopeo", "inspect", f"docker://{IMAGE}:latest"], check=False),
                call(["docker", "pull", f"{IMAGE}:latest"], check=False),
                call(["podman", "pull", f"{IMAGE}:latest"], check=False),
            ],
        )

    @patch("hackcd.image_digest.exectools.cmd_gather_async", new_callable=AsyncMock)
    async def test_all_tools_fail(self, cmd_gather_async: AsyncMock):
        cmd_gather_async.return_value = (125, "", "error")
        self.assertIsNone(await image_digest.get_latest_digest(IMAGE))
        self.assertEqual(cmd_gather_async.await_count, 3)

    @patch("hackcd.image_digest.exectools.cmd_gather_async", new_callable=AsyncMock)
    async def test_result_is_cached(self, cmd_gather_async: AsyncMock):
        cmd_gather_async.return_value = (0, json.dumps({"Digest": "sha256:abcd"}), "")
        await image_digest.get_latest_digest(IMAGE)
        await image_digest.get_latest_digest(IMAGE)
        cmd_gather_async.assert_awaited_once()

    def test_digest_from_pull_output(self):
        self.assertEqual(image_digest._digest_from_pull_output("latest: Pulling\nDigest: sha256:1\n"), "sha256:1")
        self.assertIsNone(image_digest._digest_from_pull_output("nothing here"))


if __name__ == "__main__":
    unittest.main()

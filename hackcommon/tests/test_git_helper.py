import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

from hackcommonlib import git_helper


class TestGitHelper(unittest.IsolatedAsyncioTestCase):
    async def test_run_git(self):
        runner = MagicMock()
        runner.run = AsyncMock(return_value="abc\n")
        out = await git_helper.run_git(runner, "/tmp/repo", "rev-parse", "HEAD")
        self.assertEqual(out, "abc\n")
        runner.run.assert_awaited_once_with("/tmp/repo", "git", "rev-parse", "HEAD")

    def test_git_env(self):
        env = git_helper.git_env({"EXTRA": "1"})
        self.assertEqual(env["GIT_TERMINAL_PROMPT"], "0")
        self.assertEqual(env["EXTRA"], "1")
        self.assertNotIn("EXTRA", os.environ)

    def test_is_git_checkout(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            self.assertFalse(git_helper.is_git_checkout(tmpdir))
            Path(tmpdir, ".git").mkdir()
            self.assertTrue(git_helper.is_git_checkout(tmpdir))


if __name__ == "__main__":
    unittest.main()

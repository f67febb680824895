import asyncio
import tempfile
from pathlib import Path
from unittest import IsolatedAsyncioTestCase, TestCase
from unittest.mock import AsyncMock, MagicMock, call, patch

from hackcd.pipelines.konflux_apply import KonfluxApplyPipeline, parse_versions


class TestParseVersions(TestCase):
    def test_parse_versions(self):
        self.assertEqual(parse_versions("1-22, 0-2,"), ["1-22", "0-2"])
        self.assertEqual(parse_versions(""), [])
        self.assertEqual(parse_versions(None), [])


class TestKonfluxApplyPipeline(IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmpdir.cleanup)
        self.working_dir = Path(self._tmpdir.name)
        self.konflux = self.working_dir / ".konflux"
        for version in ("main", "1-21", "1-20"):
            self.konflux.joinpath(version).mkdir(parents=True)
        self.konflux.joinpath("README.md").write_text("not a version\n")

        self.runtime = MagicMock()
        self.runtime.working_dir = self.working_dir
        self.runtime.dry_run = False
        self.runtime.cancel_event = asyncio.Event()

    @patch("hackcd.pipelines.konflux_apply.exectools.cmd_assert_async", new_callable=AsyncMock)
    async def test_apply_all_versions(self, cmd_assert_async: AsyncMock):
        await KonfluxApplyPipeline(self.runtime).run()
        self.assertEqual(
            cmd_assert_async.await_args_list,
            [
                call(["kubectl", "apply", "-R", "-f", str(self.konflux / "1-20")]),
                call(["kubectl", "apply", "-R", "-f", str(self.konflux / "1-21")]),
                call(["kubectl", "apply", "-R", "-f", str(self.konflux / "main")]),
            ],
        )

    @patch("hackcd.pipelines.konflux_apply.exectools.cmd_assert_async", new_callable=AsyncMock)
    async def test_apply_selected_versions_dry_run(self, cmd_assert_async: AsyncMock):
        await KonfluxApplyPipeline(self.runtime, versions=["main", "1-21"], dry_run=True).run()
        self.assertEqual(
            cmd_assert_async.await_args_list,
            [
                call(["kubectl", "apply", "--dry-run=client", "-R", "-f", str(self.konflux / "main")]),
                call(["kubectl", "apply", "--dry-run=client", "-R", "-f", str(self.konflux / "1-21")]),
            ],
        )

    @patch("hackcd.pipelines.konflux_apply.exectools.cmd_assert_async", new_callable=AsyncMock)
    async def test_missing_version(self, cmd_assert_async: AsyncMock):
        with self.assertRaises(FileNotFoundError):
            await KonfluxApplyPipeline(self.runtime, versions=["main", "9-9"]).run()
        cmd_assert_async.assert_not_awaited()

    @patch("hackcd.pipelines.konflux_apply.exectools.cmd_assert_async", new_callable=AsyncMock)
    async def test_first_failure_aborts(self, cmd_assert_async: AsyncMock):
        cmd_assert_async.side_effect = ChildProcessError("kubectl failed")
        with self.assertRaises(ChildProcessError):
            await KonfluxApplyPipeline(self.runtime).run()
        cmd_assert_async.assert_awaited_once()

    @patch("hackcd.pipelines.konflux_apply.exectools.cmd_assert_async", new_callable=AsyncMock)
    async def test_cancelled(self, cmd_assert_async: AsyncMock):
        self.runtime.cancel_event.set()
        with self.assertRaises(asyncio.CancelledError):
            await KonfluxApplyPipeline(self.runtime).run()
        cmd_assert_async.assert_not_awaited()

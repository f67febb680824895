import asyncio
import os
import shlex
import sys
import time
from contextlib import contextmanager
from datetime import datetime
from inspect import getframeinfo, stack
from typing import Dict, List, Optional, Tuple, Union

from hackcommonlib import logutil
from hackcommonlib.telemetry import start_as_current_span_async
from opentelemetry import trace
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

SUCCESS = 0

logger = logutil.get_logger(__name__)
TRACER = trace.get_tracer(__name__)


class ExternalToolError(ChildProcessError):
    """
    Raised when a shelled-out command exits with a non-zero status.
    The captured (combined) output is kept so callers can inspect it.
    """

    def __init__(self, cwd: Optional[str], cmd: List[str], returncode: Optional[int], output: str):
        self.cwd = cwd
        self.cmd = cmd
        self.returncode = returncode
        self.output = output
        super().__init__(f"[{cwd}] failed to run {cmd[0]} {cmd[1:]} (exit code {returncode}):\n{output}")


@contextmanager
def timer(out_method, msg):
    caller = getframeinfo(stack()[2][0])  # Line that called this method
    start_time = datetime.now()
    try:
        yield
    finally:
        time_elapsed = datetime.now() - start_time
        out_method(
            f'Time elapsed (hh:mm:ss.ms) {time_elapsed} in {os.path.basename(caller.filename)}:{caller.lineno} : {msg}'
        )


def _split_cmd(cmd: Union[List[str], str]) -> List[str]:
    if isinstance(cmd, str):
        cmd_list = shlex.split(cmd)
    else:
        cmd_list = [str(c) for c in cmd]
    # Remove any empty tokens from the command list
    return [token for token in cmd_list if token]


def _inject_trace_context(kwargs: Dict):
    # Propagate trace context to subprocess
    carrier = {}
    TraceContextTextMapPropagator().inject(carrier)
    if "traceparent" in carrier:
        env = kwargs.get("env")
        if env is None:
            # Per Popen doc, a None env means "inheriting the current process’ environment".
            # To inject the trace context, we need to copy the current environment.
            env = kwargs["env"] = os.environ.copy()
        env["TRACEPARENT"] = carrier["traceparent"]


def _get_meaningful_span_name(cmd_list: List[str]) -> str:
    """Generate a meaningful span name based on the command being executed."""
    if not cmd_list:
        return "exec.unknown"

    base_cmd = cmd_list[0]
    # git, gh and kubectl are all "<tool> <subcommand> ..."
    if base_cmd in ("git", "gh", "kubectl"):
        for arg in cmd_list[1:]:
            if not arg.startswith("-"):
                return f"{base_cmd}.{arg}"
    return f"exec.{base_cmd}"


@start_as_current_span_async(TRACER, "cmd_gather_async")
async def cmd_gather_async(cmd: Union[List[str], str], check: bool = True, **kwargs) -> Tuple[Optional[int], str, str]:
    """Runs a command asynchronously and returns rc,stdout,stderr as a tuple
    :param cmd <string|list>: A shell command
    :param check: If check is True and the exit code was non-zero, it raises a ChildProcessError
    :param kwargs: Other arguments passing to asyncio.subprocess.create_subprocess_exec
    :return: rc, stdout, stderr
    """
    cmd_list = _split_cmd(cmd)

    span = trace.get_current_span()
    span.update_name(_get_meaningful_span_name(cmd_list))
    span.set_attribute("param.cmd", cmd_list)
    span.set_attribute("command.type", cmd_list[0])

    # capture stdout and stderr if they are not set in kwargs
    if "stdout" not in kwargs:
        kwargs["stdout"] = asyncio.subprocess.PIPE
    if "stderr" not in kwargs:
        kwargs["stderr"] = asyncio.subprocess.PIPE
    _inject_trace_context(kwargs)

    logger.info(f"Executing:cmd_gather_async: {' '.join(cmd_list)}")

    start_time = time.time()
    proc = await asyncio.subprocess.create_subprocess_exec(cmd_list[0], *cmd_list[1:], **kwargs)
    stdout, stderr = await proc.communicate()
    duration_seconds = time.time() - start_time

    stdout = stdout.decode() if stdout else ""
    stderr = stderr.decode() if stderr else ""

    span.set_attribute("result.exit_code", str(proc.returncode))
    span.set_attribute("execution.duration_seconds", duration_seconds)
    if proc.returncode != 0:
        msg = f"Process {cmd_list!r} exited with code {proc.returncode}.\nstdout>>{stdout}<<\nstderr>>{stderr}<<\n"
        span.add_event("command_failed", {"exit_code": proc.returncode, "duration_seconds": duration_seconds})
        if check:
            raise ChildProcessError(msg)
        logger.debug(msg)

    span.set_status(trace.StatusCode.OK)
    return proc.returncode, stdout, stderr


@start_as_current_span_async(TRACER, "cmd_assert_async")
async def cmd_assert_async(cmd: Union[List[str], str], check: bool = True, **kwargs) -> int:
    """Runs a command and optionally raises an exception if the return code of the command indicates failure.
    Output goes wherever the caller points stdout/stderr (the terminal by default).
    :param cmd <string|list>: A shell command
    :param check: If check is True and the exit code was non-zero, it raises a ChildProcessError
    :param kwargs: Other arguments passing to asyncio.subprocess.create_subprocess_exec
    :return: return code of the command
    """
    cmd_list = _split_cmd(cmd)

    span = trace.get_current_span()
    span.update_name(_get_meaningful_span_name(cmd_list))
    span.set_attribute("param.cmd", cmd_list)
    span.set_attribute("command.type", cmd_list[0])
    _inject_trace_context(kwargs)

    logger.info(f"Executing:cmd_assert_async: {' '.join(cmd_list)}")

    start_time = time.time()
    proc = await asyncio.subprocess.create_subprocess_exec(cmd_list[0], *cmd_list[1:], **kwargs)
    returncode = await proc.wait()
    duration_seconds = time.time() - start_time

    span.set_attribute("result.exit_code", str(returncode))
    span.set_attribute("execution.duration_seconds", duration_seconds)
    if returncode != 0:
        msg = f"Process {cmd_list!r} exited with code {returncode}."
        span.add_event("command_failed", {"exit_code": returncode, "duration_seconds": duration_seconds})
        if check:
            raise ChildProcessError(msg)
        logger.warning(msg)

    span.set_status(trace.StatusCode.OK)
    return returncode


@start_as_current_span_async(TRACER, "cmd_combined_async")
async def cmd_combined_async(
    cmd: Union[List[str], str], cwd: Optional[str] = None, env: Optional[Dict[str, str]] = None, echo=sys.stderr
) -> Tuple[int, str]:
    """Runs a command with stderr folded into stdout.
    Every line is echoed to `echo` as soon as it is read, and the whole output is returned as well.
    :param cmd <string|list>: A shell command
    :param cwd: Working directory of the command
    :param env: Environment of the command (inherited when None)
    :param echo: Stream receiving the live output, None to stay quiet
    :return: rc, combined output
    """
    # an argv list runs exactly as given, empty arguments included
    cmd_list = [str(c) for c in cmd] if isinstance(cmd, list) else _split_cmd(cmd)

    span = trace.get_current_span()
    span.update_name(_get_meaningful_span_name(cmd_list))
    span.set_attribute("param.cmd", cmd_list)
    span.set_attribute("command.type", cmd_list[0])
    kwargs = {"env": env} if env is not None else {}
    _inject_trace_context(kwargs)

    logger.info(f"Executing:cmd_combined_async: {' '.join(cmd_list)} [cwd={cwd}]")

    with timer(logger.debug, f"{cmd_list}: Executed:cmd_combined_async"):
        proc = await asyncio.subprocess.create_subprocess_exec(
            cmd_list[0],
            *cmd_list[1:],
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            **kwargs,
        )
        chunks = []
        async for raw_line in proc.stdout:
            line = raw_line.decode()
            chunks.append(line)
            if echo is not None:
                echo.write(line)
                echo.flush()
        returncode = await proc.wait()

    span.set_attribute("result.exit_code", str(returncode))
    span.set_status(trace.StatusCode.OK)
    return returncode, "".join(chunks)


class CommandRunner:
    """
    Runs a named command with arguments in a directory and returns its combined output.
    This is the single seam through which workflows reach git, gh and friends; tests replace it with a fake.
    """

    def __init__(self, cancel_event: Optional[asyncio.Event] = None, env: Optional[Dict[str, str]] = None):
        self.cancel_event = cancel_event
        self.env = env

    async def run(self, cwd: Union[str, os.PathLike], name: str, *args: str) -> str:
        """Run `name args...` in `cwd`.
        :return: combined stdout and stderr
        :raises ExternalToolError: when the command exits with a non-zero status
        :raises asyncio.CancelledError: when cancellation was requested before the command started
        """
        # Commands already running are not interrupted; we only refuse to start new ones.
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise asyncio.CancelledError(f"Cancelled before running {name} {list(args)} in {cwd}")

        cmd = [name, *args]
        try:
            rc, output = await cmd_combined_async(cmd, cwd=str(cwd), env=self.env)
        except OSError as exc:
            raise ExternalToolError(str(cwd), cmd, None, f"{exc}\nIs {name} installed?") from exc
        if rc != SUCCESS:
            raise ExternalToolError(str(cwd), cmd, rc, output)
        return output

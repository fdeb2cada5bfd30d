"""
Runs agent CLIs (claude, codex, gemini) as child processes and turns their stdout
into AgentEvents.

stdout is read line by line. JSON lines are interpreted as structured events
(Claude's ``stream-json`` output and similar shapes), anything else is plain text.
The process is terminated whenever the reader stops early: cancellation, idle
timeout, or the consumer closing the generator.
"""

import asyncio
import json
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Tuple

from promptrelay.agents.base import AgentExecutionError
from promptrelay.core import config
from promptrelay.providers.base import AgentUnavailableError
from promptrelay.services.cancellation import CancellationSignal, race

logger = logging.getLogger(__name__)

INSTALL_HINTS = {
    "claude": "npm install -g @anthropic-ai/claude-code",
    "codex": "npm install -g @openai/codex",
    "gemini": "npm install -g @google/gemini-cli",
}


@dataclass
class AgentEvent:
    kind: str  # "partial" | "result" | "complete" | "error"
    text: Optional[str] = None
    model: Optional[str] = None
    agent_session_id: Optional[str] = None
    error: Optional[str] = None


def _common_paths(binary: str) -> List[Path]:
    # GUI launches often miss the shell PATH
    home = Path.home()
    return [
        home / ".local" / "bin" / binary,
        home / ".npm-global" / "bin" / binary,
        Path("/usr/local/bin") / binary,
        Path("/opt/homebrew/bin") / binary,
    ]


def resolve_binary(binary: str) -> Optional[str]:
    found = shutil.which(binary)
    if found:
        return found
    for candidate in _common_paths(binary):
        if candidate.exists():
            return str(candidate)
    return None


def _text_from_content(content: Any) -> Optional[str]:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = [item.get("text") for item in content if isinstance(item, dict) and isinstance(item.get("text"), str)]
        return "".join(texts) if texts else None
    return None


def _str(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    return value if isinstance(value, str) else None


def parse_json_event(data: Dict[str, Any]) -> AgentEvent:
    event_type = data.get("type")
    model = _str(data, "model")
    session = _str(data, "session_id")

    if event_type in ("assistant", "text", "content_block_delta"):
        message = data.get("message") if isinstance(data.get("message"), dict) else {}
        delta = data.get("delta") if isinstance(data.get("delta"), dict) else {}
        text = (
            _text_from_content(data.get("content"))
            or _text_from_content(message.get("content"))
            or _str(delta, "text")
            or _str(data, "text")
        )
        return AgentEvent("partial", text=text, model=model or _str(message, "model"), agent_session_id=session)

    if event_type in ("result", "message_stop"):
        text = _str(data, "result")
        if data.get("is_error") and text:
            return AgentEvent("error", error=text, agent_session_id=session)
        return AgentEvent("result" if text else "complete", text=text, model=model, agent_session_id=session)

    if event_type == "error":
        err = data.get("error")
        message = _str(err, "message") if isinstance(err, dict) else (err if isinstance(err, str) else None)
        return AgentEvent("error", error=message or "Unknown error")

    if event_type is not None:
        # system/init and other bookkeeping events only carry a session id
        return AgentEvent("partial", text=_str(data, "text"), agent_session_id=session)

    for key in ("text", "content", "message", "result"):
        text = _str(data, key)
        if text:
            return AgentEvent("partial", text=text, model=model)
    return AgentEvent("partial", model=model)


def parse_output_line(line: str) -> Optional[AgentEvent]:
    stripped = line.strip()
    if not stripped:
        return None
    try:
        data = json.loads(stripped)
    except ValueError:
        data = None
    if isinstance(data, dict):
        return parse_json_event(data)
    # plain CLI output keeps its line structure
    return AgentEvent("partial", text=line.rstrip("\r\n") + "\n")


def build_command(
    binary_name: str,
    binary_path: str,
    prompt: str,
    *,
    model: Optional[str] = None,
    resume_session: Optional[str] = None,
    api_key: Optional[str] = None,
    api_key_env: Optional[str] = None,
) -> Tuple[List[str], Dict[str, str]]:
    env = dict(os.environ)
    if binary_name == "claude":
        # a claude CLI started from inside another claude session refuses to run
        env.pop("CLAUDECODE", None)
        env.pop("CLAUDE_CODE_ENTRYPOINT", None)
        argv = [binary_path, "-p", prompt, "--output-format", "stream-json", "--verbose"]
        if resume_session:
            argv += ["--resume", resume_session]
        if model:
            argv += ["--model", model]
    elif binary_name == "codex":
        argv = [binary_path, "--quiet", prompt]
    else:
        argv = [binary_path, "-p", prompt]
    if api_key and api_key_env:
        env[api_key_env] = api_key
    return argv, env


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        proc.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(proc.wait(), timeout=5)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()


async def run_agent_cli(
    argv: List[str],
    *,
    env: Optional[Mapping[str, str]] = None,
    signal: Optional[CancellationSignal] = None,
    idle_timeout: float = 30.0,
    line_limit: Optional[int] = None,
) -> AsyncIterator[AgentEvent]:
    # stream-json puts a whole assistant message on one line
    limit = config.AGENT_LINE_LIMIT if line_limit is None else line_limit
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=dict(env) if env is not None else None,
            limit=limit,
        )
    except OSError as e:
        raise AgentUnavailableError(f"Failed to spawn {argv[0]}: {e}") from e

    if proc.stdout is None or proc.stderr is None:
        await _terminate(proc)
        raise AgentExecutionError(f"No output pipes for {argv[0]}")
    stderr_task = asyncio.ensure_future(proc.stderr.read())
    try:
        while True:
            try:
                raw = await race(asyncio.wait_for(proc.stdout.readline(), idle_timeout), signal)
            except asyncio.TimeoutError:
                raise AgentExecutionError(
                    f"Agent stream timed out after {idle_timeout:g}s, the CLI process may have crashed."
                )
            except (ValueError, asyncio.LimitOverrunError) as e:
                raise AgentExecutionError(f"Agent output line exceeded {limit} bytes: {e}") from e
            if not raw:
                break
            event = parse_output_line(raw.decode("utf-8", errors="replace"))
            if event is not None:
                yield event

        returncode = await proc.wait()
        stderr_text = (await stderr_task).decode("utf-8", errors="replace").strip()
        if returncode != 0:
            logger.warning("%s exited with code %s", argv[0], returncode)
            yield AgentEvent("error", error=stderr_text or f"Process exited with code {returncode}")
    finally:
        await _terminate(proc)
        if not stderr_task.done():
            stderr_task.cancel()
        await asyncio.gather(stderr_task, return_exceptions=True)

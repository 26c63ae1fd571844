"""Pseudo-terminal driver for one interactive smbclient session."""

from __future__ import annotations

import logging
import os
import re
import shlex
import time
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

import pexpect

from sambala.gardener.classifier import INCOMPLETE_OPERATION_MESSAGE, classify_response
from sambala.gardener.models import SessionState

logger = logging.getLogger(__name__)

LINE_TERMINATOR = "\r"
READ_CHUNK_SIZE = 8192
TERMINAL_DIMENSIONS = (200, 1000)
EXIT_COMMAND = "exit"

DEFAULT_CLIENT_COMMAND = "smbclient //{host}/{share} {password} -U {user} -W {domain}"

PROMPT_PATTERN = re.compile(r"smb: [^\r\n]*\\> ?")
_PROMPT_LINE_LIMIT = 4096
_ESCAPE_TAIL = 16
_CONTROL_SEQUENCE = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b[()][0-9A-Za-z]|\x1b[=>]")
_READING_STATES = frozenset({SessionState.STARTING, SessionState.AWAITING})

OutputBuffer = tuple[str, ...]


class ClientCommandError(ValueError):
    """The configured smbclient command template cannot be rendered."""


class Session(Protocol):
    """What the worker pool needs from a session."""

    name: str
    state: SessionState

    def start(self, timeout_seconds: float) -> bool:
        """Spawn the client and wait for the first prompt."""

    def execute(self, payload: str) -> tuple[bool, str]:
        """Run one command line and classify the response."""

    def close(self, grace_seconds: float) -> None:
        """Release the subprocess and its terminal."""


@dataclass(frozen=True, slots=True)
class Transition:
    """Outcome of feeding one output chunk to a reading session."""

    state: SessionState
    buffer: OutputBuffer
    output: str | None = None


def advance(state: SessionState, buffer: OutputBuffer, chunk: str) -> Transition:
    """Append ``chunk`` and detect the prompt that ends a response.

    ``buffer`` holds the already cleaned fragments of the response so far.
    Only the new chunk, plus an escape sequence left unfinished by the
    previous one, is cleaned, and only the last line is matched against the
    prompt. Once the prompt is seen the session is idle again and ``output``
    holds everything printed before it.
    """

    if state not in _READING_STATES:
        raise ValueError(f"Session in state {state.value!r} is not reading output.")

    fragments = list(buffer)
    carry = ""
    if fragments:
        last = fragments[-1]
        cut = last.find("\x1b", max(0, len(last) - _ESCAPE_TAIL))
        if cut != -1:
            carry = last[cut:]
            fragments[-1] = last[:cut]
    fragments.append(strip_control_sequences(carry + chunk))

    line = _last_line(fragments)
    if line is None or PROMPT_PATTERN.fullmatch(line[0]) is None:
        kept = tuple(fragment for fragment in fragments if fragment)
        return Transition(state=state, buffer=kept)

    text = "".join(fragments)
    prompt_line, after_newline = line
    end = len(text) - len(prompt_line) - (1 if after_newline else 0)
    return Transition(state=SessionState.IDLE, buffer=(), output=text[:end])


def _last_line(fragments: list[str]) -> tuple[str, bool] | None:
    """Text after the final newline and whether a newline precedes it.

    ``None`` when that text is too long to be a prompt.
    """

    pieces: list[str] = []
    size = 0
    for fragment in reversed(fragments):
        newline = fragment.rfind("\n")
        pieces.append(fragment[newline + 1 :])
        size += len(pieces[-1])
        if size > _PROMPT_LINE_LIMIT:
            return None
        if newline != -1:
            return "".join(reversed(pieces)), True
    return "".join(reversed(pieces)), False


def strip_control_sequences(text: str) -> str:
    return _CONTROL_SEQUENCE.sub("", text)


def extract_message(output: str, payload: str) -> str:
    """Drop the terminal echo of ``payload`` and surrounding whitespace."""

    text = output.replace("\r\n", "\n").replace("\r", "\n").lstrip()
    if payload and text.startswith(payload):
        text = text[len(payload) :]
    return text.strip()


def handshake_verdict(banner: str, banner_pattern: re.Pattern[str] | None) -> bool:
    if banner_pattern is None:
        return True
    return banner_pattern.search(banner) is not None


def build_client_argv(  # noqa: PLR0913
    command_template: str,
    *,
    host: str,
    share: str,
    user: str,
    password: str,
    domain: str,
) -> list[str]:
    """Render the smbclient command template into an argv list."""

    stripped = command_template.strip()
    if not stripped:
        raise ClientCommandError("smbclient command template is empty.")
    try:
        rendered = stripped.format(
            host=shlex.quote(host),
            share=shlex.quote(share),
            user=shlex.quote(user),
            password=shlex.quote(password),
            domain=shlex.quote(domain),
        )
    except (KeyError, IndexError) as error:
        raise ClientCommandError(
            f"Unsupported command template placeholder: {error}",
        ) from error

    argv = shlex.split(rendered)
    if not argv:
        raise ClientCommandError("smbclient command template rendered empty command.")
    return argv


def redact(argv: Iterable[str], secrets: Iterable[str]) -> str:
    hidden = {secret for secret in secrets if secret}
    return " ".join("***" if part in hidden else shlex.quote(part) for part in argv)


class SessionDriver:
    """One smbclient subprocess on a pseudo-terminal.

    Commands are written one line at a time; the response is everything the
    client prints before it shows the ``smb: \\>`` prompt again.  A driver that
    fails its handshake or loses its subprocess ends in ``FAILED`` and must
    not be reused.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        argv: list[str],
        name: str,
        response_read_timeout_seconds: float = 3.0,
        response_retry_budget: int = 20,
        handshake_banner: str | None = None,
        secrets: tuple[str, ...] = (),
        log: logging.Logger | None = None,
    ) -> None:
        self.name = name
        self.state = SessionState.STARTING
        self.banner = ""
        self._argv = list(argv)
        self._read_timeout = response_read_timeout_seconds
        self._retry_budget = response_retry_budget
        self._banner_pattern = re.compile(handshake_banner) if handshake_banner else None
        self._secrets = secrets
        self._log = log or logger
        self._child: pexpect.spawn | None = None

    def start(self, timeout_seconds: float) -> bool:
        """Spawn smbclient and wait up to ``timeout_seconds`` for its prompt."""

        env = os.environ.copy()
        env["TERM"] = "dumb"
        self._log.debug("Session %s spawning: %s", self.name, redact(self._argv, self._secrets))
        try:
            child = pexpect.spawn(
                self._argv[0],
                self._argv[1:],
                env=env,
                encoding="utf-8",
                codec_errors="replace",
                dimensions=TERMINAL_DIMENSIONS,
                timeout=None,
            )
        except pexpect.ExceptionPexpect as error:
            self._log.error("Session %s could not spawn smbclient: %s", self.name, error)
            self.state = SessionState.FAILED
            return False

        self._child = child
        deadline = time.monotonic() + timeout_seconds
        buffer: OutputBuffer = ()
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._log.warning(
                    "Session %s saw no prompt within %.1fs",
                    self.name,
                    timeout_seconds,
                )
                self.state = SessionState.FAILED
                return False
            try:
                chunk = child.read_nonblocking(READ_CHUNK_SIZE, timeout=remaining)
            except pexpect.TIMEOUT:
                continue
            except pexpect.EOF:
                self._log.warning(
                    "Session %s exited during handshake: %s",
                    self.name,
                    extract_message("".join(buffer), "") or "no output",
                )
                self.state = SessionState.FAILED
                return False

            transition = advance(self.state, buffer, chunk)
            buffer = transition.buffer
            if transition.output is None:
                continue
            self.banner = extract_message(transition.output, "")
            if handshake_verdict(self.banner, self._banner_pattern):
                self.state = SessionState.IDLE
                self._log.debug("Session %s ready: %s", self.name, self.banner)
                return True
            self._log.warning("Session %s rejected banner: %r", self.name, self.banner)
            self.state = SessionState.FAILED
            return False

    def execute(self, payload: str) -> tuple[bool, str]:
        """Send ``payload`` and return the classified ``(success, message)`` pair."""

        child = self._child
        if self.state != SessionState.IDLE or child is None:
            return False, f"session {self.name} is {self.state.value}"

        self._discard_pending_output(child)
        try:
            child.send(payload + LINE_TERMINATOR)
        except OSError as error:
            self._log.error("Session %s lost its terminal: %s", self.name, error)
            self.state = SessionState.FAILED
            return False, f"session {self.name} lost its terminal"
        self.state = SessionState.AWAITING

        buffer: OutputBuffer = ()
        idle_reads = 0
        while idle_reads < self._retry_budget:
            try:
                chunk = child.read_nonblocking(READ_CHUNK_SIZE, timeout=self._read_timeout)
            except pexpect.TIMEOUT:
                idle_reads += 1
                continue
            except pexpect.EOF:
                self._log.error("Session %s exited while running %r", self.name, payload)
                self.state = SessionState.FAILED
                message = extract_message("".join(buffer), payload)
                return False, message or f"session {self.name} exited"

            transition = advance(self.state, buffer, chunk)
            buffer = transition.buffer
            if transition.output is not None:
                self.state = transition.state
                message = extract_message(transition.output, payload)
                return classify_response(payload, message), message

        self._log.warning(
            "Session %s gave up on %r after %d silent reads",
            self.name,
            payload,
            self._retry_budget,
        )
        self.state = SessionState.IDLE
        return False, INCOMPLETE_OPERATION_MESSAGE

    def close(self, grace_seconds: float) -> None:
        """Ask smbclient to exit, then terminate it if it does not."""

        child = self._child
        self._child = None
        self.state = SessionState.CLOSED
        if child is None:
            return
        try:
            if child.isalive():
                self._stop(child, grace_seconds)
        finally:
            try:
                child.close(force=True)
            except pexpect.ExceptionPexpect as error:
                self._log.error("Session %s could not be closed: %s", self.name, error)

    def _stop(self, child: pexpect.spawn, grace_seconds: float) -> None:
        try:
            child.send(EXIT_COMMAND + LINE_TERMINATOR)
            child.expect(pexpect.EOF, timeout=grace_seconds)
        except OSError:
            self._log.debug("Session %s terminal already gone", self.name)
        except pexpect.TIMEOUT:
            self._log.warning(
                "Session %s did not exit within %.1fs; terminating",
                self.name,
                grace_seconds,
            )
            child.terminate(force=True)

    def _discard_pending_output(self, child: pexpect.spawn) -> None:
        """Drop late output from a command that ran out of retries."""

        while True:
            try:
                stale = child.read_nonblocking(READ_CHUNK_SIZE, timeout=0)
            except (pexpect.TIMEOUT, pexpect.EOF):
                return
            self._log.debug("Session %s discarded stale output: %r", self.name, stale)

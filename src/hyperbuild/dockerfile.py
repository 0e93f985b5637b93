"""
Instruction-file (Dockerfile) parsing.

Turns Dockerfile text into an ordered list of build steps grouped into stages.
Only the syntax needed to produce steps is understood: no variable expansion,
no heredocs, no parser directives.
"""
from __future__ import annotations

import json
import logging
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .steps import (
    Add, Arg, BuildStage, BuildStep, Cmd, Copy, Entrypoint, Env, Expose, From,
    Healthcheck, Label, Onbuild, Run, Shell, StopSignal, User, Volume, Workdir,
)

__all__ = ["ParsedDockerfile", "parse_dockerfile", "parse_dockerfile_path", "parse_line"]

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"(\d+)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}


@dataclass
class ParsedDockerfile:
    stages: List[BuildStage]
    args: Dict[str, str] = field(default_factory=dict)

    @property
    def final_stage(self) -> BuildStage:
        if not self.stages:
            raise ValueError("Dockerfile has no FROM instruction")
        return self.stages[-1]


def parse_dockerfile_path(path: str | Path) -> ParsedDockerfile:
    """Read and parse a Dockerfile from disk."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Dockerfile not found: {path}")
    return parse_dockerfile(path.read_text(encoding="utf-8"))


def parse_dockerfile(content: str) -> ParsedDockerfile:
    """
    Parse Dockerfile text.

    ARG instructions before the first FROM are global build args; any other
    instruction there is an error. Each FROM opens a new stage, named by its
    AS alias.

    Raises:
        ValueError: On malformed instructions or missing FROM
    """
    args: Dict[str, str] = {}
    stages: List[BuildStage] = []
    current: Optional[BuildStage] = None

    for line in _logical_lines(content):
        step = parse_line(line)

        if isinstance(step, From):
            current = BuildStage(name=step.alias, base_image=step.image)
            stages.append(current)
            continue

        if isinstance(step, Arg) and step.default is not None:
            args[step.key] = step.default

        if current is None:
            if isinstance(step, Arg):
                continue
            raise ValueError(f"Instruction before first FROM: {line}")
        current.steps.append(step)

    if not stages:
        raise ValueError("Dockerfile has no FROM instruction")

    logger.debug(f"Parsed {len(stages)} stage(s), {sum(len(s.steps) for s in stages)} step(s)")
    return ParsedDockerfile(stages=stages, args=args)


def parse_line(line: str) -> BuildStep:
    """
    Parse one logical instruction line into a build step.

    Unknown instruction keywords become a Run of the whole line.
    """
    line = line.strip()
    if not line:
        raise ValueError("Empty instruction")

    keyword, _, rest = line.partition(" ")
    rest = rest.strip()
    parser = _PARSERS.get(keyword.upper())
    if parser is None:
        logger.debug(f"Unknown instruction {keyword!r}, treating as RUN")
        return Run(command=line)
    return parser(rest)


def _logical_lines(content: str) -> List[str]:
    """Drop blanks and comments, join backslash continuations."""
    lines: List[str] = []
    pending = ""
    for raw in content.splitlines():
        stripped = raw.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.endswith("\\"):
            pending += stripped[:-1].rstrip() + " "
            continue
        lines.append(pending + stripped)
        pending = ""
    if pending.strip():
        lines.append(pending.strip())
    return lines


def _parse_from(rest: str) -> From:
    parts = [p for p in rest.split() if not p.startswith("--platform")]
    if not parts:
        raise ValueError("FROM instruction requires an image")
    alias = None
    if len(parts) >= 3 and parts[1].upper() == "AS":
        alias = parts[2]
    elif len(parts) != 1:
        raise ValueError(f"Malformed FROM instruction: FROM {rest}")
    return From(image=parts[0], alias=alias)


def _command_form(rest: str) -> List[str]:
    """JSON exec form if it parses as a list of strings, shell form otherwise."""
    if rest.startswith("["):
        try:
            parsed = json.loads(rest)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list) and all(isinstance(p, str) for p in parsed):
            return parsed
    return ["/bin/sh", "-c", rest]


def _key_values(rest: str, instruction: str) -> Dict[str, str]:
    """Parse `k=v k2="v 2"` pairs, or the legacy `key value` form."""
    if not rest:
        raise ValueError(f"{instruction} requires key=value format")
    tokens = shlex.split(rest)
    if "=" not in tokens[0]:
        if len(tokens) < 2:
            raise ValueError(f"{instruction} requires key=value format")
        key, _, value = rest.partition(" ")
        return {key: value.strip()}

    values: Dict[str, str] = {}
    for token in tokens:
        key, sep, value = token.partition("=")
        if not sep or not key:
            raise ValueError(f"{instruction} requires key=value format: {token}")
        values[key] = value
    return values


def _flags(rest: str) -> Tuple[Dict[str, str], List[str]]:
    flags: Dict[str, str] = {}
    parts = rest.split()
    while parts and parts[0].startswith("--"):
        name, _, value = parts.pop(0)[2:].partition("=")
        flags[name] = value
    return flags, parts


def _parse_copy(rest: str) -> Copy:
    flags, parts = _flags(rest)
    if len(parts) < 2:
        raise ValueError(f"COPY requires at least one source and a destination: COPY {rest}")
    return Copy(src=parts[:-1], dest=parts[-1], from_stage=flags.get("from"), chown=flags.get("chown"))


def _parse_add(rest: str) -> Add:
    flags, parts = _flags(rest)
    if len(parts) < 2:
        raise ValueError(f"ADD requires at least one source and a destination: ADD {rest}")
    return Add(src=parts[:-1], dest=parts[-1], chown=flags.get("chown"))


def _parse_expose(rest: str) -> Expose:
    ports = []
    for token in rest.split():
        port, _, proto = token.partition("/")
        if not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError(f"Invalid port in EXPOSE: {token}")
        ports.append(f"{int(port)}/{(proto or 'tcp').lower()}")
    if not ports:
        raise ValueError("EXPOSE requires at least one port")
    return Expose(ports=ports)


def _parse_volume(rest: str) -> Volume:
    form = _command_form(rest)
    if form[:2] == ["/bin/sh", "-c"]:
        volumes = [v.strip('"') for v in rest.split()]
    else:
        volumes = form
    return Volume(volumes=volumes)


def _parse_arg(rest: str) -> Arg:
    key, sep, default = rest.partition("=")
    if not key.strip():
        raise ValueError("ARG requires a name")
    return Arg(key=key.strip(), default=default if sep else None)


def _parse_duration(value: str) -> int:
    """Whole seconds from a Docker duration like "30s" or "1m30s"."""
    matches = _DURATION_RE.findall(value)
    if not matches or "".join(n + u for n, u in matches) != value:
        raise ValueError(f"Invalid duration: {value}")
    return int(sum(int(n) * _DURATION_UNITS[u] for n, u in matches))


def _parse_healthcheck(rest: str) -> Healthcheck:
    if rest.upper() == "NONE":
        return Healthcheck()

    flags, parts = _flags(rest)
    if not parts or parts[0].upper() != "CMD":
        raise ValueError(f"HEALTHCHECK requires CMD or NONE: HEALTHCHECK {rest}")
    command = rest.split(None, len(flags) + 1)[-1] if len(parts) > 1 else ""
    cmd = _command_form(command)
    if cmd[:2] == ["/bin/sh", "-c"]:
        cmd = ["CMD-SHELL", command]
    else:
        cmd = ["CMD"] + cmd

    return Healthcheck(
        interval_s=_parse_duration(flags["interval"]) if "interval" in flags else None,
        timeout_s=_parse_duration(flags["timeout"]) if "timeout" in flags else None,
        start_period_s=_parse_duration(flags["start-period"]) if "start-period" in flags else None,
        retries=int(flags["retries"]) if "retries" in flags else None,
        cmd=cmd,
    )


def _parse_shell(rest: str) -> Shell:
    form = _command_form(rest)
    if form[:2] == ["/bin/sh", "-c"]:
        raise ValueError("SHELL requires JSON form")
    return Shell(shell=form)


def _parse_onbuild(rest: str) -> Onbuild:
    keyword = rest.split(" ", 1)[0].upper()
    if keyword in ("ONBUILD", "FROM"):
        raise ValueError(f"{keyword} is not allowed as an ONBUILD trigger")
    return Onbuild(step=parse_line(rest))


def _require(name: str) -> Callable[[str], str]:
    def check(rest: str) -> str:
        if not rest:
            raise ValueError(f"{name} requires an argument")
        return rest
    return check


_PARSERS: Dict[str, Callable[[str], BuildStep]] = {
    "FROM": _parse_from,
    "RUN": lambda rest: Run(command=_require("RUN")(rest)),
    "CMD": lambda rest: Cmd(command=_command_form(_require("CMD")(rest))),
    "LABEL": lambda rest: Label(values=_key_values(rest, "LABEL")),
    "ENV": lambda rest: Env(values=_key_values(rest, "ENV")),
    "COPY": _parse_copy,
    "ADD": _parse_add,
    "WORKDIR": lambda rest: Workdir(path=_require("WORKDIR")(rest)),
    "EXPOSE": _parse_expose,
    "ENTRYPOINT": lambda rest: Entrypoint(command=_command_form(_require("ENTRYPOINT")(rest))),
    "VOLUME": lambda rest: _parse_volume(_require("VOLUME")(rest)),
    "USER": lambda rest: User(user=_require("USER")(rest)),
    "ARG": _parse_arg,
    "ONBUILD": lambda rest: _parse_onbuild(_require("ONBUILD")(rest)),
    "STOPSIGNAL": lambda rest: StopSignal(signal=_require("STOPSIGNAL")(rest)),
    "HEALTHCHECK": lambda rest: _parse_healthcheck(_require("HEALTHCHECK")(rest)),
    "SHELL": lambda rest: _parse_shell(_require("SHELL")(rest)),
}

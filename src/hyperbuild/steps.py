"""
Build steps.

Each instruction kind is its own pydantic model; ``BuildStep`` is the closed
union of all of them, discriminated by the ``kind`` field. Consumers match on
the concrete class instead of dispatching dynamically.
"""
from __future__ import annotations

from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class From(BaseModel):
    kind: Literal["from"] = "from"
    image: str
    alias: Optional[str] = None


class Run(BaseModel):
    kind: Literal["run"] = "run"
    command: str


class Cmd(BaseModel):
    kind: Literal["cmd"] = "cmd"
    command: List[str]


class Label(BaseModel):
    kind: Literal["label"] = "label"
    values: Dict[str, str]


class Env(BaseModel):
    kind: Literal["env"] = "env"
    values: Dict[str, str]


class Copy(BaseModel):
    kind: Literal["copy"] = "copy"
    src: List[str]
    dest: str
    from_stage: Optional[str] = None
    chown: Optional[str] = None


class Add(BaseModel):
    kind: Literal["add"] = "add"
    src: List[str]
    dest: str
    chown: Optional[str] = None


class Workdir(BaseModel):
    kind: Literal["workdir"] = "workdir"
    path: str


class Expose(BaseModel):
    kind: Literal["expose"] = "expose"
    ports: List[str] = Field(..., description="Normalized as <port>/<proto>")


class Entrypoint(BaseModel):
    kind: Literal["entrypoint"] = "entrypoint"
    command: List[str]


class Volume(BaseModel):
    kind: Literal["volume"] = "volume"
    volumes: List[str]


class User(BaseModel):
    kind: Literal["user"] = "user"
    user: str


class Arg(BaseModel):
    kind: Literal["arg"] = "arg"
    key: str
    default: Optional[str] = None


class Onbuild(BaseModel):
    kind: Literal["onbuild"] = "onbuild"
    step: BuildStep


class StopSignal(BaseModel):
    kind: Literal["stopsignal"] = "stopsignal"
    signal: str


class Healthcheck(BaseModel):
    kind: Literal["healthcheck"] = "healthcheck"
    interval_s: Optional[int] = None
    timeout_s: Optional[int] = None
    start_period_s: Optional[int] = None
    retries: Optional[int] = None
    cmd: List[str] = Field(default_factory=list, description="Empty for HEALTHCHECK NONE")


class Shell(BaseModel):
    kind: Literal["shell"] = "shell"
    shell: List[str]


BuildStep = Annotated[
    Union[
        From, Run, Cmd, Label, Env, Copy, Add, Workdir, Expose, Entrypoint,
        Volume, User, Arg, Onbuild, StopSignal, Healthcheck, Shell,
    ],
    Field(discriminator="kind"),
]

Onbuild.model_rebuild()


class BuildStage(BaseModel):
    """Steps following one FROM; ``name`` is the FROM ... AS alias, if any."""
    name: Optional[str] = None
    base_image: str
    steps: List[BuildStep] = Field(default_factory=list)


__all__ = [
    "BuildStep",
    "BuildStage",
    "From",
    "Run",
    "Cmd",
    "Label",
    "Env",
    "Copy",
    "Add",
    "Workdir",
    "Expose",
    "Entrypoint",
    "Volume",
    "User",
    "Arg",
    "Onbuild",
    "StopSignal",
    "Healthcheck",
    "Shell",
]

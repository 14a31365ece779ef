from __future__ import annotations


class SitepipeError(Exception):
    """Base class for build failures."""


class ConfigError(SitepipeError):
    pass


class PipelineOrderError(SitepipeError):
    """A stage requires a context key that no earlier stage provides."""

    def __init__(self, pipeline: str, stage: str, missing: list[str]):
        self.pipeline = pipeline
        self.stage = stage
        self.missing = missing
        keys = ", ".join(missing)
        super().__init__(f"{pipeline}: stage {stage!r} requires {keys} before it is provided")


class BuildError(SitepipeError):
    def __init__(self, message: str, *, pipeline: str = "", stage: str = "", path: str = ""):
        self.pipeline = pipeline
        self.stage = stage
        self.path = path
        super().__init__(message)

    def __str__(self) -> str:
        where = ":".join(part for part in (self.pipeline, self.stage, self.path) if part)
        message = super().__str__()
        return f"[{where}] {message}" if where else message

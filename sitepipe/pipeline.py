"""Ordered stage execution over an in-memory file set.

A pipeline is a list of stages.  Each stage declares the global metadata
keys it reads (``requires``) and writes (``provides``); ordering is checked
when the pipeline is assembled so a stage can never run before the stage
that feeds it.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Iterable

from .config import SiteConfig
from .errors import BuildError, PipelineOrderError
from .files import FileSet, read_files, write_files
from .log import get_logger

logger = get_logger(__name__)


class BuildContext:
    def __init__(self, config: SiteConfig, metadata: dict | None = None):
        self.config = config
        self.metadata: dict[str, Any] = dict(metadata or {})

    def require(self, key: str) -> Any:
        if key not in self.metadata:
            raise BuildError(f"missing build metadata {key!r}")
        return self.metadata[key]

    def set(self, key: str, value: Any) -> None:
        self.metadata[key] = value


class Stage:
    name = "stage"
    requires: tuple[str, ...] = ()
    provides: tuple[str, ...] = ()

    def run(self, files: FileSet, context: BuildContext) -> FileSet:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class Pipeline:
    def __init__(self, name: str, stages: Iterable[Stage], initial: Iterable[str] = ()):
        self.name = name
        self.stages = list(stages)
        self.initial = tuple(initial)
        self.validate()

    def validate(self) -> None:
        available = set(self.initial)
        for stage in self.stages:
            missing = [key for key in stage.requires if key not in available]
            if missing:
                raise PipelineOrderError(self.name, stage.name, missing)
            available.update(stage.provides)

    def run(self, files: FileSet, context: BuildContext) -> FileSet:
        missing = [key for key in self.initial if key not in context.metadata]
        if missing:
            raise BuildError(f"initial metadata missing: {', '.join(missing)}", pipeline=self.name)
        for stage in self.stages:
            start = time.perf_counter()
            try:
                files = stage.run(files, context)
            except BuildError as exc:
                exc.pipeline = exc.pipeline or self.name
                exc.stage = exc.stage or stage.name
                raise
            except Exception as exc:
                raise BuildError(str(exc), pipeline=self.name, stage=stage.name) from exc
            logger.debug(
                "stage.done",
                pipeline=self.name,
                stage=stage.name,
                files=len(files),
                elapsed=round(time.perf_counter() - start, 4),
            )
        return files


def run_pipeline(
    pipeline: Pipeline,
    source: Path,
    patterns: list[str],
    dest: Path,
    config: SiteConfig,
    metadata: dict | None = None,
) -> FileSet:
    start = time.perf_counter()
    context = BuildContext(config, metadata)
    files = pipeline.run(read_files(source, patterns), context)
    write_files(files, dest)
    logger.info(
        "pipeline.done",
        pipeline=pipeline.name,
        files=len(files),
        dest=str(dest),
        elapsed=round(time.perf_counter() - start, 3),
    )
    return files

"""Workers: perform a single task inside its working directory."""

from ..config import Config, WorkerSettings
from ..llm import LLMAdapter
from .base import Worker, component_files, describe_task, pascal_case
from .cli import CliWorker
from .llm import LLMWorker, Operation, OperationKind
from .template import TemplateWorker


def build_worker(config: Config) -> Worker:
    settings: WorkerSettings = config.worker
    if settings.kind == "template":
        return TemplateWorker(
            overwrite=settings.overwrite,
            commit=settings.commit,
            commit_prefix=settings.commit_prefix,
        )
    if settings.kind == "llm":
        return LLMWorker(
            LLMAdapter(**config.model.get_llm_kwargs()),
            commit_prefix=settings.commit_prefix,
            allow_commit=settings.commit,
        )
    if settings.kind == "cli":
        return CliWorker(settings.command)
    raise ValueError(f"Unknown worker kind: {settings.kind!r}")


__all__ = [
    "Worker",
    "component_files",
    "describe_task",
    "pascal_case",
    "CliWorker",
    "LLMWorker",
    "Operation",
    "OperationKind",
    "TemplateWorker",
    "build_worker",
]

"""
Run an operation over several environments (or directories) one at a time.

Items run sequentially: they share the gpg process, the working directory and
the terminal used for prompts. A failing item is recorded and the rest of the
batch continues.
"""

import logging
import typing

import attr
import click

log = logging.getLogger(__name__)


@attr.s(frozen=True, kw_only=True)
class Result:
    success: bool = attr.ib()
    files_processed: int = attr.ib(default=0)
    files_skipped: int = attr.ib(default=0)
    error: typing.Optional[str] = attr.ib(default=None)

    @classmethod
    def ok(cls, files_processed: int = 0, files_skipped: int = 0) -> 'Result':
        return cls(success=True, files_processed=files_processed, files_skipped=files_skipped)

    @classmethod
    def failed(cls, error: str, files_processed: int = 0) -> 'Result':
        return cls(success=False, files_processed=files_processed, error=error)


Operation = typing.Callable[[str], Result]


@attr.s(frozen=True)
class BatchResult:
    name: str = attr.ib()
    result: Result = attr.ib()

    @property
    def success(self) -> bool:
        return self.result.success


@attr.s(frozen=True)
class BatchSummary:
    results: typing.Tuple[BatchResult, ...] = attr.ib(converter=tuple)

    def __iter__(self) -> typing.Iterator[BatchResult]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.results if item.success)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded

    @property
    def total_files_processed(self) -> int:
        return sum(item.result.files_processed for item in self.results)

    @property
    def overall_success(self) -> bool:
        return self.failed == 0


def run_item(name: str, operation: Operation) -> Result:
    try:
        return operation(name)
    except click.ClickException as error:
        log.debug(f"Processing {name} failed", exc_info=True)
        return Result.failed(error.format_message())
    except OSError as error:
        log.debug(f"Processing {name} failed", exc_info=True)
        return Result.failed(str(error))


def run_batch(
        names: typing.Sequence[str],
        operation: Operation,
        reporter=None,
        label: typing.Callable[[str], str] = str) -> BatchSummary:
    """
    Apply an operation to each name in order and collect the results.

    Errors raised by the operation are recorded as failed results, so one
    broken item never stops the rest.
    """
    log.info(f"Processing {len(names)} items")
    results = []
    for name in names:
        if reporter is not None:
            reporter.subheader(f"Processing {label(name)}")

        result = run_item(name, operation)
        if reporter is not None and not result.success:
            reporter.error(f"Failed to process {label(name)}: {result.error}")

        results.append(BatchResult(name, result))
    log.info(f"Processed {len(results)} items")
    return BatchSummary(results)

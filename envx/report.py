import pathlib
import typing

import attr
import click

from .batch import BatchSummary


def env(name: str) -> str:
    """Style an environment name."""
    return click.style(name, fg='magenta')


def path(value: typing.Union[str, pathlib.Path]) -> str:
    """Style a path, which should already be relative."""
    return click.style(str(value), fg='cyan')


def plural(count: int, singular: str, multiple: str) -> str:
    return f"{count} {singular if count == 1 else multiple}"


@attr.s
class Reporter:
    """
    Writes progress for the user.

    Quiet reporters drop everything except errors.
    """
    quiet: bool = attr.ib(default=False)

    def echo(self, message: str = '', **styles) -> None:
        if not self.quiet:
            click.secho(message, **styles)

    def info(self, message: str) -> None:
        self.echo(f"{click.style('ℹ', fg='blue')} {message}")

    def success(self, message: str) -> None:
        self.echo(f"{click.style('✓', fg='green')} {message}")

    def warning(self, message: str) -> None:
        self.echo(f"{click.style('⚠', fg='yellow')} {message}")

    def error(self, message: str) -> None:
        click.echo(f"{click.style('✗', fg='red')} {message}", err=True)

    def bullet(self, message: str, **styles) -> None:
        self.echo(f"  • {message}", **styles)

    def header(self, title: str) -> None:
        self.echo()
        self.echo(title, fg='cyan', bold=True)
        self.echo('=' * len(title), fg='cyan')

    def subheader(self, title: str) -> None:
        self.echo()
        self.echo(title, bold=True)
        self.echo('-' * len(click.unstyle(title)))

    def table(
            self,
            headers: typing.Sequence[str],
            rows: typing.Sequence[typing.Sequence[str]]) -> None:
        widths = [
            max(len(click.unstyle(cell)) for cell in column)
            for column in zip(headers, *rows)]

        def line(cells: typing.Sequence[str]) -> str:
            return ' | '.join(
                cell + ' ' * (width - len(click.unstyle(cell)))
                for cell, width in zip(cells, widths))

        self.echo(line(headers), bold=True)
        self.echo('-|-'.join('-' * width for width in widths))
        for row in rows:
            self.echo(line(row))

    def summary(
            self,
            summary: BatchSummary,
            verb: str,
            noun: str = 'environment',
            nouns: str = 'environments') -> None:
        self.header('Overall Summary')
        for item in summary:
            if item.success:
                detail = plural(item.result.files_processed, 'file', 'files')
                if item.result.files_skipped:
                    detail += f", {item.result.files_skipped} unchanged"
                self.echo(f"{env(item.name)}: {click.style('✓ Success', fg='green')} ({detail})")
            else:
                self.error(f"{env(item.name)}: Failed - {item.result.error}")

        self.echo()
        if summary.succeeded:
            self.success(
                f"Total: {verb} {plural(summary.total_files_processed, 'file', 'files')} "
                f"in {plural(summary.succeeded, noun, nouns)}")
        if summary.failed:
            self.error(
                f"Total: {summary.failed} of {plural(summary.total, noun, nouns)} failed")

#!/usr/bin/env -S uv run --script

# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "click",
#     "rich",
# ]
# ///

import os
import re
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePath
from typing import List, Optional, Protocol, Tuple

import click
from click.core import ParameterSource
from rich.console import Console
from rich.markup import escape

DEFAULT_INPUT_PATTERN = "(.*)"

NAME_TOKEN = "%(name)"
EXT_TOKEN = "%(ext)"
COUNTER_PATTERN = re.compile(r"%\(counter(,[0-9])?\)")


class ConfigurationError(Exception):
    """Raised for invalid or missing command line options."""


@dataclass(frozen=True)
class Configuration:
    directory: Path
    output_template: str
    input_pattern: re.Pattern = re.compile(DEFAULT_INPUT_PATTERN)
    sort: bool = False
    confirm_each: bool = False
    verbose: bool = True
    dry_run: bool = False


@dataclass(frozen=True)
class FileEntry:
    """A discovered file name, without its directory."""

    name: str

    def _split(self) -> Tuple[str, str]:
        stem, dot, extension = self.name.rpartition(".")
        # A leading dot marks a hidden file, not an extension
        if not dot or not stem:
            return self.name, ""
        return stem, extension

    @property
    def stem(self) -> str:
        return self._split()[0]

    @property
    def extension(self) -> str:
        return self._split()[1]


@dataclass(frozen=True)
class RenameContext:
    stem: str
    extension: str
    index: int

    @classmethod
    def from_entry(cls, entry: FileEntry, index: int) -> "RenameContext":
        return cls(stem=entry.stem, extension=entry.extension, index=index)


class ConflictAction(Enum):
    OVERWRITE = "o"
    RENAME = "r"
    IGNORE = "i"
    STOP = "s"
    INVALID = ""

    @classmethod
    def from_input(cls, answer: str) -> "ConflictAction":
        """Map a user answer to an action using its first letter, case-insensitively."""
        letter = answer.strip()[:1].lower()
        for action in cls:
            if action is not cls.INVALID and action.value == letter:
                return action
        return cls.INVALID


class Outcome(Enum):
    PROCEED = "proceed"
    SKIP = "skip"
    STOP = "stop"


@dataclass(frozen=True)
class Resolution:
    outcome: Outcome
    path: Optional[Path] = None

    @classmethod
    def proceed(cls, path: Path) -> "Resolution":
        return cls(Outcome.PROCEED, path)

    @classmethod
    def stop(cls) -> "Resolution":
        return cls(Outcome.STOP)


@dataclass
class RenameResult:
    renamed: List[Tuple[str, str]] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    stopped: bool = False

    def summary(self) -> str:
        return f"Renamed {len(self.renamed)} file(s), skipped {len(self.skipped)}"


class Prompter(Protocol):
    """Interactive decisions needed while renaming."""

    def choose_conflict_action(self, name: str) -> ConflictAction: ...

    def ask_new_name(self) -> str: ...

    def confirm_rename(self, old_name: str, new_name: str) -> bool: ...


class ConsolePrompter:
    """Prompter that asks on the terminal through click."""

    def choose_conflict_action(self, name: str) -> ConflictAction:
        click.echo(f'File "{name}" already exists.')
        answer = click.prompt(
            "Action: [O]verwrite, [R]ename, [I]gnore, [S]top", prompt_suffix=" >> "
        )
        action = ConflictAction.from_input(answer)
        if action is ConflictAction.STOP:
            click.echo("Stopping processing.")
        elif action is ConflictAction.INVALID:
            click.echo(f'Invalid action "{answer.strip()}"; stopping processing.')
        return action

    def ask_new_name(self) -> str:
        while True:
            new_name = click.prompt("Enter new name (without path)").strip()
            if new_name and PurePath(new_name).name == new_name:
                return new_name
            click.echo("The new name must be a plain file name.")

    def confirm_rename(self, old_name: str, new_name: str) -> bool:
        while True:
            click.echo(f'Rename "{old_name}" to "{new_name}"?')
            answer = click.prompt("Action: [Y]es, [N]o", prompt_suffix=" >> ")
            letter = answer.strip()[:1].lower()
            if letter in ("y", "n"):
                return letter == "y"


def format_counter(index: int, width_group: Optional[str]) -> str:
    """Render the counter, zero-padded to a minimum width when one is given."""
    if width_group:
        # The group includes the leading comma, e.g. ",3"
        return str(index).zfill(int(width_group[1:]))
    return str(index)


def expand_template(template: str, context: RenameContext) -> str:
    """
    Build an output name from a template.

    Tokens are replaced in a fixed order: all %(name), then all %(ext),
    then each %(counter) / %(counter,N) from the left until none remain.
    Text produced by one pass is seen by the later passes, but is not
    re-scanned for the token that produced it.
    """
    out_name = template.replace(NAME_TOKEN, context.stem)
    out_name = out_name.replace(EXT_TOKEN, context.extension)

    while match := COUNTER_PATTERN.search(out_name):
        number = format_counter(context.index, match.group(1))
        out_name = out_name[: match.start()] + number + out_name[match.end() :]

    return out_name


def discover_files(
    directory: Path, input_pattern: re.Pattern, sort: bool = False
) -> List[FileEntry]:
    """List regular files in directory whose whole name matches input_pattern."""
    entries = [
        FileEntry(f.name)
        for f in directory.iterdir()
        if f.is_file() and input_pattern.fullmatch(f.name)
    ]

    if sort:
        entries.sort(key=lambda entry: entry.name)

    return entries


def resolve_conflict(candidate: Path, prompter: Prompter) -> Resolution:
    """
    Ask the user what to do while the candidate path is already taken.

    Ignore checks the same path again, so it keeps prompting until the user
    picks another action.
    """
    while candidate.exists():
        action = prompter.choose_conflict_action(candidate.name)

        if action is ConflictAction.IGNORE:
            continue
        elif action is ConflictAction.RENAME:
            candidate = candidate.parent / prompter.ask_new_name()
        elif action is ConflictAction.OVERWRITE:
            os.remove(candidate)
        else:
            return Resolution.stop()

    return Resolution.proceed(candidate)


def perform_nameshape(config: Configuration, prompter: Prompter) -> RenameResult:
    """
    Rename every matching file in config.directory.

    Stops early when the conflict resolver says so. OSError from the
    filesystem is not handled here, so one failed rename ends the batch.
    """
    result = RenameResult()
    entries = discover_files(config.directory, config.input_pattern, config.sort)

    for index, entry in enumerate(entries):
        context = RenameContext.from_entry(entry, index)
        out_name = expand_template(config.output_template, context)

        in_path = config.directory / entry.name
        out_path = config.directory / out_name

        if config.dry_run:
            note = " (already exists)" if out_path.exists() else ""
            click.echo(f'Would rename: "{entry.name}" to "{out_name}"{note}')
            continue

        resolution = resolve_conflict(out_path, prompter)
        if resolution.outcome is Outcome.STOP:
            result.stopped = True
            break
        if resolution.outcome is Outcome.SKIP:
            result.skipped.append(entry.name)
            continue

        out_path = resolution.path

        # Ask for confirmation if it was requested
        if config.confirm_each and not prompter.confirm_rename(
            entry.name, out_path.name
        ):
            result.skipped.append(entry.name)
            continue

        if config.verbose:
            click.echo(f'Renaming "{entry.name}" to "{out_path.name}"')

        os.rename(in_path, out_path)
        result.renamed.append((entry.name, out_path.name))

    return result


def build_configuration(
    directory: str,
    input_regex: Optional[str],
    output: Optional[str],
    sort: bool = False,
    confirm: bool = False,
    quiet: bool = False,
    dry_run: bool = False,
) -> Tuple[Optional[Configuration], Optional[ConfigurationError]]:
    """Validate raw option values. Returns (configuration, None) or (None, error)."""
    target = Path(directory)
    if not target.is_dir():
        return None, ConfigurationError(f"{directory} is not a valid directory")

    try:
        pattern = re.compile(
            input_regex if input_regex is not None else DEFAULT_INPUT_PATTERN
        )
    except re.error as e:
        return None, ConfigurationError(
            f"Invalid regular expression for input: {e}"
        )

    if not output:
        return None, ConfigurationError("Missing parameter: --output")

    config = Configuration(
        directory=target,
        output_template=output,
        input_pattern=pattern,
        sort=sort,
        confirm_each=confirm,
        verbose=not quiet,
        dry_run=dry_run,
    )
    return config, None


@click.command()
@click.option("--sort", "-s", is_flag=True, help="Sort files before renaming")
@click.option(
    "--confirm",
    "-c",
    is_flag=True,
    help="Prompt for confirmation before each rename operation",
)
@click.option("--quiet", "-q", is_flag=True, help="Do not print progress messages")
@click.option(
    "--directory",
    "-d",
    default=".",
    help="The directory in which to find and rename files (default: current directory)",
)
@click.option(
    "--input",
    "-i",
    "input_regex",
    default=None,
    help="Regular expression the whole file name must match (default: match all)",
)
@click.option(
    "--output", "-o", default=None, help="Output file name template, see below"
)
@click.option(
    "--dry-run",
    "-n",
    is_flag=True,
    help="Preview changes without actually renaming files",
)
@click.pass_context
def nameshape(
    ctx: click.Context,
    sort: bool,
    confirm: bool,
    quiet: bool,
    directory: str,
    input_regex: Optional[str],
    output: Optional[str],
    dry_run: bool,
) -> None:
    """
    Rename the files of a directory from an output name template.

    The output template is a plain string in which the following
    replacements are made:

    \b
      %(name)       Stem of the original file name ("test.txt" -> "test")
      %(ext)        Extension of the original file name ("test.txt" -> "txt")
      %(counter)    Running counter, plain
      %(counter,N)  Running counter, zero-padded to N digits

    Examples:

    \b
        ./nameshape.py -o "photo_%(counter,3).%(ext)" --sort
        ./nameshape.py -i ".*\\.jpeg" -o "%(name).jpg" -d ~/Pictures
    """
    if all(
        ctx.get_parameter_source(param.name) is ParameterSource.DEFAULT
        for param in ctx.command.params
    ):
        click.echo(ctx.get_help())
        return

    config, error = build_configuration(
        directory, input_regex, output, sort, confirm, quiet, dry_run
    )
    if error is not None:
        click.echo(f"Error: {error}", err=True)
        sys.exit(1)

    try:
        result = perform_nameshape(config, ConsolePrompter())
    except OSError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if config.verbose and not config.dry_run:
        console = Console(soft_wrap=True, highlight=False)
        console.print(f"[bold green]{escape(result.summary())}[/bold green]")


if __name__ == "__main__":
    nameshape()

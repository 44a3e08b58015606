#!/usr/bin/env -S uv run --script

# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "click",
# ]
# ///

import re
import stat
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import click

DEFAULT_PATHS = ("./",)

# Names accepted after "$" in a replacement template
TEMPLATE_NAME = re.compile(r"\w+")


class BrenameError(Exception):
    """Base class for errors reported by brename."""


class CompileError(BrenameError):
    pass


class NotFoundError(BrenameError):
    def __init__(self, path):
        super().__init__(f"Not Exist: {path}")
        self.path = path


class ReadError(BrenameError):
    def __init__(self, path, reason=None):
        message = f"ReadDir Error: {path}"
        if reason is not None:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.path = path
        self.reason = reason


def _template_name(template: str, start: int):
    """Return (name, end) for the reference starting at template[start], or None."""
    if template.startswith("{", start):
        close = template.find("}", start + 1)
        if close == -1:
            return None
        name = template[start + 1 : close]
        if not TEMPLATE_NAME.fullmatch(name):
            return None
        return name, close + 1

    match = TEMPLATE_NAME.match(template, start)
    if not match:
        return None
    return match.group(), match.end()


def parse_template(template: str) -> list[tuple[str, int | str | None]]:
    """
    Split a replacement template into (literal, group) parts.

    Groups are written $1, ${1}, $name or ${name}; $$ is a literal dollar
    sign and a "$" that does not start a valid reference is kept as is.
    """
    parts = []
    literal = []
    i = 0
    while i < len(template):
        char = template[i]
        if char != "$":
            literal.append(char)
            i += 1
            continue

        if template.startswith("$$", i):
            literal.append("$")
            i += 2
            continue

        reference = _template_name(template, i + 1)
        if reference is None:
            literal.append("$")
            i += 1
            continue

        name, i = reference
        if literal:
            parts.append(("".join(literal), None))
            literal = []
        parts.append(("", int(name) if name.isascii() and name.isdigit() else name))

    if literal:
        parts.append(("".join(literal), None))
    return parts


def _group_text(match: re.Match, group: int | str) -> str:
    try:
        return match.group(group) or ""
    except IndexError:
        # Unknown groups expand to nothing
        return ""


@dataclass(frozen=True)
class Pattern:
    regex: re.Pattern
    replacement: str
    parts: tuple

    @classmethod
    def compile(cls, source: str, replacement: str) -> "Pattern":
        """Compile a search expression and its replacement template."""
        try:
            regex = re.compile(source)
        except re.error as e:
            raise CompileError(f"Bad regular expression: {e}") from e
        return cls(regex, replacement, tuple(parse_template(replacement)))

    def matches(self, name: str) -> bool:
        return self.regex.search(name) is not None

    def substitute(self, name: str) -> str:
        """Replace every match, ignoring empty matches right after another match."""
        pieces = []
        position = 0
        previous_end = None
        for match in self.regex.finditer(name):
            start, end = match.span()
            if start == end == previous_end:
                continue
            pieces.append(name[position:start])
            pieces.append(self._expand(match))
            position = previous_end = end
        pieces.append(name[position:])
        return "".join(pieces)

    def _expand(self, match: re.Match) -> str:
        return "".join(
            literal if group is None else _group_text(match, group)
            for literal, group in self.parts
        )


class Status(Enum):
    RENAMED = "renamed"
    SKIPPED_NO_MATCH = "skipped-no-match"
    SKIPPED_NO_CHANGE = "skipped-no-change"
    FAILED = "failed"


@dataclass(frozen=True)
class RenameOutcome:
    status: Status
    path: Path
    new_name: str | None = None
    error: OSError | None = None

    @property
    def renamed(self) -> bool:
        return self.status is Status.RENAMED


@dataclass(frozen=True)
class Options:
    pattern: Pattern
    recursive: bool = True
    rename_directories: bool = True
    verbose: bool = False


def rename(path, pattern: Pattern) -> RenameOutcome:
    """Rename a single entry if its name matches the pattern."""
    path = Path(path)
    name = path.name
    if not pattern.matches(name):
        return RenameOutcome(Status.SKIPPED_NO_MATCH, path)

    new_name = pattern.substitute(name)
    if new_name == name:
        return RenameOutcome(Status.SKIPPED_NO_CHANGE, path, new_name)

    try:
        path.rename(path.parent / new_name)
    except OSError as e:
        return RenameOutcome(Status.FAILED, path, new_name, e)
    return RenameOutcome(Status.RENAMED, path, new_name)


def report(outcome: RenameOutcome, verbose: bool = False) -> None:
    if outcome.status is Status.FAILED:
        click.echo(
            f"Rename error: [{outcome.path.name} -> {outcome.new_name}]: {outcome.error}",
            err=True,
        )
    elif outcome.renamed and verbose:
        click.echo(f"Renamed: {outcome.path} → {outcome.new_name}")


def _apply(path: Path, options: Options) -> int:
    outcome = rename(path, options.pattern)
    report(outcome, options.verbose)
    return 1 if outcome.renamed else 0


def walk(path, options: Options) -> int:
    """
    Rename everything under PATH that matches, returning the number renamed.

    Subdirectories are walked before they are renamed themselves so the
    paths of their children stay valid. Failures below the top level are
    reported and skipped; only an unusable PATH raises.
    """
    path = Path(path)
    try:
        mode = path.stat().st_mode
    except FileNotFoundError as e:
        raise NotFoundError(path) from e
    except OSError as e:
        raise ReadError(path, e.strerror) from e

    if not stat.S_ISDIR(mode):
        return _apply(path, options)

    # Snapshot the listing before renaming anything in it
    try:
        entries = sorted(path.iterdir())
    except FileNotFoundError as e:
        raise NotFoundError(path) from e
    except OSError as e:
        raise ReadError(path, e.strerror) from e

    renamed = 0
    for entry in entries:
        if entry.is_dir() and not entry.is_symlink():
            if options.recursive:
                try:
                    renamed += walk(entry, options)
                except BrenameError as e:
                    click.echo(e, err=True)
                    continue
            if options.rename_directories:
                renamed += _apply(entry, options)
        else:
            renamed += _apply(entry, options)
    return renamed


@click.command(context_settings={"auto_envvar_prefix": "BRENAME"})
@click.argument("paths", nargs=-1, type=click.Path())
@click.option(
    "--search",
    "-s",
    "source",
    default="",
    help="Regular expression matched against file and directory names",
)
@click.option(
    "--replace",
    "-r",
    "replacement",
    default="",
    help="Replacement; reference groups with $1, ${1} or ${name}",
)
@click.option(
    "--recursive/--no-recursive",
    "-R/-N",
    default=True,
    show_default=True,
    help="Recursively rename inside subdirectories (-N to stay at the top level)",
)
@click.option(
    "--rename-dirs/--no-rename-dirs",
    "-D/-F",
    "rename_directories",
    default=True,
    show_default=True,
    help="Rename directories as well as files (-F for files only)",
)
@click.option("--verbose", "-v", is_flag=True, help="Print every rename")
@click.pass_context
def brename(
    ctx: click.Context,
    paths: tuple[str, ...],
    source: str,
    replacement: str,
    recursive: bool,
    rename_directories: bool,
    verbose: bool,
) -> None:
    """
    Recursively batch rename files and directories by regular expression.

    Every name matching SEARCH has its matches replaced with REPLACE.
    PATHS default to the current directory.

    Examples:
        ./brename.py -s 'foo(\\d)' -r 'bar$1'       # foo1.txt -> bar1.txt
        ./brename.py -s '\\.txt$' -r '.md' notes/   # change extensions
        ./brename.py -s ' ' -r '_' -F              # files only
    """
    if not source and not replacement:
        click.echo(ctx.get_help())
        ctx.exit(2)

    try:
        pattern = Pattern.compile(source, replacement)
    except CompileError as e:
        click.echo("Bad regular expression!", err=True)
        click.echo(e, err=True)
        ctx.exit(1)

    options = Options(pattern, recursive, rename_directories, verbose)
    for path in paths or DEFAULT_PATHS:
        click.echo(f"{path}:")
        try:
            renamed = walk(path, options)
        except BrenameError as e:
            click.echo(f"Error: {e}", err=True)
            continue
        click.echo(f"{renamed} files renamed.\n")


if __name__ == "__main__":
    brename()

"""Shell history usage reader (zsh, bash, fish).

Parses history files into timestamped commands, extracts the programs
each command invokes and emits one evidence record per package and day
with the number of invocations.
"""

import logging
import os
import re
import shlex
from collections import Counter
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path

from macsweep.models.package import Package, PackageKey
from macsweep.models.usage import SignalKind, UsageEvidence
from macsweep.usage.base import UsageReader

logger = logging.getLogger(__name__)

# zsh extended history: ": 1700000000:0;command"
_ZSH_ENTRY_RE = re.compile(r"^: (\d+):\d+;(.*)$")
_SEGMENT_SPLIT_RE = re.compile(r"\|\||&&|[|;&]")
_ASSIGNMENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=")
_PREFIX_COMMANDS = frozenset({"sudo", "env", "nohup", "time", "exec", "command", "xargs"})


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """A single command from a shell history file."""

    command: str
    timestamp: datetime | None = None


def _read_lines(path: Path) -> list[str]:
    # History files are not guaranteed to be valid UTF-8 (zsh metafies bytes)
    return path.read_text(encoding="utf-8", errors="replace").splitlines()


def _from_epoch(value: str) -> datetime | None:
    try:
        return datetime.fromtimestamp(int(value))
    except (ValueError, OverflowError, OSError):
        return None


def parse_zsh_history(path: Path) -> list[HistoryEntry]:
    """Parse a zsh history file.

    Lines not starting a new entry continue the previous (multiline) command.
    """
    entries: list[HistoryEntry] = []
    command: str | None = None
    timestamp: datetime | None = None

    for line in _read_lines(path):
        match = _ZSH_ENTRY_RE.match(line)
        if match:
            if command is not None:
                entries.append(HistoryEntry(command.strip(), timestamp))
            timestamp = _from_epoch(match.group(1))
            command = match.group(2)
        elif command is not None:
            command += "\n" + line
        elif line.strip():
            # Plain zsh history without EXTENDED_HISTORY
            entries.append(HistoryEntry(line.strip()))

    if command is not None:
        entries.append(HistoryEntry(command.strip(), timestamp))
    return entries


def parse_bash_history(path: Path) -> list[HistoryEntry]:
    """Parse a bash history file.

    With HISTTIMEFORMAT set, bash writes ``#<epoch>`` lines before commands.
    """
    entries: list[HistoryEntry] = []
    timestamp: datetime | None = None

    for line in _read_lines(path):
        if line.startswith("#") and line[1:].strip().isdigit():
            timestamp = _from_epoch(line[1:].strip())
            continue
        if line.strip():
            entries.append(HistoryEntry(line.strip(), timestamp))
            timestamp = None
    return entries


def parse_fish_history(path: Path) -> list[HistoryEntry]:
    """Parse a fish history file.

    Format::

        - cmd: ls -la
          when: 1700000000
    """
    entries: list[HistoryEntry] = []
    command: str | None = None

    for line in _read_lines(path):
        stripped = line.strip()
        if stripped.startswith("- cmd:"):
            if command is not None:
                entries.append(HistoryEntry(command))
            command = stripped.removeprefix("- cmd:").strip()
        elif stripped.startswith("when:") and command is not None:
            when = _from_epoch(stripped.removeprefix("when:").strip())
            entries.append(HistoryEntry(command, when))
            command = None

    if command is not None:
        entries.append(HistoryEntry(command))
    return entries


def invoked_programs(command: str) -> set[str]:
    """Return the lowercased program names a command line invokes.

    Every segment of a pipe or chain is inspected; ``sudo``, ``env`` and
    variable assignments in front of the program are skipped, and paths are
    reduced to their base name.

    Example:
        >>> sorted(invoked_programs("sudo FOO=1 /opt/homebrew/bin/rg x | jq ."))
        ['jq', 'rg']
    """
    programs: set[str] = set()
    for segment in _SEGMENT_SPLIT_RE.split(command):
        try:
            words = shlex.split(segment, posix=True)
        except ValueError:
            words = segment.split()
        for word in words:
            if word in _PREFIX_COMMANDS or _ASSIGNMENT_RE.match(word) or word.startswith("-"):
                continue
            programs.add(os.path.basename(word).lower())
            break
    return programs


def default_history_paths() -> list[Path]:
    """Return the history files of the supported shells."""
    home = Path.home()
    paths = [home / ".zsh_history", home / ".bash_history"]
    histfile = os.environ.get("HISTFILE")
    if histfile and Path(histfile) not in paths:
        paths.append(Path(histfile))
    data_home = os.environ.get("XDG_DATA_HOME")
    fish_dir = Path(data_home) if data_home else home / ".local" / "share"
    paths.append(fish_dir / "fish" / "fish_history")
    return paths


def parse_history_file(path: Path) -> list[HistoryEntry]:
    """Parse a history file, picking the parser from its name."""
    name = path.name
    if "fish" in name:
        return parse_fish_history(path)
    if "zsh" in name:
        return parse_zsh_history(path)
    return parse_bash_history(path)


def _program_names(package: Package) -> set[str]:
    """Names under which a package may appear in shell history."""
    names = {package.name.lower()}
    if package.install_path:
        path = Path(package.install_path)
        if path.suffix not in (".app", ".dist-info"):
            names.add(path.name.lower())
    return names


class ShellHistoryReader(UsageReader):
    """Usage reader for zsh, bash and fish history files.

    Attributes:
        paths: History files to read.
    """

    def __init__(self, paths: Sequence[Path] | None = None) -> None:
        """Initialize the reader.

        Args:
            paths: History files to read (default: the usual shell locations).
        """
        self._paths = list(paths) if paths is not None else default_history_paths()

    @property
    def kind(self) -> SignalKind:
        """Return SHELL_HISTORY as the signal kind."""
        return SignalKind.SHELL_HISTORY

    @property
    def paths(self) -> list[Path]:
        return self._paths

    def is_available(self) -> bool:
        """Check if any history file exists."""
        return any(path.is_file() for path in self._paths)

    def entries(self) -> Iterator[HistoryEntry]:
        """Yield entries of every readable history file."""
        for path in self._paths:
            if not path.is_file():
                continue
            try:
                parsed = parse_history_file(path)
            except OSError as e:
                logger.warning("Cannot read history file %s: %s", path, e)
                continue
            logger.debug("Parsed %d entries from %s", len(parsed), path)
            yield from parsed

    def read(self, packages: Sequence[Package]) -> Iterator[UsageEvidence]:
        """Yield one evidence record per package and day it was invoked.

        Entries without a timestamp carry no date and are ignored.
        """
        return self.match(self.entries(), packages)

    def match(
        self,
        entries: Iterable[HistoryEntry],
        packages: Sequence[Package],
    ) -> Iterator[UsageEvidence]:
        """Match history entries against package program names."""
        by_program: dict[str, list[PackageKey]] = {}
        for package in packages:
            for name in _program_names(package):
                by_program.setdefault(name, []).append(package.key)

        invocations: Counter[tuple[PackageKey, date]] = Counter()
        for entry in entries:
            if entry.timestamp is None:
                continue
            day = entry.timestamp.date()
            for program in invoked_programs(entry.command):
                for key in by_program.get(program, ()):
                    invocations[(key, day)] += 1

        for (key, day), count in sorted(invocations.items()):
            yield UsageEvidence(
                name=key.name,
                source=key.source,
                kind=SignalKind.SHELL_HISTORY,
                event_date=day,
                detail={"invocations": count},
            )

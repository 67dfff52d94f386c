"""Unit tests for size and age formatting helpers."""

from datetime import date
from pathlib import Path

import pytest

from macsweep.utils.size import calculate_size, format_days_ago, format_size

TODAY = date(2025, 6, 1)


class TestCalculateSize:
    """Tests for calculate_size."""

    def test_single_file(self, tmp_path: Path) -> None:
        """A file's size is its byte length."""
        path = tmp_path / "bin"
        path.write_bytes(b"x" * 100)

        assert calculate_size(path) == 100

    def test_directory_tree(self, tmp_path: Path) -> None:
        """Directory sizes sum every nested file."""
        bundle = tmp_path / "Example.app" / "Contents"
        bundle.mkdir(parents=True)
        (bundle / "Info.plist").write_bytes(b"a" * 10)
        (bundle / "MacOS").mkdir()
        (bundle / "MacOS" / "Example").write_bytes(b"b" * 30)

        assert calculate_size(tmp_path / "Example.app") == 40

    def test_symlinks_not_followed(self, tmp_path: Path) -> None:
        """Symlinked files are not counted."""
        target = tmp_path / "target"
        target.write_bytes(b"x" * 50)
        tree = tmp_path / "tree"
        tree.mkdir()
        (tree / "link").symlink_to(target)

        assert calculate_size(tree) == 0
        assert calculate_size(tree / "link") == 0

    def test_missing_path(self, tmp_path: Path) -> None:
        """A missing path has no size."""
        assert calculate_size(tmp_path / "missing") == 0


class TestFormatSize:
    """Tests for format_size."""

    @pytest.mark.parametrize(
        ("size", "expected"),
        [
            (0, "0.0 B"),
            (512, "512.0 B"),
            (1536, "1.5 KB"),
            (5 * 1024 * 1024, "5.0 MB"),
            (3 * 1024**4, "3.0 TB"),
        ],
    )
    def test_units(self, size: int, expected: str) -> None:
        """Sizes are scaled to the largest fitting unit."""
        assert format_size(size) == expected


class TestFormatDaysAgo:
    """Tests for format_days_ago."""

    @pytest.mark.parametrize(
        ("day", "expected"),
        [
            (None, "never"),
            (date(2025, 6, 1), "today"),
            (date(2025, 6, 3), "today"),
            (date(2025, 5, 31), "yesterday"),
            (date(2025, 5, 1), "31 days ago"),
            (date(2025, 1, 1), "5 months ago"),
            (date(2021, 6, 1), "4 years ago"),
        ],
    )
    def test_descriptions(self, day: date | None, expected: str) -> None:
        """Ages are described in days, months or years."""
        assert format_days_ago(day, TODAY) == expected

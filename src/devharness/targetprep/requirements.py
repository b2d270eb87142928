"""Parse a build's firmware requirements metadata.

The metadata is line oriented text shipped inside a device image:

    require board=crespo|crespo4g
    require version-bootloader=I9020XXJK1
    require version-baseband=I9020XXJK8

Blank lines and ``#`` comments are skipped, unknown keys are
ignored, and any other line is malformed.
"""

from __future__ import annotations

import re
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

BOARD_KEY = "board"
BOOTLOADER_VERSION_KEY = "version-bootloader"
BASEBAND_VERSION_KEY = "version-baseband"

_REQUIRE_RE = re.compile(r"^require\s+([\w.-]+)\s*=\s*(.*)$")


@dataclass(frozen=True)
class FirmwareRequirements:
    """What a build needs from the device it is flashed onto.

    An empty ``required_boards`` means the metadata placed no board
    restriction; callers that need one must treat that as an error.
    When a key lists several ``|`` separated values, the first
    version is the one that gets flashed.
    """

    required_boards: frozenset[str] = field(default_factory=frozenset)
    bootloader_version: str | None = None
    baseband_version: str | None = None

    def accepts_board(self, board: str | None) -> bool:
        return board is not None and board in self.required_boards


def parse(text: str) -> FirmwareRequirements:
    """Parse requirements metadata text.

    Args:
        text: Full metadata file content

    Returns:
        FirmwareRequirements built from the require lines

    Raises:
        ValueError: If a line is malformed or a value is empty
    """
    values: dict[str, list[str]] = {}

    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        match = _REQUIRE_RE.match(line)
        if not match:
            raise ValueError(
                f"Malformed requirement at line {lineno}: {raw_line!r}"
            )

        key, raw_value = match.group(1), match.group(2)
        alternatives = [v.strip() for v in raw_value.split("|")]
        if not any(alternatives):
            raise ValueError(
                f"Requirement '{key}' at line {lineno} has no value"
            )
        values.setdefault(key, []).extend(v for v in alternatives if v)

    return FirmwareRequirements(
        required_boards=frozenset(values.get(BOARD_KEY, [])),
        bootloader_version=_first(values.get(BOOTLOADER_VERSION_KEY)),
        baseband_version=_first(values.get(BASEBAND_VERSION_KEY)),
    )


def load(image_file: Path, member_name: str) -> FirmwareRequirements:
    """Read and parse the requirements file inside a device image zip.

    Args:
        image_file: Device image archive
        member_name: Name of the metadata file inside the archive

    Raises:
        ValueError: If the archive or its metadata is unreadable or
            malformed
    """
    try:
        with zipfile.ZipFile(image_file) as archive:
            data = archive.read(member_name)
    except (OSError, zipfile.BadZipFile, KeyError) as e:
        raise ValueError(
            f"Could not read {member_name} from {image_file}: {e}"
        ) from e

    return parse(data.decode("utf-8", errors="replace"))


def _first(items: list[str] | None) -> str | None:
    return items[0] if items else None

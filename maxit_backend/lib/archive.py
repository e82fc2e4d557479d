"""Reading task archives.

A task archive is a zip or gzipped tarball holding two directories:

    input/1.in  input/2.in  ...
    output/1.out output/2.out ...

The directories may be wrapped in a single top-level folder. Test cases are
numbered from 1 without gaps, and every input has a matching output.
"""

import io
import tarfile
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import PurePosixPath

from maxit_backend.constants import MAX_TASK_ARCHIVE_UNPACKED_SIZE
from maxit_backend.errors import ErrorCode, ServiceError

INPUT_DIR = "input"
OUTPUT_DIR = "output"
INPUT_EXT = ".in"
OUTPUT_EXT = ".out"

_IGNORED_PREFIXES = ("__MACOSX", ".")


@dataclass
class TestCaseFiles:
    __test__ = False

    order: int
    input_data: bytes
    output_data: bytes


def _check_unpacked_size(sizes: list[int]):
    if sum(sizes) > MAX_TASK_ARCHIVE_UNPACKED_SIZE:
        raise ServiceError(
            ErrorCode.FILE_TOO_LARGE,
            f"Unpacked archive exceeds {MAX_TASK_ARCHIVE_UNPACKED_SIZE} bytes",
        )


def _read_zip(data: bytes) -> dict[PurePosixPath, bytes]:
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            files = [info for info in archive.infolist() if not info.is_dir()]
            _check_unpacked_size([info.file_size for info in files])
            return {PurePosixPath(info.filename): archive.read(info) for info in files}
    except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error) as zip_err:
        raise ServiceError(
            ErrorCode.INVALID_ARCHIVE, f"Corrupted zip archive: {zip_err}"
        ) from zip_err


def _read_members(data: bytes) -> dict[PurePosixPath, bytes]:
    if zipfile.is_zipfile(io.BytesIO(data)):
        return _read_zip(data)

    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:*") as archive:
            files = [member for member in archive.getmembers() if member.isfile()]
            _check_unpacked_size([member.size for member in files])
            members: dict[PurePosixPath, bytes] = {}
            for member in files:
                extracted = archive.extractfile(member)
                if extracted is not None:
                    members[PurePosixPath(member.name)] = extracted.read()
            return members
    except (tarfile.TarError, EOFError) as tar_err:
        raise ServiceError(
            ErrorCode.INVALID_ARCHIVE, "Archive must be a zip or tar.gz file"
        ) from tar_err


def _strip_root(members: dict[PurePosixPath, bytes]) -> dict[PurePosixPath, bytes]:
    members = {
        path: content
        for path, content in members.items()
        if not any(part.startswith(_IGNORED_PREFIXES) for part in path.parts)
    }
    roots = {path.parts[0] for path in members if len(path.parts) > 1}
    top_level_files = [path for path in members if len(path.parts) == 1]
    if len(roots) == 1 and not top_level_files and roots.isdisjoint({INPUT_DIR, OUTPUT_DIR}):
        return {PurePosixPath(*path.parts[1:]): content for path, content in members.items()}
    return members


def _collect(
    members: dict[PurePosixPath, bytes], directory: str, extension: str
) -> dict[int, bytes]:
    files: dict[int, bytes] = {}
    for path, content in members.items():
        if path.parts[0] != directory:
            continue
        if len(path.parts) != 2:
            raise ServiceError(
                ErrorCode.INVALID_ARCHIVE, f"'{directory}' must not contain subdirectories"
            )
        if path.suffix != extension or not path.stem.isdigit():
            raise ServiceError(
                ErrorCode.INVALID_INPUT_OUTPUT,
                f"Expected files named <number>{extension} in '{directory}', got '{path.name}'",
            )
        files[int(path.stem)] = content

    if not files:
        raise ServiceError(ErrorCode.INVALID_ARCHIVE, f"Archive has no '{directory}' directory")
    return files


def parse_task_archive(data: bytes) -> list[TestCaseFiles]:
    members = _strip_root(_read_members(data))

    inputs = _collect(members, INPUT_DIR, INPUT_EXT)
    outputs = _collect(members, OUTPUT_DIR, OUTPUT_EXT)

    if len(inputs) != len(outputs):
        raise ServiceError(
            ErrorCode.INVALID_INPUT_OUTPUT,
            f"Found {len(inputs)} input files but {len(outputs)} output files",
        )
    if sorted(inputs) != list(range(1, len(inputs) + 1)):
        raise ServiceError(
            ErrorCode.INVALID_INPUT_OUTPUT, "Test cases must be numbered from 1 without gaps"
        )
    if inputs.keys() != outputs.keys():
        raise ServiceError(ErrorCode.INVALID_INPUT_OUTPUT, "Every input needs a matching output")

    return [
        TestCaseFiles(order=order, input_data=inputs[order], output_data=outputs[order])
        for order in sorted(inputs)
    ]

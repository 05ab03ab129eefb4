"""Baseline store — the trusted ``digest:path`` list checks compare against.

Each line of the baseline file is ``<digestHex>:<filePath>``. The digest ends
at the first colon; everything after it, further colons included, is the path.
"""

import os
import tempfile
from collections.abc import Iterable, Mapping

from ..errors import MalformedBaselineLineError, MissingFileError
from ..utils.logging import get_logger
from .digest import DEFAULT_ALGORITHM, HashAlgorithm, digest_hex

logger = get_logger("engine.baseline")

SEPARATOR = ":"


def parse_baseline_line(line: str, line_number: int = 1) -> tuple[str, str]:
    """Split one baseline line into ``(path, digest_hex)``."""
    digest, sep, path = line.partition(SEPARATOR)
    if not sep:
        raise MalformedBaselineLineError(line_number, line)
    return path, digest


def format_baseline_line(path: str, digest: str) -> str:
    return f"{digest}{SEPARATOR}{path}\n"


def load_baseline(baseline_file: str) -> dict[str, str]:
    """Load the baseline file into an insertion-ordered ``path -> digest`` dict.

    Duplicate paths keep the last digest seen. An empty file gives ``{}``.
    """
    entries: dict[str, str] = {}
    with open(baseline_file, "r", encoding="utf-8", newline="") as f:
        for line_number, raw in enumerate(f, start=1):
            path, digest = parse_baseline_line(raw.rstrip("\r\n"), line_number)
            if path in entries:
                logger.warning("baseline_duplicate_entry", path=path, line=line_number)
            entries[path] = digest

    logger.info("baseline_loaded", path=baseline_file, entries=len(entries))
    return entries


def save_baseline(baseline_file: str, entries: Mapping[str, str]) -> None:
    """Replace the baseline file with ``entries``, in their iteration order.

    The content goes to a temporary file in the same directory which is then
    moved over the target, so readers never see a half-written baseline.
    """
    directory = os.path.dirname(os.path.abspath(baseline_file))
    fd, tmp_path = tempfile.mkstemp(prefix=".baseline-", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            for path, digest in entries.items():
                f.write(format_baseline_line(path, digest))
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, baseline_file)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise

    logger.info("baseline_saved", path=baseline_file, entries=len(entries))


def build_baseline(
    paths: Iterable[str],
    algorithm: HashAlgorithm | str = DEFAULT_ALGORITHM,
) -> dict[str, str]:
    """Hash every configured file, in order, and return the new baseline.

    Files that no longer exist are skipped with a warning; any other problem
    (non-canonical path, unreadable file) aborts the hashing pass.
    """
    algorithm = HashAlgorithm.parse(algorithm)
    entries: dict[str, str] = {}
    for path in paths:
        try:
            entries[path] = digest_hex(path, algorithm)
        except MissingFileError:
            logger.warning("baseline_file_not_found", path=path)
            continue
        logger.debug("baseline_file_hashed", path=path, digest=entries[path])

    logger.info("baseline_built", algorithm=algorithm.name, files=len(entries))
    return entries

"""
Archive decoders: compressed repository snapshots to (path, bytes) entries.

Both decoders strip the synthetic root folder GitHub wraps archive contents
in ("owner-repo-sha/") and skip pure directory members, which are created
implicitly when files are written.
"""

import gzip
import io
import tarfile
import zipfile
import zlib
from typing import List

import structlog

from ..models.workspace import ArchiveEntry
from ..utils.error_handling import ArchiveDecodeError, InvalidPathError
from ..utils.path_utils import strip_first_segment, workspace_path

logger = structlog.get_logger(__name__)


def _relative_member_path(name: str) -> str:
    """Stripped, normalized member path, or "" when the member produces no file."""
    rel = strip_first_segment(name)
    if not rel or rel.endswith("/"):
        return ""
    try:
        return workspace_path(rel)
    except InvalidPathError:
        logger.warning("Skipping archive member with unsafe path", member=name)
        return ""


def gunzip_or_raw(data: bytes) -> bytes:
    """Gunzip ``data``; input that is not gzip is assumed to be raw tar already."""
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error):
        logger.debug("Payload is not gzip, treating as raw tar", size=len(data))
        return data


def decode_tarball(data: bytes) -> List[ArchiveEntry]:
    """Decode a gzip+tar (or raw tar) archive."""
    tar_bytes = gunzip_or_raw(data)
    entries: List[ArchiveEntry] = []

    try:
        with tarfile.open(fileobj=io.BytesIO(tar_bytes), mode="r:") as archive:
            for member in archive:
                if not member.name or not (member.isfile() or member.issym()):
                    continue
                rel = _relative_member_path(member.name)
                if not rel:
                    continue
                if member.issym():
                    # Same bytes as the git blob of a symlink: its target
                    entries.append(ArchiveEntry(path=rel, content=member.linkname.encode("utf-8")))
                    continue
                extracted = archive.extractfile(member)
                if extracted is None:
                    continue
                entries.append(ArchiveEntry(path=rel, content=extracted.read()))
    except tarfile.TarError as e:
        raise ArchiveDecodeError(str(e), "tar") from e

    return entries


def decode_zipball(data: bytes) -> List[ArchiveEntry]:
    """Decode a zip archive."""
    entries: List[ArchiveEntry] = []

    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                rel = _relative_member_path(info.filename)
                if not rel:
                    continue
                entries.append(ArchiveEntry(path=rel, content=archive.read(info)))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, NotImplementedError, RuntimeError) as e:
        raise ArchiveDecodeError(str(e), "zip") from e

    return entries

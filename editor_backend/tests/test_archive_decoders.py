"""
Tests for tar and zip archive decoding.
"""

import pytest

from editor_backend.services.archive_decoders import decode_tarball, decode_zipball, gunzip_or_raw
from editor_backend.utils.error_handling import ArchiveDecodeError

from .fakes import make_tarball, make_zipball


def as_dict(entries):
    return {entry.path: entry.content for entry in entries}


class TestTarball:

    def test_strips_root_folder(self, sample_files):
        entries = decode_tarball(make_tarball(sample_files))
        assert as_dict(entries) == sample_files

    def test_raw_tar_without_gzip(self, sample_files):
        entries = decode_tarball(make_tarball(sample_files, gzip=False))
        assert as_dict(entries) == sample_files

    def test_root_marker_produces_no_file(self):
        assert decode_tarball(make_tarball({})) == []

    def test_symlink_content_is_target(self):
        entries = decode_tarball(make_tarball({"a.txt": b"a"}, symlinks={"link": "a.txt"}))
        assert as_dict(entries) == {"a.txt": b"a", "link": b"a.txt"}

    def test_traversal_members_are_skipped(self):
        entries = decode_tarball(make_tarball({"ok.txt": b"1", "../evil.txt": b"2"}))
        assert as_dict(entries) == {"ok.txt": b"1"}

    def test_metadata_members_are_skipped(self):
        entries = decode_tarball(make_tarball({"ok.txt": b"1", ".git/hooks/post-checkout": b"#!/bin/sh"}))
        assert as_dict(entries) == {"ok.txt": b"1"}

    def test_corrupt_archive(self):
        with pytest.raises(ArchiveDecodeError) as exc_info:
            decode_tarball(b"definitely not an archive" * 40)
        assert exc_info.value.archive_format == "tar"
        assert "corrupt tar archive" in exc_info.value.user_message("octo/demo")

    def test_gunzip_falls_back_to_raw(self):
        assert gunzip_or_raw(b"plain bytes") == b"plain bytes"


class TestZipball:

    def test_strips_root_folder(self, sample_files):
        entries = decode_zipball(make_zipball(sample_files))
        assert as_dict(entries) == sample_files

    def test_root_marker_produces_no_file(self):
        assert decode_zipball(make_zipball({})) == []

    def test_corrupt_archive(self):
        with pytest.raises(ArchiveDecodeError) as exc_info:
            decode_zipball(b"PK\x03\x04 broken")
        assert exc_info.value.archive_format == "zip"

    def test_unsupported_compression_method(self):
        data = bytearray(make_zipball({"a.txt": b"a"}))
        # Method 99 (AES) in every local and central directory header
        for signature, offset in ((b"PK\x03\x04", 8), (b"PK\x01\x02", 10)):
            start = data.find(signature)
            while start != -1:
                data[start + offset:start + offset + 2] = (99).to_bytes(2, "little")
                start = data.find(signature, start + 4)

        with pytest.raises(ArchiveDecodeError) as exc_info:
            decode_zipball(bytes(data))
        assert "corrupt zip archive" in exc_info.value.user_message("octo/demo")

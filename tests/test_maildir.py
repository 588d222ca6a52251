"""Tests for reading message headers from mail directories."""

import os
import time
from unittest.mock import patch

import pytest

from muttalias.errors import MailStoreError
from muttalias.integrations.maildir import iter_message_paths, iter_messages, read_headers


class TestIterMessagePaths:
    def test_plain_directory(self, tmp_path, write_message):
        write_message(tmp_path / "2", "b@example.com")
        write_message(tmp_path / "1", "a@example.com")
        (tmp_path / ".hidden").write_text("x")
        (tmp_path / "subdir").mkdir()
        assert [p.name for p in iter_message_paths(tmp_path)] == ["1", "2"]

    def test_maildir_uses_cur_and_new(self, tmp_path, write_message):
        write_message(tmp_path / "cur" / "m1:2,S", "a@example.com")
        write_message(tmp_path / "new" / "m2", "b@example.com")
        (tmp_path / "tmp").mkdir()
        write_message(tmp_path / "tmp" / "m3", "c@example.com")
        assert [p.name for p in iter_message_paths(tmp_path)] == ["m1:2,S", "m2"]

    def test_max_age_prefilter(self, tmp_path, write_message):
        now = time.time()
        old = write_message(tmp_path / "old", "a@example.com")
        write_message(tmp_path / "recent", "b@example.com")
        os.utime(old, (now - 20 * 86400, now - 20 * 86400))
        assert [p.name for p in iter_message_paths(tmp_path, 10, now=now)] == ["recent"]
        assert len(list(iter_message_paths(tmp_path, 0, now=now))) == 2

    def test_missing_directory(self, tmp_path):
        with pytest.raises(MailStoreError, match="does not exist"):
            list(iter_message_paths(tmp_path / "nope"))


class TestReadHeaders:
    def test_to_and_date(self, tmp_path, write_message):
        path = write_message(tmp_path / "m", "Jane <jane@example.com>")
        headers = read_headers(path)
        assert headers.to == "Jane <jane@example.com>"
        assert headers.date == "Tue, 15 Oct 2024 14:30:00 +0200"
        assert headers.path == str(path)

    def test_folded_header_unfolded(self, tmp_path, write_message):
        path = write_message(
            tmp_path / "m", "Jane <jane@example.com>,\n\tBob <bob@example.com>"
        )
        assert read_headers(path).to == "Jane <jane@example.com>,\tBob <bob@example.com>"

    def test_crlf_line_endings(self, tmp_path):
        path = tmp_path / "m"
        path.write_bytes(
            b"To: Jane <jane@example.com>,\r\n Bob <bob@example.com>\r\n"
            b"Date: Tue, 15 Oct 2024 14:30:00 +0200\r\n\r\nBody\r\n"
        )
        headers = read_headers(path)
        assert headers.to == "Jane <jane@example.com>, Bob <bob@example.com>"
        assert headers.date == "Tue, 15 Oct 2024 14:30:00 +0200"

    def test_raw_utf8_header(self, tmp_path, write_message):
        path = write_message(tmp_path / "m", "Jürgen Doe <j@example.com>")
        assert read_headers(path).to == "Jürgen Doe <j@example.com>"

    def test_raw_latin1_header(self, tmp_path, write_message):
        path = write_message(tmp_path / "m", "J\xfcrgen Doe <j@example.com>".encode("latin-1"))
        assert read_headers(path).to == "Jürgen Doe <j@example.com>"

    def test_missing_headers(self, tmp_path, write_message):
        path = write_message(tmp_path / "m", None, date=None)
        headers = read_headers(path)
        assert headers.to == ""
        assert headers.date == ""

    def test_multiple_header_names_joined(self, tmp_path, write_message):
        path = write_message(
            tmp_path / "m", "a@example.com", extra=b"Cc: b@example.com\n"
        )
        assert read_headers(path, ("To", "Cc")).to == "a@example.com, b@example.com"


class TestIterMessages:
    def test_unreadable_message_skipped(self, tmp_path, write_message):
        write_message(tmp_path / "a", "a@example.com")
        write_message(tmp_path / "b", "b@example.com")
        original_open = type(tmp_path).open

        def _open(self, *args, **kwargs):
            if self.name == "a":
                raise PermissionError("denied")
            return original_open(self, *args, **kwargs)

        with patch.object(type(tmp_path), "open", _open):
            found = [h.to for h in iter_messages(tmp_path)]
        assert found == ["b@example.com"]

"""Tests for the message codec."""

import base64
import os

import pytest

from hubshell import protocol
from hubshell.errors import ProtocolError

# =============================================================================
# Decoding
# =============================================================================


class TestDecodeOutput:
    """Command output is passed through verbatim."""

    def test_command_output(self):
        msg = protocol.decode_message("Command output: /home/student\n")
        assert msg == {"type": "output", "text": "Command output: /home/student"}

    def test_execution_error(self):
        msg = protocol.decode_message("Error executing command: not found  ")
        assert msg["type"] == "output"
        assert msg["text"] == "Error executing command: not found"

    def test_multiline_output_kept_whole(self):
        msg = protocol.decode_message("Command output: a\nb\nc\n")
        assert msg["text"] == "Command output: a\nb\nc"


class TestDecodeFileContent:
    """FILE_CONTENT carries exactly a name and a base64 payload."""

    def test_valid_payload(self):
        payload = base64.b64encode(b"hello").decode()
        msg = protocol.decode_message(f"FILE_CONTENT:notes.txt:{payload}\n")
        assert msg == {"type": "file_content", "name": "notes.txt", "data": b"hello"}

    def test_empty_file(self):
        msg = protocol.decode_message("FILE_CONTENT:empty.bin:")
        assert msg["data"] == b""

    def test_missing_field_rejected(self):
        with pytest.raises(ProtocolError):
            protocol.decode_message("FILE_CONTENT:onlyonefield")

    def test_extra_field_rejected(self):
        with pytest.raises(ProtocolError):
            protocol.decode_message("FILE_CONTENT:C:\\x.txt:aGVsbG8=")

    def test_missing_name_rejected(self):
        with pytest.raises(ProtocolError):
            protocol.decode_message("FILE_CONTENT::aGVsbG8=")

    def test_invalid_base64_rejected(self):
        with pytest.raises(ProtocolError):
            protocol.decode_message("FILE_CONTENT:x.txt:not*base64!")


class TestDecodeUploadRequest:
    def test_path_trimmed(self):
        msg = protocol.decode_message("UPLOAD_FILE:  report.txt \n")
        assert msg == {"type": "upload_request", "path": "report.txt"}

    def test_empty_path_rejected(self):
        with pytest.raises(ProtocolError):
            protocol.decode_message("UPLOAD_FILE:   ")


class TestDecodeUnknown:
    def test_unknown_text(self):
        msg = protocol.decode_message("hello there")
        assert msg == {"type": "unknown", "text": "hello there"}

    def test_tag_without_separator_is_unknown(self):
        assert protocol.decode_message("FILE_CONTENT")["type"] == "unknown"


# =============================================================================
# Encoding
# =============================================================================


class TestEncode:
    def test_shell_command(self):
        assert protocol.encode_shell_command("ls -la") == b"SHELL_COMMAND:ls -la"

    def test_download_request(self):
        assert protocol.encode_download_request("notes.txt") == b"DOWNLOAD_FILE:notes.txt"

    def test_file_content_uses_base_name(self):
        encoded = protocol.encode_file_content("/tmp/dir/report.txt", b"abc")
        assert encoded == b"FILE_CONTENT:report.txt:YWJj"

    def test_file_content_rejects_colon_in_name(self):
        with pytest.raises(ProtocolError):
            protocol.encode_file_content("/tmp/a:b.txt", b"abc")

    def test_read_error(self):
        assert protocol.encode_read_error("gone") == b"Error reading file: gone"

    def test_file_content_round_trip_binary(self):
        data = bytes(range(256)) + os.urandom(4096)
        encoded = protocol.encode_file_content("blob.bin", data).decode("utf-8")
        msg = protocol.decode_message(encoded)
        assert msg["name"] == "blob.bin"
        assert msg["data"] == data


# =============================================================================
# Splitting received text
# =============================================================================


class TestSplitMessages:
    """Each tagged line starts a message; untagged lines extend the previous one."""

    def test_single_message(self):
        assert protocol.split_messages("Command output: ok") == ["Command output: ok"]

    def test_multiline_output_stays_whole(self):
        text = "Command output: a\nb\nc\n"
        assert protocol.split_messages(text) == [text]

    def test_tagged_lines_split(self):
        text = "Command output: done\nUPLOAD_FILE:report.txt\n"
        assert protocol.split_messages(text) == [
            "Command output: done\n",
            "UPLOAD_FILE:report.txt\n",
        ]

    def test_back_to_back_file_contents(self):
        text = "FILE_CONTENT:a.txt:YQ==\nFILE_CONTENT:b.txt:Yg==\n"
        messages = protocol.split_messages(text)
        assert [protocol.decode_message(m)["name"] for m in messages] == ["a.txt", "b.txt"]

    def test_output_after_untagged_text(self):
        messages = protocol.split_messages("banner\nmore\nError executing command: boom")
        assert messages == ["banner\nmore\n", "Error executing command: boom"]

    def test_tag_inside_a_line_does_not_split(self):
        text = "Command output: echo UPLOAD_FILE:x\n"
        assert protocol.split_messages(text) == [text]

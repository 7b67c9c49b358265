"""Tests for dicom_preview/pipeline.py."""

import base64
import json
import os
from pathlib import Path

import pytest

from dicom_preview.attributes import Leaf, Sequence
from dicom_preview.errors import (
    DecodingError,
    DecodingIssue,
    FileError,
    MalformedValueTag,
    ParsingError,
)
from dicom_preview.pipeline import (
    decode_payload,
    decode_preview_images,
    parse,
    resolve_source,
    validate_source,
)

JPEG = b"\xff\xd8\xff\xe0frame"


# ---------------------------------------------------------------------------
# Source handling
# ---------------------------------------------------------------------------

class TestResolveSource:
    def test_plain_path(self):
        assert resolve_source("/tmp/scan.dcm") == "/tmp/scan.dcm"

    def test_path_object(self, tmp_path):
        assert resolve_source(tmp_path / "scan.dcm") == str(tmp_path / "scan.dcm")

    def test_file_url(self, source_file):
        assert resolve_source(source_file.as_uri()) == str(source_file)

    def test_file_url_with_escapes(self):
        assert resolve_source("file:///tmp/my%20scan.dcm") == "/tmp/my scan.dcm"

    def test_remote_url_rejected(self):
        with pytest.raises(FileError) as info:
            resolve_source("https://example.org/scan.dcm")
        assert info.value.message == "URL is not a file URL"

    def test_remote_file_host_rejected(self):
        with pytest.raises(FileError):
            resolve_source("file://server/share/scan.dcm")

    def test_relative_name_with_colon(self):
        assert resolve_source("scan:1.dcm") == "scan:1.dcm"

    def test_existing_file_with_colon(self, tmp_path, monkeypatch, fake_parser, make_payload):
        (tmp_path / "scan:1.dcm").write_bytes(b"\0" * 132)
        monkeypatch.chdir(tmp_path)
        parser = fake_parser.returning(make_payload())
        parse("scan:1.dcm", parser=parser)
        assert parser.calls == ["scan:1.dcm"]


class TestValidateSource:
    def test_existing_file(self, source_file):
        validate_source(str(source_file))

    def test_missing_file(self, tmp_path):
        missing = tmp_path / "nope.dcm"
        with pytest.raises(FileError) as info:
            validate_source(str(missing))
        assert info.value.message == f"File does not exist at path: {missing}"

    def test_directory(self, tmp_path):
        with pytest.raises(FileError) as info:
            validate_source(str(tmp_path))
        assert "Not a regular file" in info.value.message

    @pytest.mark.skipif(os.name != "posix" or os.geteuid() == 0, reason="needs POSIX permissions as non-root")
    def test_unreadable_file(self, source_file):
        source_file.chmod(0)
        try:
            with pytest.raises(FileError) as info:
                validate_source(str(source_file))
            assert "not readable" in info.value.message
        finally:
            source_file.chmod(0o644)


# ---------------------------------------------------------------------------
# Payload decoding
# ---------------------------------------------------------------------------

class TestDecodePreviewImages:
    def test_absent_list(self):
        assert decode_preview_images(None) == []

    def test_invalid_base64_is_dropped(self):
        valid = base64.b64encode(JPEG).decode("ascii")
        assert decode_preview_images([valid, "not-base64!!"]) == [JPEG]

    def test_empty_string_is_dropped(self):
        assert decode_preview_images([""]) == []

    def test_order_preserved(self):
        blobs = [b"\xff\xd8\xff1", b"\xff\xd8\xff2"]
        encoded = [base64.b64encode(b).decode("ascii") for b in blobs]
        assert decode_preview_images(encoded) == blobs

    def test_non_string_entry_is_structural(self):
        with pytest.raises(DecodingError) as info:
            decode_preview_images([42])
        assert info.value.path == "preview_images[0]"


class TestDecodePayload:
    def test_invalid_json(self):
        with pytest.raises(DecodingError) as info:
            decode_payload("{not json")
        assert info.value.issue is DecodingIssue.CORRUPTED
        assert info.value.message.startswith("Invalid JSON data")

    def test_deeply_nested_json(self):
        with pytest.raises(DecodingError) as info:
            decode_payload("[" * 100000)
        assert info.value.issue is DecodingIssue.CORRUPTED

    def test_missing_attributes(self):
        with pytest.raises(DecodingError) as info:
            decode_payload('{"debug_info": {}}')
        assert info.value.issue is DecodingIssue.MISSING_KEY


def _nested_payload(make_payload, levels: int) -> str:
    """Payload text holding one sequence chain *levels* deep."""
    opening = "".join(
        f'{{"depth": {depth}, "tag": "(0040,A730)", "name": "ContentSequence", '
        f'"vr": "SQ", "value": {{"type": "Sequence", "content": ['
        for depth in range(levels)
    )
    leaf = (
        f'{{"depth": {levels}, "tag": "(0040,A160)", "name": "TextValue", '
        f'"vr": "UT", "value": {{"type": "String", "content": "bottom"}}}}'
    )
    chain = opening + leaf + "]}}" * levels
    return json.dumps(make_payload(["NESTED"])).replace('"NESTED"', chain)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class TestParse:
    def test_success(self, source_file, fake_parser, make_payload):
        parser = fake_parser.returning(make_payload())
        result = parse(str(source_file), parser=parser)

        assert len(result.attributes) == 1
        attr = result.attributes[0]
        assert (attr.tag, attr.name, attr.vr) == ("(0010,0010)", "PatientName", "PN")
        assert attr.value == Leaf("Doe^John")
        assert result.preview_frames == []
        assert not result.has_preview
        assert parser.calls == [str(source_file)]

    def test_nested_sequence(self, source_file, fake_parser, make_payload):
        child = {"depth": 1, "tag": "(0008,1155)", "name": "ReferencedSOPInstanceUID",
                 "vr": "UI", "value": {"type": "String", "content": "1.2.3"}}
        seq = {"depth": 0, "tag": "(0008,1140)", "name": "ReferencedImageSequence",
               "vr": "SQ", "value": {"type": "Sequence", "content": [child]}}
        result = parse(source_file, parser=fake_parser.returning(make_payload([seq])))
        assert isinstance(result.attributes[0].value, Sequence)
        assert result.attributes[0].value.items[0].depth == 1

    def test_preview_frames(self, source_file, fake_parser, make_payload):
        valid = base64.b64encode(JPEG).decode("ascii")
        payload = make_payload(preview_images=[valid, "not-base64!!"])
        result = parse(source_file, parser=fake_parser.returning(payload))
        assert result.preview_frames == [JPEG]
        assert result.has_preview

    def test_error_message(self, source_file, fake_parser):
        parser = fake_parser(error_message="Failed to parse DICOM file")
        with pytest.raises(ParsingError) as info:
            parse(source_file, parser=parser)
        assert info.value.message == "Failed to parse DICOM file"

    def test_error_wins_over_data(self, source_file, fake_parser, make_payload):
        parser = fake_parser.returning(make_payload(), error_message="boom")
        with pytest.raises(ParsingError) as info:
            parse(source_file, parser=parser)
        assert info.value.message == "boom"

    def test_no_reply(self, source_file, fake_parser):
        with pytest.raises(ParsingError) as info:
            parse(source_file, parser=fake_parser())
        assert info.value.message == "No data returned from parser"

    def test_empty_attribute_list(self, source_file, fake_parser, make_payload):
        with pytest.raises(ParsingError) as info:
            parse(source_file, parser=fake_parser.returning(make_payload([])))
        assert info.value.message == "No DICOM attributes found in the file"

    def test_invalid_json(self, source_file, fake_parser):
        with pytest.raises(DecodingError) as info:
            parse(source_file, parser=fake_parser(json_data="{oops"))
        assert info.value.issue is DecodingIssue.CORRUPTED

    def test_missing_vr(self, source_file, fake_parser, make_payload):
        attr = {"depth": 0, "tag": "(0010,0010)", "name": "PatientName",
                "value": {"type": "String", "content": "x"}}
        with pytest.raises(DecodingError) as info:
            parse(source_file, parser=fake_parser.returning(make_payload([attr])))
        assert info.value.issue is DecodingIssue.MISSING_KEY
        assert "'vr'" in info.value.message

    def test_unknown_value_type(self, source_file, fake_parser, make_payload):
        attr = {"depth": 0, "tag": "(0010,0010)", "name": "PatientName", "vr": "PN",
                "value": {"type": "Bogus", "content": "x"}}
        with pytest.raises(MalformedValueTag):
            parse(source_file, parser=fake_parser.returning(make_payload([attr])))

    def test_bytes_reply_is_decoded(self, source_file, fake_parser, make_payload):
        parser = fake_parser(json_data=json.dumps(make_payload()).encode("utf-8"))
        assert len(parse(source_file, parser=parser).attributes) == 1

    def test_parser_exception(self, source_file, fake_parser):
        parser = fake_parser(raises=RuntimeError("segfault avoided"))
        with pytest.raises(ParsingError) as info:
            parse(source_file, parser=parser)
        assert "segfault avoided" in info.value.message

    def test_result_released(self, source_file, fake_parser, make_payload):
        parser = fake_parser.returning(make_payload())
        parse(source_file, parser=parser)
        assert len(parser.released) == 1

    def test_result_released_on_error(self, source_file, fake_parser):
        parser = fake_parser(error_message="boom")
        with pytest.raises(ParsingError):
            parse(source_file, parser=parser)
        assert len(parser.released) == 1

    def test_missing_file_never_reaches_parser(self, tmp_path, fake_parser, make_payload):
        parser = fake_parser.returning(make_payload())
        with pytest.raises(FileError):
            parse(tmp_path / "missing.dcm", parser=parser)
        assert parser.calls == []

    def test_deeply_nested_sequences(self, source_file, fake_parser, make_payload):
        levels = 2000
        parser = fake_parser(json_data=_nested_payload(make_payload, levels))
        result = parse(source_file, parser=parser)

        node, depth = result.attributes[0], 0
        while isinstance(node.value, Sequence):
            node = node.value.items[0]
            depth += 1
        assert depth == levels
        assert node.depth == levels
        assert node.value == Leaf("bottom")

    def test_file_url(self, source_file, fake_parser, make_payload):
        parser = fake_parser.returning(make_payload())
        parse(Path(source_file).as_uri(), parser=parser)
        assert parser.calls == [str(source_file)]

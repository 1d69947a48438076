"""tests for extension based format dispatch."""

import pytest

from brainmap.core.models import MindMap
from brainmap.errors import DecodeError, EncodeError, IoFailure
from brainmap.formats import (
    DEFAULT_FORMAT,
    FileFormat,
    classify,
    decode_bytes,
    encode_map,
    read_map,
    supported_formats,
    write_map,
)


class TestClassify:
    """tests for classify."""

    @pytest.mark.parametrize("path,expected", [
        ("plan.xmind", FileFormat.XMIND),
        ("plan.OPML", FileFormat.OPML),
        ("plan.mmap", FileFormat.MINDMANAGER),
        ("plan.mindnode", FileFormat.MINDNODE),
        ("plan.smmx", FileFormat.SIMPLEMIND),
        ("plan.mm", FileFormat.FREEMIND),
        ("/some/dir.xmind/plan.mm", FileFormat.FREEMIND),
    ])
    def test_known_extensions(self, path, expected):
        assert classify(path) is expected

    @pytest.mark.parametrize("path", ["plan.unknownext", "plan", "archive.tar.gz", ".hidden"])
    def test_everything_else_is_freemind(self, path):
        assert classify(path) is FileFormat.FREEMIND
        assert DEFAULT_FORMAT is FileFormat.FREEMIND

    def test_supported_formats(self):
        formats = supported_formats()
        assert len(formats) == len(FileFormat)
        assert [f["name"] for f in formats if f["default"]] == ["FreeMind"]
        assert {f["extension"] for f in formats} == {"mm", "xmind", "opml", "mmap", "mindnode", "smmx"}


class TestReadWrite:
    """tests for read_map and write_map."""

    @pytest.mark.parametrize("name", [
        "map.mm", "map.xmind", "map.opml", "map.mmap", "map.mindnode", "map.smmx", "map.txt",
    ])
    def test_write_then_read(self, temp_dir, sample_map, name):
        path = temp_dir / name
        write_map(path, sample_map)
        assert read_map(path).structure() == sample_map.structure()

    def test_xmind_file_is_zip(self, temp_dir, sample_map):
        path = temp_dir / "map.xmind"
        write_map(path, sample_map)
        assert path.read_bytes().startswith(b"PK\x03\x04")

    def test_missing_file(self, temp_dir):
        with pytest.raises(IoFailure):
            read_map(temp_dir / "missing.mm")

    def test_unwritable_target(self, temp_dir, sample_map):
        with pytest.raises(IoFailure):
            write_map(temp_dir / "no" / "such" / "dir.mm", sample_map)

    def test_decode_error_carries_path(self, temp_dir):
        path = temp_dir / "broken.opml"
        path.write_text("<opml><body>")
        with pytest.raises(DecodeError) as exc:
            read_map(path)
        assert exc.value.path == str(path)
        assert str(path) in str(exc.value)

    def test_decode_bytes(self, sample_map):
        data = encode_map(FileFormat.OPML, sample_map)
        assert decode_bytes(FileFormat.OPML, data).structure() == sample_map.structure()

    def test_control_characters_rejected_for_xml_formats(self):
        mindmap = MindMap.new("bell \x07")
        with pytest.raises(EncodeError):
            encode_map(FileFormat.FREEMIND, mindmap)
        assert encode_map(FileFormat.XMIND, mindmap).startswith(b"PK")
        data = encode_map(FileFormat.MINDNODE, mindmap)
        assert decode_bytes(FileFormat.MINDNODE, data).root.content == "bell \x07"

    def test_too_deep_to_write(self, temp_dir):
        mindmap = MindMap.new("root")
        node_id = mindmap.root_id
        for i in range(3000):
            node_id = mindmap.add_child(node_id, f"n{i}")
        with pytest.raises(EncodeError):
            write_map(temp_dir / "deep.mm", mindmap)

    def test_too_deep_to_read(self, temp_dir):
        path = temp_dir / "deep.mm"
        path.write_bytes(b"<map>" + b"<node TEXT=\"x\">" * 3000 + b"</node>" * 3000 + b"</map>")
        with pytest.raises(DecodeError) as exc:
            read_map(path)
        assert exc.value.path == str(path)

import pytest
from google.protobuf import descriptor_pb2

from conftest import build_common_proto, build_user_proto
from protodoc.config import CONFIG_ENV_VAR
from protodoc.run_protodoc import main, parse_args

PING_PROTO = """\
syntax = "proto3";
package net.v1;

// Round trip probe.
message Ping {
  // unix millis
  int64 sent_at = 1;
}
"""


@pytest.fixture(autouse=True)
def no_config_env(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)


@pytest.fixture
def proto_dir(tmp_path):
    root = tmp_path / "protos"
    (root / "net").mkdir(parents=True)
    (root / "net" / "ping.proto").write_text(PING_PROTO)
    return root


def test_parse_args_defaults():
    args = parse_args(["a.proto"])
    assert args.format is None
    assert args.templates is None
    assert args.proto_path is None
    assert str(args.out) == "."


def test_main_renders_sources(tmp_path, proto_dir):
    out = tmp_path / "docs"
    assert main(["-I", str(proto_dir), "--out", str(out), str(proto_dir / "net" / "ping.proto")]) == 0

    text = (out / "net" / "ping.markdown").read_text()
    assert "## Ping" in text
    assert "| sent_at | int64 | optional | unix millis |" in text


def test_main_expands_directories(tmp_path, proto_dir):
    out = tmp_path / "docs"
    assert main(["-I", str(proto_dir), "--format", "html", "--out", str(out), str(proto_dir)]) == 0
    assert (out / "net" / "ping.html").is_file()


def test_unknown_format_fails(tmp_path, proto_dir):
    out = tmp_path / "docs"
    assert main(["-I", str(proto_dir), "--format", "pdf", "--out", str(out), str(proto_dir)]) == 1
    assert not out.exists()


def test_syntax_error_fails(tmp_path):
    broken = tmp_path / "broken.proto"
    broken.write_text("message {")
    assert main(["-I", str(tmp_path), "--out", str(tmp_path / "docs"), str(broken)]) == 1


def test_no_inputs_fails(tmp_path):
    assert main(["--out", str(tmp_path)]) == 1


def test_config_file_sets_format(tmp_path, proto_dir):
    config = tmp_path / "protodoc.yaml"
    config.write_text("format: html\n")
    out = tmp_path / "docs"
    assert main(["--config", str(config), "-I", str(proto_dir), "--out", str(out), str(proto_dir)]) == 0
    assert (out / "net" / "ping.html").is_file()


def test_descriptor_set_input(tmp_path):
    descriptor_set = descriptor_pb2.FileDescriptorSet()
    descriptor_set.file.extend([build_common_proto(), build_user_proto()])
    path = tmp_path / "api.binpb"
    path.write_bytes(descriptor_set.SerializeToString())
    out = tmp_path / "docs"

    assert main(["--descriptor-set", str(path), "--out", str(out), "acme/user.proto"]) == 0
    assert (out / "acme" / "user.markdown").is_file()
    assert not (out / "acme" / "common.markdown").exists()

    assert main(["--descriptor-set", str(path), "--out", str(out)]) == 0
    assert (out / "acme" / "common.markdown").is_file()


def test_descriptor_set_unknown_file(tmp_path):
    descriptor_set = descriptor_pb2.FileDescriptorSet()
    descriptor_set.file.append(build_common_proto())
    path = tmp_path / "api.binpb"
    path.write_bytes(descriptor_set.SerializeToString())
    assert main(["--descriptor-set", str(path), "--out", str(tmp_path), "acme/user.proto"]) == 1

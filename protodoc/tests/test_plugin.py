from google.protobuf.compiler import plugin_pb2

from conftest import build_common_proto, build_user_proto
from protodoc.config import GenOpts
from protodoc.plugin import run


def _request(parameter="", files=("acme/user.proto",)):
    request = plugin_pb2.CodeGeneratorRequest(parameter=parameter)
    request.proto_file.extend([build_common_proto(), build_user_proto()])
    request.file_to_generate.extend(files)
    return request


def test_generates_requested_files_only():
    response = run(_request(), GenOpts())
    assert not response.HasField("error")
    assert [f.name for f in response.file] == ["acme/user.markdown"]
    assert response.file[0].content.startswith("# acme/user.proto\n")


def test_parameter_selects_format():
    response = run(_request("format=html"), GenOpts())
    assert [f.name for f in response.file] == ["acme/user.html"]
    assert "<!DOCTYPE html>" in response.file[0].content


def test_supports_proto3_optional():
    response = run(_request(), GenOpts())
    assert response.supported_features & plugin_pb2.CodeGeneratorResponse.FEATURE_PROTO3_OPTIONAL


def test_missing_template_is_reported_as_error():
    response = run(_request("format=pdf"), GenOpts())
    assert "pdf" in response.error
    assert len(response.file) == 0


def test_bad_parameter_is_reported_as_error():
    response = run(_request("style=dark"), GenOpts())
    assert "style" in response.error
    assert len(response.file) == 0


def test_file_to_generate_must_be_in_request():
    response = run(_request(files=("acme/other.proto",)), GenOpts())
    assert "acme/other.proto" in response.error


def test_template_directory_parameter(tmp_path):
    (tmp_path / "txt.tpl").write_text("{% block output %}{{ file.package }}{% endblock %}")
    response = run(_request(f"format=txt,templates={tmp_path}"), GenOpts())
    assert [(f.name, f.content) for f in response.file] == [("acme/user.txt", "acme.v1")]

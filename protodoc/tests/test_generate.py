import pytest

from protodoc.config import GenOpts
from protodoc.errors import TemplateNotFound
from protodoc.generate import OutputArtifact, generate, output_filename, write_artifacts


def test_output_filename(user_file):
    assert output_filename(user_file, "markdown") == "acme/user.markdown"
    assert output_filename(user_file, "html") == "acme/user.html"


def test_generate_one_artifact_per_file(pool):
    artifacts = generate(pool.files, GenOpts())
    assert [a.filename for a in artifacts] == ["acme/common.markdown", "acme/user.markdown"]
    assert artifacts[0].content.startswith(b"# acme/common.proto\n")


def test_generate_with_custom_template(tmp_path, user_file):
    (tmp_path / "txt.tpl").write_text("{% block output %}{{ file.path }}: {{ file.messages | length }}{% endblock %}")
    (artifact,) = generate([user_file], GenOpts(format="txt", template_dir=tmp_path))
    assert artifact == OutputArtifact("acme/user.txt", b"acme/user.proto: 2")


def test_unknown_format_produces_nothing(pool):
    artifacts = None
    with pytest.raises(TemplateNotFound, match="pdf"):
        artifacts = generate(pool.files, GenOpts(format="pdf"))
    assert artifacts is None


def test_write_artifacts(tmp_path):
    artifacts = [OutputArtifact("acme/user.markdown", b"# user\n"), OutputArtifact("top.markdown", b"top")]
    written = write_artifacts(artifacts, tmp_path)
    assert written == [tmp_path / "acme" / "user.markdown", tmp_path / "top.markdown"]
    assert (tmp_path / "acme" / "user.markdown").read_bytes() == b"# user\n"

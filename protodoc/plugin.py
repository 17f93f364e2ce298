"""protoc plugin entry point (``protoc-gen-doc``).

    protoc --doc_out=format=html,templates=docs/templates:build/docs foo.proto

See https://protobuf.dev/reference/other/ for the plugin protocol.
"""

from __future__ import annotations

import logging
import sys

from google.protobuf.compiler import plugin_pb2

from protodoc.config import GenOpts, default_opts, parse_parameter
from protodoc.descriptor_loader import load_file_descriptors
from protodoc.errors import ConfigError, GenerationError
from protodoc.generate import generate

log = logging.getLogger(__name__)


def run(request: plugin_pb2.CodeGeneratorRequest, base: GenOpts | None = None) -> plugin_pb2.CodeGeneratorResponse:
    """Turn one CodeGeneratorRequest into a response.

    Failures are reported through ``response.error`` with no files attached,
    which makes protoc fail the whole invocation.
    """
    response = plugin_pb2.CodeGeneratorResponse()
    response.supported_features = plugin_pb2.CodeGeneratorResponse.FEATURE_PROTO3_OPTIONAL
    try:
        opts = parse_parameter(request.parameter, base or default_opts())
        pool = load_file_descriptors(request.proto_file)
        files = []
        for name in request.file_to_generate:
            file = pool.file(name)
            if file is None:
                raise ConfigError(f"{name} was requested but not included in proto_file")
            files.append(file)
        artifacts = generate(files, opts)
    except GenerationError as err:
        log.error("%s", err)
        response.error = str(err)
        return response

    for artifact in artifacts:
        response.file.add(name=artifact.filename, content=artifact.content.decode("utf-8"))
    return response


def main() -> int:
    # stdout carries the response, so logs go to stderr
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    request = plugin_pb2.CodeGeneratorRequest.FromString(sys.stdin.buffer.read())
    response = run(request)
    sys.stdout.buffer.write(response.SerializeToString(deterministic=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

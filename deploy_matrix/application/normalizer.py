"""Decode discovery tool output into a canonical matrix value."""

from __future__ import annotations

import json
import logging

from deploy_matrix.domain.errors import MatrixParseError
from deploy_matrix.domain.models import JSONValue, MatrixResult

logger = logging.getLogger(__name__)


def _reject_constant(token: str) -> float:
    raise ValueError(f"Unsupported JSON constant {token}")


def _decode(text: str, raw_output: str) -> JSONValue:
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except ValueError as exc:
        raise MatrixParseError(str(exc), raw_output) from exc


def decode_output(stdout: bytes) -> str:
    """Decode raw tool output as strict UTF-8."""

    try:
        return stdout.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MatrixParseError(
            f"Output is not valid UTF-8: {exc}",
            stdout.decode("utf-8", errors="replace"),
        ) from exc


def canonical_json(value: JSONValue) -> str:
    """Serialise ``value`` compactly, preserving key order."""

    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def normalize(output: str) -> MatrixResult:
    """Decode ``output`` and unwrap one level of double encoding.

    A top-level JSON string is taken to be a matrix that was serialised twice
    and is decoded once more. Deeper nesting is returned as the string it
    decodes to.
    """

    value = _decode(output.strip(), output)
    unwrapped = False
    match value:
        case str() as inner:
            logger.info("Detected double-encoded JSON, decoding...")
            value = _decode(inner, output)
            unwrapped = True
        case dict() | list() | bool() | int() | float() | None:
            pass
    return MatrixResult(
        value=value, canonical=canonical_json(value), unwrapped=unwrapped
    )


__all__ = ["canonical_json", "decode_output", "normalize"]

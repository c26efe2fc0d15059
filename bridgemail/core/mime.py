"""Lightweight MIME decomposition of raw message source.

Splits a raw RFC 5322 message into its plain-text and HTML bodies using the
declared multipart boundary, without building a full MIME tree. Only one
level of multipart is handled: nested ``multipart/*`` parts are skipped.
The only transfer encoding understood is quoted-printable.

Decoding is best-effort. Anomalies (malformed ``=XX`` escapes in content
declared quoted-printable, skipped nested parts, unsupported transfer
encodings) never raise; they are reported in ``DecomposedBody.warnings``
and logged.
"""

import re
from typing import List, NamedTuple, Optional, Tuple

from bridgemail.utils.logging import get_logger

logger = get_logger(__name__)

BLANK_LINE_RE = re.compile(r"\r?\n\r?\n")
BOUNDARY_RE = re.compile(r'boundary=(?:"([^"\r\n]+)"|([^\s";]+))', re.IGNORECASE)
LEADING_LINE_END_RE = re.compile(r"^[ \t]*\r?\n")
CONTENT_TYPE_RE = re.compile(r"^content-type:\s*([a-z0-9!#$&^_.+-]+/[a-z0-9!#$&^_.+-]+)", re.IGNORECASE | re.MULTILINE)
TRANSFER_ENCODING_RE = re.compile(r"^content-transfer-encoding:\s*([\w-]+)", re.IGNORECASE | re.MULTILINE)

SOFT_LINE_BREAK_RE = re.compile(r"=\r?\n")
QP_ESCAPE_RUN_RE = re.compile(r"(?:=[0-9A-Fa-f]{2})+")
QP_MALFORMED_RE = re.compile(r"=(?![0-9A-Fa-f]{2})")

TEXT_PLAIN = "text/plain"
TEXT_HTML = "text/html"
QUOTED_PRINTABLE = "quoted-printable"


class DecomposedBody(NamedTuple):
    """Plain and HTML bodies extracted from a raw message."""

    plain_body: str = ""
    html_body: str = ""
    warnings: Tuple[str, ...] = ()


## Quoted-printable


def _decode_escape_run(match: "re.Match[str]") -> str:
    raw = bytes.fromhex(match.group(0).replace("=", ""))
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def _decode_qp(text: str) -> Tuple[str, int]:
    """Decode quoted-printable text and count malformed escapes."""
    text = SOFT_LINE_BREAK_RE.sub("", text)
    malformed = len(QP_MALFORMED_RE.findall(text))
    return QP_ESCAPE_RUN_RE.sub(_decode_escape_run, text), malformed


def decode_quoted_printable(text: str) -> str:
    """Decode quoted-printable text.

    Soft line breaks (``=`` before a line ending) are removed. Runs of
    ``=XX`` escapes are reassembled as bytes and decoded as UTF-8, falling
    back to one Latin-1 character per byte when the run is not valid UTF-8.
    Malformed escapes such as ``=ZZ`` are left untouched.

    >>> decode_quoted_printable("Caf=C3=A9")
    'Café'
    """
    return _decode_qp(text)[0]


## Splitting


def split_headers_and_body(source: str) -> Tuple[str, str]:
    """Split at the first blank line into (header block, body block)."""
    segments = BLANK_LINE_RE.split(source)
    return segments[0], "\n\n".join(segments[1:])


def find_boundary(headers: str) -> Optional[str]:
    """Return the multipart boundary declared in a header block, if any."""
    match = BOUNDARY_RE.search(headers)
    if not match:
        return None
    return match.group(1) or match.group(2)


def split_parts(body: str, boundary: str) -> List[str]:
    """Split a multipart body on its literal boundary delimiter."""
    return re.split("--" + re.escape(boundary), body)


def transfer_encoding(headers: str) -> Optional[str]:
    """Declared Content-Transfer-Encoding, lowercased, if any."""
    match = TRANSFER_ENCODING_RE.search(headers)
    return match.group(1).lower() if match else None


class Part(NamedTuple):
    """A classified multipart segment."""

    content_type: str
    content: str = ""
    warnings: Tuple[str, ...] = ()


def decompose_part(part: str) -> Optional[Part]:
    """Classify one multipart segment by its own Content-Type header.

    Text parts come back with their content quoted-printable decoded. Other
    declared types come back with empty content so the caller can skip them.
    Segments with no Content-Type (preamble, epilogue) return None.
    """
    part = LEADING_LINE_END_RE.sub("", part, count=1)
    headers, content = split_headers_and_body(part)

    type_match = CONTENT_TYPE_RE.search(headers)
    if not type_match:
        return None

    content_type = type_match.group(1).lower()
    if content_type not in (TEXT_PLAIN, TEXT_HTML):
        return Part(content_type)

    warnings: List[str] = []
    encoding = transfer_encoding(headers)
    if encoding == "base64":
        warnings.append(f"{content_type} part is base64 encoded and was not decoded")

    decoded, malformed = _decode_qp(content)
    if malformed and encoding == QUOTED_PRINTABLE:
        warnings.append(
            f"{content_type} part has {malformed} malformed quoted-printable escape(s)"
        )

    return Part(content_type, decoded, tuple(warnings))


## Public entry point


def decompose(source: str) -> DecomposedBody:
    """Extract the plain-text and HTML bodies from raw message source.

    Args:
        source: Full message source (headers, blank line, body)

    Returns:
        DecomposedBody with trimmed bodies; either may be empty
    """
    headers, body = split_headers_and_body(source)
    boundary = find_boundary(headers)
    warnings: List[str] = []

    if boundary is None:
        logger.debug("Single-part message")
        plain, malformed = _decode_qp(body)
        if malformed and transfer_encoding(headers) == QUOTED_PRINTABLE:
            warnings.append(f"body has {malformed} malformed quoted-printable escape(s)")
        result = DecomposedBody(plain.strip(), "", tuple(warnings))
        _log_warnings(result.warnings)
        return result

    parts = split_parts(body, boundary)
    logger.debug(f"Multipart message with {len(parts)} parts")

    plain_body: Optional[str] = None
    html_body: Optional[str] = None

    for part in parts:
        if part.startswith("--"):
            continue  # closing delimiter and epilogue

        decomposed = decompose_part(part)
        if decomposed is None:
            continue

        if decomposed.content_type.startswith("multipart/"):
            warnings.append(f"nested {decomposed.content_type} part skipped")
        elif decomposed.content_type == TEXT_PLAIN and plain_body is None:
            plain_body = decomposed.content
            warnings.extend(decomposed.warnings)
        elif decomposed.content_type == TEXT_HTML and html_body is None:
            html_body = decomposed.content
            warnings.extend(decomposed.warnings)

    result = DecomposedBody(
        (plain_body or "").strip(), (html_body or "").strip(), tuple(warnings)
    )
    _log_warnings(result.warnings)
    return result


def _log_warnings(warnings: Tuple[str, ...]) -> None:
    for warning in warnings:
        logger.warning(f"Decode: {warning}")

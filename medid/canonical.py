# medid/canonical.py
"""
Canonical JSON rendering of .medid documents.

canonicalize() is the only function that produces the bytes covered by a
signature. Signer and Verifier both call it, so the two sides always agree on
field order (declaration order), whitespace (none) and omission of absent
fields.

The pretty-printed form written to medid.json is for humans; it is never
signed directly. A verifier re-parses it and canonicalizes the parsed value.
"""

import json
from typing import Union

from medid.errors import InvalidEncodingError
from medid.models import MedidDocument

CANONICAL_SEPARATORS = (",", ":")
STORAGE_INDENT = 2


def canonicalize(document: MedidDocument) -> bytes:
    """
    Return the canonical UTF-8 bytes of `document` with its signature removed.

    A document never signs over its own previous signature, so the signature
    field is always stripped here rather than relying on the caller.

    Raises:
        InvalidEncodingError: If a string value has no UTF-8 encoding.
    """
    unsigned = document.without_signature()
    text = json.dumps(
        unsigned.to_dict(),
        separators=CANONICAL_SEPARATORS,
        ensure_ascii=False,
    )
    return encode_utf8(text)


def encode_utf8(text: str) -> bytes:
    """
    UTF-8 bytes of `text`.

    Raises:
        InvalidEncodingError: If the text holds lone surrogates (e.g. from a
            "\\ud800" JSON escape), which have no UTF-8 encoding.
    """
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise InvalidEncodingError(f"Document text is not encodable as UTF-8: {e}") from e


def to_storage_json(document: MedidDocument) -> str:
    """Pretty-printed rendering used for the medid.json package member."""
    return json.dumps(document.to_dict(), indent=STORAGE_INDENT, ensure_ascii=False)


def parse_document(data: Union[str, bytes]) -> MedidDocument:
    """
    Parse a document from JSON text or UTF-8 bytes.

    Raises:
        InvalidEncodingError: If the input is not UTF-8 JSON of the document
            shape, or a string value is not encodable as UTF-8.
    """
    if isinstance(data, (bytes, bytearray)):
        try:
            data = bytes(data).decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise InvalidEncodingError(f"Document is not valid UTF-8: {e}") from e
    try:
        raw = json.loads(data)
    except json.JSONDecodeError as e:
        raise InvalidEncodingError(f"Document is not valid JSON: {e}") from e
    document = MedidDocument.from_dict(raw)
    # lone surrogates survive json.loads through \uXXXX escapes
    encode_utf8(to_storage_json(document))
    return document

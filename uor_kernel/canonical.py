"""
Canonical serialization and content addressing.

Payloads are a closed tagged union: None, bool, int, float, str, list/tuple
and str-keyed dict. Anything else is rejected rather than coerced. Object
keys are sorted explicitly (by UTF-16 code units, matching the ordering
other canonical-JSON producers use) so no hash ever depends on insertion
order.

Content address pipeline (CIDv1 / dag-json / sha2-256 / base32lower):

  canonical bytes -> sha256 digest
                  -> multihash  <0x12><0x20><digest>
                  -> envelope   <0x01><varint 0x0129><multihash>
                  -> "b" + base32 lowercase, unpadded
"""

import base64
import hashlib
import json
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple, Union

from .errors import ValidationError
from .identity import bytes_to_glyph

CID_VERSION = 0x01
DAG_JSON = 0x0129
SHA2_256 = 0x12
SHA2_256_LENGTH = 0x20
MULTIBASE_BASE32 = "b"

SELF_REFERENTIAL_FIELDS = ("store:cid", "store:cidScope", "store:uorAddress")


# ═══════════════════════════════════════════════════════════════════════════════
# CANONICAL FORM
# ═══════════════════════════════════════════════════════════════════════════════

def _key_order(key: str) -> bytes:
    return key.encode("utf-16-be", "surrogatepass")


def _encode_number(value: Union[int, float]) -> str:
    if isinstance(value, int):
        return str(value)
    if not math.isfinite(value):
        raise ValidationError(f"Non-finite number has no canonical form: {value}")
    if value.is_integer() and abs(value) < 2 ** 53:
        return str(int(value))
    return repr(value)


def canonical_json(value: Any) -> str:
    """Deterministic text form with recursively sorted keys."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _encode_number(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(canonical_json(v) for v in value) + "]"
    if isinstance(value, Mapping):
        for k in value:
            if not isinstance(k, str):
                raise ValidationError(f"Object keys must be strings, got {type(k).__name__}")
        keys = sorted(value, key=_key_order)
        return "{" + ",".join(
            json.dumps(k, ensure_ascii=False) + ":" + canonical_json(value[k]) for k in keys
        ) + "}"
    raise ValidationError(f"Value of type {type(value).__name__} has no canonical form")


def canonical_bytes(value: Any) -> bytes:
    return canonical_json(value).encode("utf-8")


def canonical_decode(data: Union[str, bytes]) -> Any:
    """Parse canonical text back into the payload union."""
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    try:
        return json.loads(data)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Not a canonical document: {e}")


# ═══════════════════════════════════════════════════════════════════════════════
# CONTENT ADDRESS
# ═══════════════════════════════════════════════════════════════════════════════

def _varint(n: int) -> bytes:
    out = bytearray()
    while True:
        byte = n & 0x7F
        n >>= 7
        if n:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _read_varint(data: bytes, pos: int) -> Tuple[int, int]:
    value = shift = 0
    while True:
        if pos >= len(data):
            raise ValidationError("Truncated varint")
        byte = data[pos]
        value |= (byte & 0x7F) << shift
        pos += 1
        if not byte & 0x80:
            return value, pos
        shift += 7


def base32_lower(data: bytes) -> str:
    return base64.b32encode(data).decode("ascii").rstrip("=").lower()


def sha256_hex(data: Union[str, bytes]) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def compute_cid(data: bytes) -> str:
    """CIDv1 text for raw canonical bytes."""
    digest = hashlib.sha256(data).digest()
    multihash = bytes([SHA2_256, SHA2_256_LENGTH]) + digest
    envelope = bytes([CID_VERSION]) + _varint(DAG_JSON) + multihash
    return MULTIBASE_BASE32 + base32_lower(envelope)


def content_address(value: Any) -> str:
    """CID of a payload's canonical form."""
    return compute_cid(canonical_bytes(value))


@dataclass(frozen=True)
class ParsedCid:
    version: int
    codec: int
    hash_code: int
    digest: bytes


def parse_cid(cid: str) -> ParsedCid:
    """Decode a CID produced by compute_cid back into its envelope fields."""
    if not cid.startswith(MULTIBASE_BASE32):
        raise ValidationError(f"Unsupported multibase prefix in {cid!r}")
    body = cid[1:].upper()
    try:
        raw = base64.b32decode(body + "=" * (-len(body) % 8))
    except ValueError as e:
        raise ValidationError(f"Invalid base32 in CID: {e}")
    version, pos = _read_varint(raw, 0)
    codec, pos = _read_varint(raw, pos)
    hash_code, pos = _read_varint(raw, pos)
    length, pos = _read_varint(raw, pos)
    digest = raw[pos:]
    if len(digest) != length:
        raise ValidationError(f"Digest length {len(digest)} does not match declared {length}")
    return ParsedCid(version=version, codec=codec, hash_code=hash_code, digest=digest)


# ═══════════════════════════════════════════════════════════════════════════════
# MODULE IDENTITY
# ═══════════════════════════════════════════════════════════════════════════════

def uor_address(data: bytes) -> Dict[str, Any]:
    return {"u:glyph": bytes_to_glyph(data), "u:length": len(data)}


def strip_self_referential_fields(manifest: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop identity fields so a manifest can be re-addressed."""
    return {k: v for k, v in manifest.items() if k not in SELF_REFERENTIAL_FIELDS}


@dataclass(frozen=True)
class ModuleIdentity:
    cid: str
    uor_address: Dict[str, Any]
    canonical_bytes: bytes


def module_identity(manifest: Mapping[str, Any]) -> ModuleIdentity:
    """Strip identity fields, canonicalize, and address a manifest."""
    data = canonical_bytes(strip_self_referential_fields(manifest))
    return ModuleIdentity(cid=compute_cid(data), uor_address=uor_address(data), canonical_bytes=data)

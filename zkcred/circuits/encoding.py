"""
Canonical attribute encoding and commitment computation.

Every string attribute is handed to a circuit as a fixed-width array of
character codes, right-padded with zeros. Values longer than their width are
rejected, never truncated, because the circuit would otherwise prove a
statement about a different string than the holder supplied.

The commitment is SHA-256 over the UTF-8 bytes of

    name.ljust(w, NUL) + surname.ljust(w, NUL) + dob + category + expiration + nonce

where ``w`` is the circuit's name width, ``category`` and ``expiration`` are
empty when the circuit does not use them. The digest is projected into the
circuit's ``CommitmentEncoding``. The same projection is used when an encoded
input is checked back against its commitment, so generation and validation
cannot drift apart.
"""

from __future__ import annotations

import dataclasses
import datetime as _dt
import hashlib
import json
import re
import secrets
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from .constants import (
    BN254_SCALAR_FIELD,
    LICENSE_CATEGORIES,
    NONCE_ALPHABET,
    NONCE_LENGTH,
)
from .descriptors import ATTRIBUTE_SOURCES, CircuitDescriptor, CommitmentEncoding
from .errors import EncodingError, ValidationError

_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
_NONCE_RE = re.compile(rf"[A-Za-z0-9]{{{NONCE_LENGTH}}}")
_PAD = "\0"


@dataclass(frozen=True, repr=False)
class CredentialAttributes:
    """Holder-supplied attributes for one proof generation.

    Attributes:
        name: Holder first name
        surname: Holder family name
        dob: Date of birth, ``YYYY-MM-DD``
        license: License category (``A``, ``B`` or ``C``) for the license circuit
        age: Age in whole years for the age circuit (derived from ``dob`` if omitted)
        expiration: License expiration date for circuits that commit to it
        nonce: Fixed nonce, for deterministic runs only
    """

    name: str
    surname: str
    dob: str
    license: str | None = None
    age: int | None = None
    expiration: str | None = None
    nonce: str | None = None

    def __repr__(self) -> str:
        return "CredentialAttributes(<redacted>)"

    def value_for(self, source: str) -> Any:
        if source not in ATTRIBUTE_SOURCES:
            raise EncodingError(f"unknown attribute source: {source!r}", field=source)
        return getattr(self, source)


@dataclass(frozen=True)
class Commitment:
    digest: bytes
    nonce: str
    encoding: CommitmentEncoding
    value: Any = None

    @property
    def hex(self) -> str:
        return self.digest.hex()


@dataclass(frozen=True)
class EncodedInput:
    circuit_id: str
    fields: dict[str, Any]
    commitment: Commitment

    def to_json(self) -> str:
        return json.dumps(self.fields, indent=2)


# ---------------------------------------------------------------------------
# primitives
# ---------------------------------------------------------------------------


def encode_string(value: str, width: int, *, field_name: str = "value") -> list[int]:
    if not isinstance(value, str):
        raise EncodingError(f"{field_name} must be a string", field=field_name)
    if _PAD in value:
        raise EncodingError(f"{field_name} must not contain NUL", field=field_name)
    if len(value) > width:
        raise EncodingError(
            f"{field_name} is {len(value)} characters, limit is {width}",
            field=field_name,
            width=width,
            length=len(value),
        )
    codes = [ord(char) for char in value]
    return codes + [0] * (width - len(codes))


def decode_codes(codes: Iterable[int]) -> str:
    return "".join(chr(int(code)) for code in codes).rstrip(_PAD)


def validate_date(value: str, *, field_name: str = "date") -> _dt.date:
    if not isinstance(value, str) or not _DATE_RE.fullmatch(value):
        raise ValidationError(f"{field_name} must use the YYYY-MM-DD format")
    year, month, day = (int(part) for part in value.split("-"))
    try:
        return _dt.date(year, month, day)
    except ValueError as exc:
        raise ValidationError(f"{field_name} is not a calendar date: {value}") from exc


def compute_age(dob: str, today: _dt.date | None = None) -> int:
    born = validate_date(dob, field_name="dob")
    today = today or _dt.date.today()
    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return age


def generate_nonce() -> str:
    return "".join(secrets.choice(NONCE_ALPHABET) for _ in range(NONCE_LENGTH))


def validate_nonce(nonce: str) -> str:
    if not isinstance(nonce, str) or not _NONCE_RE.fullmatch(nonce):
        raise ValidationError(
            f"nonce must be {NONCE_LENGTH} alphanumeric characters"
        )
    return nonce


# ---------------------------------------------------------------------------
# validation
# ---------------------------------------------------------------------------


def validate_attributes(
    attributes: CredentialAttributes, descriptor: CircuitDescriptor
) -> None:
    """Check attributes against a circuit before any file or process I/O.

    All problems are collected and raised together as one ValidationError.
    """
    problems: list[str] = []
    sources = {item.source: item for item in descriptor.input_layout}

    for label in ("name", "surname"):
        value = getattr(attributes, label)
        if not isinstance(value, str) or not value.strip():
            problems.append(f"{label} must not be empty")
        elif len(value) > descriptor.name_width:
            problems.append(
                f"{label} exceeds {descriptor.name_width} characters"
            )
        elif _PAD in value:
            problems.append(f"{label} must not contain NUL")

    try:
        validate_date(attributes.dob, field_name="dob")
    except ValidationError as exc:
        problems.extend(exc.problems)

    if "license" in sources and attributes.license not in LICENSE_CATEGORIES:
        problems.append(
            f"license must be one of {', '.join(sorted(LICENSE_CATEGORIES))}"
        )

    if "age" in sources:
        age = attributes.age
        if isinstance(age, bool) or not isinstance(age, int) or age < 0:
            problems.append("age must be a non-negative integer")

    if "expiration" in sources:
        try:
            validate_date(attributes.expiration, field_name="expiration")
        except ValidationError as exc:
            problems.extend(exc.problems)

    if attributes.nonce is not None:
        try:
            validate_nonce(attributes.nonce)
        except ValidationError as exc:
            problems.extend(exc.problems)

    if problems:
        raise ValidationError(problems)


# ---------------------------------------------------------------------------
# commitment
# ---------------------------------------------------------------------------


def canonical_string(
    attributes: CredentialAttributes, nonce: str, name_width: int
) -> str:
    name = _pad(attributes.name, name_width, "name")
    surname = _pad(attributes.surname, name_width, "surname")
    category = attributes.license or ""
    expiration = attributes.expiration or ""
    return name + surname + attributes.dob + category + expiration + nonce


def project_digest(digest: bytes, encoding: CommitmentEncoding) -> Any:
    if len(digest) != 32:
        raise EncodingError("commitment digest must be 32 bytes", field="commitment")
    if encoding is CommitmentEncoding.BITS:
        return [(byte >> shift) & 1 for byte in digest for shift in range(7, -1, -1)]
    if encoding is CommitmentEncoding.SPLIT_128:
        return [
            str(int.from_bytes(digest[:16], "big")),
            str(int.from_bytes(digest[16:], "big")),
        ]
    if encoding is CommitmentEncoding.FIELD:
        return str(int.from_bytes(digest, "big") % BN254_SCALAR_FIELD)
    return None


def bits_to_digest(bits: Sequence[int]) -> bytes:
    if len(bits) % 8:
        raise EncodingError("bit array length must be a multiple of 8", field="commitment")
    out = bytearray()
    for offset in range(0, len(bits), 8):
        byte = 0
        for bit in bits[offset:offset + 8]:
            byte = (byte << 1) | (int(bit) & 1)
        out.append(byte)
    return bytes(out)


def compute_commitment(
    attributes: CredentialAttributes,
    nonce: str,
    encoding: CommitmentEncoding,
    name_width: int,
) -> Commitment:
    validate_nonce(nonce)
    data = canonical_string(attributes, nonce, name_width).encode("utf-8")
    digest = hashlib.sha256(data).digest()
    return Commitment(
        digest=digest,
        nonce=nonce,
        encoding=encoding,
        value=project_digest(digest, encoding),
    )


# ---------------------------------------------------------------------------
# circuit input
# ---------------------------------------------------------------------------


def encode(
    attributes: CredentialAttributes,
    descriptor: CircuitDescriptor,
    nonce: str | None = None,
) -> EncodedInput:
    nonce = nonce or attributes.nonce or generate_nonce()
    if attributes.nonce != nonce:
        attributes = _with_nonce(attributes, nonce)

    fields: dict[str, Any] = {}
    for item in descriptor.input_layout:
        value = attributes.value_for(item.source)
        if item.source == "age":
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise EncodingError("age must be a non-negative integer", field=item.key)
            fields[item.key] = value
            continue
        if value is None:
            raise EncodingError(f"missing attribute {item.source!r}", field=item.key)
        if item.width is None:
            raise EncodingError(f"no width declared for {item.key!r}", field=item.key)
        if item.source in {"dob", "expiration"}:
            validate_date(value, field_name=item.source)
        fields[item.key] = encode_string(value, item.width, field_name=item.key)

    # attributes the circuit does not consume are left out of the commitment
    used = {item.source for item in descriptor.input_layout}
    committed = dataclasses.replace(
        attributes,
        license=attributes.license if "license" in used else None,
        expiration=attributes.expiration if "expiration" in used else None,
    )
    commitment = compute_commitment(
        committed, nonce, descriptor.commitment_encoding, descriptor.name_width
    )
    if descriptor.commitment_encoding is not CommitmentEncoding.NONE:
        fields["commitment"] = commitment.value

    return EncodedInput(
        circuit_id=descriptor.id.value,
        fields=fields,
        commitment=commitment,
    )


def check_encoded_commitment(
    encoded: EncodedInput, descriptor: CircuitDescriptor
) -> Commitment:
    """Recompute the commitment from an encoded input and compare.

    The attributes are decoded back out of the circuit input, so this catches
    any divergence between the encoded arrays and the committed values.
    """
    decoded: dict[str, Any] = {
        "license": None,
        "expiration": None,
        "nonce": encoded.commitment.nonce,
        "age": None,
    }
    for item in descriptor.input_layout:
        raw = encoded.fields.get(item.key)
        if raw is None:
            raise EncodingError(f"encoded input lacks {item.key!r}", field=item.key)
        decoded[item.source] = raw if item.source == "age" else decode_codes(raw)

    missing = [label for label in ("name", "surname", "dob") if label not in decoded]
    if missing:
        raise EncodingError(
            f"encoded input lacks identity fields: {', '.join(missing)}",
            field=missing[0],
        )

    attributes = CredentialAttributes(
        name=decoded["name"],
        surname=decoded["surname"],
        dob=decoded["dob"],
        license=decoded["license"] or None,
        age=decoded["age"],
        expiration=decoded["expiration"] or None,
        nonce=decoded["nonce"],
    )
    recomputed = compute_commitment(
        attributes,
        decoded["nonce"],
        descriptor.commitment_encoding,
        descriptor.name_width,
    )
    if recomputed.digest != encoded.commitment.digest:
        raise EncodingError("encoded input does not match its commitment", field="commitment")
    if descriptor.commitment_encoding is not CommitmentEncoding.NONE:
        if encoded.fields.get("commitment") != recomputed.value:
            raise EncodingError(
                "commitment projection does not match circuit input",
                field="commitment",
            )
    return recomputed


def _pad(value: str, width: int, label: str) -> str:
    if len(value) > width:
        raise EncodingError(
            f"{label} is {len(value)} characters, limit is {width}",
            field=label,
            width=width,
            length=len(value),
        )
    return value.ljust(width, _PAD)


def _with_nonce(attributes: CredentialAttributes, nonce: str) -> CredentialAttributes:
    return dataclasses.replace(attributes, nonce=nonce)


__all__ = [
    "CredentialAttributes",
    "Commitment",
    "EncodedInput",
    "bits_to_digest",
    "canonical_string",
    "check_encoded_commitment",
    "compute_age",
    "compute_commitment",
    "decode_codes",
    "encode",
    "encode_string",
    "generate_nonce",
    "project_digest",
    "validate_attributes",
    "validate_date",
    "validate_nonce",
]

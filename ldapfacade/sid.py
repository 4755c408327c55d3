"""
Microsoft security identifier (SID) codec.

A binary SID is laid out as::

    revision            1 byte
    sub-authority count 1 byte   (N)
    identifier auth.    6 bytes  big-endian
    sub-authorities     N * 4 bytes, each little-endian unsigned

and is written in SDDL notation as ``S-<revision>-<authority>-<sub1>-...-<subN>``.
See http://www.selfadsi.org/deep-inside/microsoft-sid-attributes.htm for the
gory details.
"""

import re
import struct
from dataclasses import dataclass

from .exceptions import InvalidSidString, MalformedSid, SubAuthorityOverflow

#: Size of the revision, count and identifier authority fields together.
HEADER_SIZE = 8
#: Size of one encoded sub-authority.
SUB_AUTHORITY_SIZE = 4
#: Largest value a sub-authority can hold.
MAX_SUB_AUTHORITY = 2**32 - 1
#: Largest value the 6 byte identifier authority can hold.
MAX_IDENTIFIER_AUTHORITY = 2**48 - 1
#: Largest value the 1 byte revision and count fields can hold.
MAX_BYTE = 255

SID_STRING_RE = re.compile(
    r"S-(?P<revision>[0-9]+)-(?P<authority>[0-9]+)(?P<sub_authorities>(?:-[0-9]+)+)"
)


@dataclass(frozen=True)
class Sid:
    """
    A decoded security identifier.

    Args:
        revision: The SID revision, almost always ``1``.
        identifier_authority: The 48 bit identifier authority.
        sub_authorities: The 32 bit sub-authorities, in order.

    Raises:
        InvalidSidString: ``revision`` or ``identifier_authority`` is out of
            range, or there are no (or more than 255) sub-authorities.
        SubAuthorityOverflow: a sub-authority does not fit in 32 bits.

    """

    revision: int
    identifier_authority: int
    sub_authorities: tuple[int, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "sub_authorities", tuple(self.sub_authorities))
        if not 0 <= self.revision <= MAX_BYTE:
            msg = f"SID revision must be between 0 and {MAX_BYTE}: {self.revision}"
            raise InvalidSidString(msg)
        if not 0 <= self.identifier_authority <= MAX_IDENTIFIER_AUTHORITY:
            msg = (
                "SID identifier authority must fit in 48 bits: "
                f"{self.identifier_authority}"
            )
            raise InvalidSidString(msg)
        if not 1 <= len(self.sub_authorities) <= MAX_BYTE:
            msg = (
                f"A SID needs between 1 and {MAX_BYTE} sub-authorities, "
                f"got {len(self.sub_authorities)}"
            )
            raise InvalidSidString(msg)
        for value in self.sub_authorities:
            if not 0 <= value <= MAX_SUB_AUTHORITY:
                msg = f"SID sub-authority must fit in 32 bits: {value}"
                raise SubAuthorityOverflow(msg)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Sid":
        """
        Decode a binary SID.

        Exactly as many 4 byte sub-authorities are read as the count byte
        declares; a buffer of any other length is rejected.

        Args:
            data: the binary SID, e.g. the raw ``objectSid`` value.

        Raises:
            MalformedSid: ``data`` is not bytes, is too short, declares no
                sub-authorities, or does not end right after the last
                sub-authority.

        Returns:
            The decoded SID.

        """
        if not isinstance(data, (bytes, bytearray, memoryview)):
            msg = f"A binary SID must be bytes, not {type(data).__name__}"
            raise MalformedSid(msg)
        data = bytes(data)
        if len(data) < HEADER_SIZE:
            msg = f"A binary SID is at least {HEADER_SIZE} bytes long, got {len(data)}"
            raise MalformedSid(msg)
        revision = data[0]
        count = data[1]
        authority = int.from_bytes(data[2:HEADER_SIZE], byteorder="big")
        if count == 0:
            msg = "Binary SID declares no sub-authorities"
            raise MalformedSid(msg)
        expected = HEADER_SIZE + count * SUB_AUTHORITY_SIZE
        if len(data) < expected:
            msg = (
                f"Binary SID declares {count} sub-authorities but only has "
                f"{(len(data) - HEADER_SIZE) // SUB_AUTHORITY_SIZE}"
            )
            raise MalformedSid(msg)
        if len(data) > expected:
            msg = (
                f"Binary SID has {len(data) - expected} trailing bytes after "
                f"its {count} sub-authorities"
            )
            raise MalformedSid(msg)
        sub_authorities = []
        offset = HEADER_SIZE
        for _ in range(count):
            (value,) = struct.unpack_from("<I", data, offset)
            sub_authorities.append(value)
            offset += SUB_AUTHORITY_SIZE
        return cls(revision, authority, tuple(sub_authorities))

    @classmethod
    def from_string(cls, text: str) -> "Sid":
        """
        Parse a SID written in SDDL notation.

        Args:
            text: something like ``S-1-5-21-3623811015-3361044348-30300820-1013``

        Raises:
            InvalidSidString: ``text`` is not ``S-`` followed by at least three
                dash separated decimal numbers, or a field is out of range.
            SubAuthorityOverflow: a sub-authority does not fit in 32 bits.

        Returns:
            The parsed SID.

        """
        match = SID_STRING_RE.fullmatch(text) if isinstance(text, str) else None
        if match is None:
            msg = f"Not a SID string: {text!r}"
            raise InvalidSidString(msg)
        sub_authorities = tuple(
            int(part) for part in match["sub_authorities"][1:].split("-")
        )
        return cls(int(match["revision"]), int(match["authority"]), sub_authorities)

    def to_bytes(self) -> bytes:
        """
        Encode this SID in its binary form.

        Returns:
            The binary SID.

        """
        count = len(self.sub_authorities)
        return (
            struct.pack("BB", self.revision, count)
            + self.identifier_authority.to_bytes(6, byteorder="big")
            + struct.pack(f"<{count}I", *self.sub_authorities)
        )

    def __str__(self) -> str:
        parts = [str(self.revision), str(self.identifier_authority)]
        parts.extend(str(value) for value in self.sub_authorities)
        return "S-" + "-".join(parts)


def sid_to_string(data: bytes) -> str:
    """
    Convert a binary SID into SDDL notation.

    Args:
        data: the binary SID

    Raises:
        MalformedSid: ``data`` is not a well formed binary SID.

    Returns:
        The SID as ``S-<revision>-<authority>-<sub1>-...-<subN>``.

    """
    return str(Sid.from_bytes(data))


def string_to_sid(text: str) -> bytes:
    """
    Convert a SID in SDDL notation into its binary form.

    Args:
        text: the SID as ``S-<revision>-<authority>-<sub1>-...-<subN>``

    Raises:
        InvalidSidString: ``text`` is not a well formed SID string.
        SubAuthorityOverflow: a sub-authority does not fit in 32 bits.

    Returns:
        The binary SID.

    """
    return Sid.from_string(text).to_bytes()

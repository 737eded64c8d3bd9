"""
Identifiers -- document numbers printed on every DTE.

Responsibility:
    Derives the four identifiers of an issued document from its series,
    sequential and branch code:

        control number      FAC-00000001
        control code        DTE-01-S001P001-000000000271089
        generation code     uuid4, upper-cased
        reception seal      32 hex chars, upper-cased

Architecture position:
    Kernel > Domain -- pure functional core.  Generation code and reception
    seal draw from the OS CSPRNG (``uuid.uuid4`` / ``secrets``); everything
    else is deterministic.

Invariants enforced:
    - Fixed widths are never truncated: a sequential that does not fit its
      field raises IdentifierFormatError.
    - The establishment number is the trailing digit run of the branch code;
      a code without trailing digits, or whose number exceeds 999, raises
      InvalidBranchCodeError.
"""

import re
import secrets
import uuid
from dataclasses import dataclass

from dte_kernel.exceptions import IdentifierFormatError, InvalidBranchCodeError

CONTROL_NUMBER_WIDTH = 8
CONTROL_CODE_SEQUENTIAL_WIDTH = 15
ESTABLISHMENT_WIDTH = 3

ENVIRONMENT_TEST = "00"
ENVIRONMENT_PRODUCTION = "01"

_TRAILING_DIGITS = re.compile(r"(\d+)$")
_SERIES = re.compile(r"^[A-Z0-9]{1,10}$")


def _check_sequential(sequential: int, width: int, field: str) -> None:
    if isinstance(sequential, bool) or not isinstance(sequential, int):
        raise IdentifierFormatError(field, sequential, "sequential must be an int")
    if sequential < 1:
        raise IdentifierFormatError(field, sequential, "sequential must be >= 1")
    if len(str(sequential)) > width:
        raise IdentifierFormatError(
            field, sequential, f"sequential does not fit in {width} digits"
        )


def control_number(series: str, sequential: int) -> str:
    """``{series}-{sequential:08d}``."""
    if not isinstance(series, str) or not _SERIES.match(series):
        raise IdentifierFormatError(
            "series", series, "series must be 1-10 upper-case letters or digits"
        )
    _check_sequential(sequential, CONTROL_NUMBER_WIDTH, "control_number")
    return f"{series}-{sequential:0{CONTROL_NUMBER_WIDTH}d}"


def establishment_number(branch_code: str) -> int:
    """
    Trailing number of a branch code: ``SUC001`` -> 1, ``SUC022`` -> 22.

    Raises:
        InvalidBranchCodeError: No trailing digits, or number above 999.
    """
    match = _TRAILING_DIGITS.search(branch_code or "")
    if match is None:
        raise InvalidBranchCodeError(branch_code, "code has no trailing digits")
    number = int(match.group(1))
    if number > 10**ESTABLISHMENT_WIDTH - 1:
        raise InvalidBranchCodeError(
            branch_code,
            f"establishment number {number} does not fit in {ESTABLISHMENT_WIDTH} digits",
        )
    return number


@dataclass(frozen=True)
class DteNumberingScheme:
    """
    Fixed parts of the regulator control code.

    Contract:
        ``prefix`` is the literal document marker, ``environment`` the
        two-digit ambient code (00 test, 01 production), ``branch_marker``
        and ``pos_marker`` single letters, ``pos_code`` the three-digit
        point-of-sale number.
    """

    prefix: str = "DTE"
    environment: str = ENVIRONMENT_PRODUCTION
    branch_marker: str = "S"
    pos_marker: str = "P"
    pos_code: str = "001"

    def __post_init__(self) -> None:
        if not re.fullmatch(r"[A-Z]{1,5}", self.prefix):
            raise ValueError(f"prefix must be 1-5 upper-case letters, got {self.prefix!r}")
        if self.environment not in (ENVIRONMENT_TEST, ENVIRONMENT_PRODUCTION):
            raise ValueError(
                f"environment must be {ENVIRONMENT_TEST!r} or "
                f"{ENVIRONMENT_PRODUCTION!r}, got {self.environment!r}"
            )
        for name in ("branch_marker", "pos_marker"):
            if not re.fullmatch(r"[A-Z]", getattr(self, name)):
                raise ValueError(f"{name} must be one upper-case letter")
        if not re.fullmatch(r"\d{3}", self.pos_code):
            raise ValueError(f"pos_code must be three digits, got {self.pos_code!r}")

    def station_code(self, branch_code: str) -> str:
        """``S001P001`` for branch ``SUC001``."""
        number = establishment_number(branch_code)
        return (
            f"{self.branch_marker}{number:0{ESTABLISHMENT_WIDTH}d}"
            f"{self.pos_marker}{self.pos_code}"
        )

    def control_code(self, branch_code: str, sequential: int) -> str:
        """``DTE-01-S001P001-000000000271089``."""
        _check_sequential(sequential, CONTROL_CODE_SEQUENTIAL_WIDTH, "control_code")
        return (
            f"{self.prefix}-{self.environment}-{self.station_code(branch_code)}"
            f"-{sequential:0{CONTROL_CODE_SEQUENTIAL_WIDTH}d}"
        )


def generation_code() -> str:
    return str(uuid.uuid4()).upper()


def reception_seal() -> str:
    return secrets.token_hex(16).upper()


@dataclass(frozen=True)
class DocumentIdentifiers:
    control_number: str
    control_code: str
    generation_code: str
    reception_seal: str


def derive_identifiers(
    scheme: DteNumberingScheme,
    *,
    series: str,
    sequential: int,
    branch_code: str,
) -> DocumentIdentifiers:
    """All four identifiers for one freshly allocated sequential."""
    return DocumentIdentifiers(
        control_number=control_number(series, sequential),
        control_code=scheme.control_code(branch_code, sequential),
        generation_code=generation_code(),
        reception_seal=reception_seal(),
    )

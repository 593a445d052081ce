"""Read-back verification of accepted writes.

The sheet's batch write acknowledgement is not a durability guarantee. This
pass re-reads exactly the accepted cells in one batched read and compares
the read-back values with what was sent, using the same equivalence rules
as the diff tracker.
"""
import dataclasses
import logging
from typing import Any, List, Optional, Sequence, Tuple

from . import normalize
from .dispatch import AcceptedCell, CellFailure, Transport
from .tracker import DirtyCell
from ..status import status
from ..status.status import FailureKind


@dataclasses.dataclass(frozen=True)
class Mismatch:
    """An accepted cell whose read-back value differs from the written one."""
    cell: DirtyCell
    address: str
    expected: Any
    actual: Any

    @property
    def kind(self) -> FailureKind:
        return FailureKind.VerificationMismatch

    @property
    def reason(self) -> str:
        return f'Expected {self.expected!r} at {self.address}, found {self.actual!r}.'


@dataclasses.dataclass(frozen=True)
class VerificationResult:
    """Outcome of the read-back.

    Attributes:
        matches: Cells confirmed to hold the written value.
        mismatches: Cells holding a different value.
        failed: Cells that could not be read back.
    """
    matches: Tuple[AcceptedCell, ...] = ()
    mismatches: Tuple[Mismatch, ...] = ()
    failed: Tuple[CellFailure, ...] = ()

    @property
    def all_match(self) -> bool:
        return not self.mismatches and not self.failed


class VerificationPass:
    """Confirms accepted cells by reading them back."""

    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    def verify(self, spreadsheet_id: str, accepted: Sequence[AcceptedCell],
               timeout: Optional[float] = None) -> VerificationResult:
        """Read back the accepted cells and partition them.

        Args:
            spreadsheet_id: The spreadsheet written to.
            accepted: Cells the dispatcher reported as accepted.
            timeout: Transport timeout in seconds; a timeout fails every cell.

        Returns:
            VerificationResult: Every accepted cell appears exactly once.
        """
        if not accepted:
            return VerificationResult()

        ranges = [a.address for a in accepted]
        logging.info(f'Verifying {len(ranges)} written cell(s).')
        try:
            values: List[Any] = list(self.transport.batch_read(spreadsheet_id, ranges, timeout=timeout))
        except status.BaseStatusException as ex:
            logging.error(f'Verification read failed, {len(accepted)} cell(s) unconfirmed: {ex}')
            return VerificationResult(failed=tuple(
                CellFailure(a.cell, FailureKind.TransportError, f'Could not verify write: {ex}') for a in accepted
            ))
        except Exception as ex:
            logging.exception('Verification read failed due to an unexpected error.')
            return VerificationResult(failed=tuple(
                CellFailure(a.cell, FailureKind.TransportError, f'Could not verify write: {ex}') for a in accepted
            ))

        values.extend([None] * (len(accepted) - len(values)))

        matches: List[AcceptedCell] = []
        mismatches: List[Mismatch] = []
        for item, actual in zip(accepted, values):
            field = item.cell.field
            expected = normalize.normalize_field(field, item.cell.value, strict=False)
            got = normalize.normalize_field(field, actual, strict=False)
            if expected == got:
                matches.append(item)
            else:
                mismatch = Mismatch(item.cell, item.address, item.cell.value, actual)
                logging.warning(f'Verification mismatch: {mismatch.reason}')
                mismatches.append(mismatch)

        logging.info(f'Verification done: {len(matches)} match(es), {len(mismatches)} mismatch(es).')
        return VerificationResult(tuple(matches), tuple(mismatches))

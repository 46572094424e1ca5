"""
Static error catalogs: which status bits are reported, and under what name.

The order of each catalog is the order notifications are emitted in.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Tuple


class DevStaError(enum.IntFlag):
    # fmt: off
    CED     = 0x0001  # Correctable Error Detected
    NFED    = 0x0002  # Non-Fatal Error Detected
    FED     = 0x0004  # Fatal Error Detected
    URD     = 0x0008  # Unsupported Request Detected
    # fmt: on


# Device Status bits that are errors; the upper bits are AUX power etc.
DEVSTA_ERROR_MASK = 0x000F


class AERUncorrectableError(enum.IntFlag):
    # fmt: off
    DLP         = 1 << 4
    SURPDN      = 1 << 5
    POISON_TLP  = 1 << 12
    FCP         = 1 << 13
    COMP_TIME   = 1 << 14
    COMP_ABORT  = 1 << 15
    UNX_COMP    = 1 << 16
    RX_OVER     = 1 << 17
    MALF_TLP    = 1 << 18
    ECRC        = 1 << 19
    UNSUP       = 1 << 20
    ACSV        = 1 << 21
    INTN        = 1 << 22
    MCBTLP      = 1 << 23
    ATOMEG      = 1 << 24
    TLPPRE      = 1 << 25
    # fmt: on


class AERCorrectableError(enum.IntFlag):
    # fmt: off
    RCVR        = 1 << 0
    BAD_TLP     = 1 << 6
    BAD_DLLP    = 1 << 7
    REP_ROLL    = 1 << 8
    REP_TIMER   = 1 << 12
    ADV_NFAT    = 1 << 13
    INTERNAL    = 1 << 14
    LOG_OVER    = 1 << 15
    # fmt: on


@dataclass(frozen=True)
class ErrorDescriptor:
    mask: int
    desc: str


PCIE_BASE_ERRORS: Tuple[ErrorDescriptor, ...] = (
    ErrorDescriptor(DevStaError.CED, "Correctable Error"),
    ErrorDescriptor(DevStaError.NFED, "Non-Fatal Error"),
    ErrorDescriptor(DevStaError.FED, "Fatal Error"),
    ErrorDescriptor(DevStaError.URD, "Unsupported Request"),
)

PCIE_AER_UES: Tuple[ErrorDescriptor, ...] = (
    ErrorDescriptor(AERUncorrectableError.DLP, "Data Link Protocol"),
    ErrorDescriptor(AERUncorrectableError.SURPDN, "Surprise Down"),
    ErrorDescriptor(AERUncorrectableError.POISON_TLP, "Poisoned TLP"),
    ErrorDescriptor(AERUncorrectableError.FCP, "Flow Control Protocol"),
    ErrorDescriptor(AERUncorrectableError.COMP_TIME, "Completion Timeout"),
    ErrorDescriptor(AERUncorrectableError.COMP_ABORT, "Completer Abort"),
    ErrorDescriptor(AERUncorrectableError.UNX_COMP, "Unexpected Completion"),
    ErrorDescriptor(AERUncorrectableError.RX_OVER, "Receiver Overflow"),
    ErrorDescriptor(AERUncorrectableError.MALF_TLP, "Malformed TLP"),
    ErrorDescriptor(AERUncorrectableError.ECRC, "ECRC Error Status"),
    ErrorDescriptor(AERUncorrectableError.UNSUP, "Unsupported Request"),
    ErrorDescriptor(AERUncorrectableError.ACSV, "ACS Violation"),
    ErrorDescriptor(AERUncorrectableError.INTN, "Internal"),
    ErrorDescriptor(AERUncorrectableError.MCBTLP, "MC blocked TLP"),
    ErrorDescriptor(AERUncorrectableError.ATOMEG, "Atomic egress blocked"),
    ErrorDescriptor(AERUncorrectableError.TLPPRE, "TLP prefix blocked"),
)

PCIE_AER_CES: Tuple[ErrorDescriptor, ...] = (
    ErrorDescriptor(AERCorrectableError.RCVR, "Receiver Error Status"),
    ErrorDescriptor(AERCorrectableError.BAD_TLP, "Bad TLP Status"),
    ErrorDescriptor(AERCorrectableError.BAD_DLLP, "Bad DLLP Status"),
    ErrorDescriptor(AERCorrectableError.REP_ROLL, "REPLAY_NUM Rollover"),
    ErrorDescriptor(AERCorrectableError.REP_TIMER, "Replay Timer Timeout"),
    ErrorDescriptor(AERCorrectableError.ADV_NFAT, "Advisory Non-Fatal"),
    ErrorDescriptor(AERCorrectableError.INTERNAL, "Corrected Internal"),
    ErrorDescriptor(AERCorrectableError.LOG_OVER, "Header Log Overflow"),
)

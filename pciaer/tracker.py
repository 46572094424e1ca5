"""
Edge detection on sticky PCIe error status bits.

Hardware keeps an error bit set until something clears it; this module never
clears anything. It only remembers, per device, the register values it saw on
the previous cycle and reports the bits that changed since. In persistent
mode every set bit is reported on every cycle instead.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Tuple

from .backends.base import AccessBackend
from .caps import (
    PCI_ERR_COR_MASK,
    PCI_ERR_COR_STATUS,
    PCI_ERR_UNCOR_MASK,
    PCI_ERR_UNCOR_SEVER,
    PCI_ERR_UNCOR_STATUS,
    PCI_EXP_DEVSTA,
)
from .errors import (
    DEVSTA_ERROR_MASK,
    PCIE_AER_CES,
    PCIE_AER_UES,
    PCIE_BASE_ERRORS,
    DevStaError,
    ErrorDescriptor,
)
from .exceptions import DeviceOpenError
from .notify import (
    PCIE_ERROR,
    PCIE_SEV_CE,
    PCIE_SEV_FATAL,
    PCIE_SEV_NOFATAL,
    Notification,
    NotificationSink,
    Severity,
)
from .sysfs import PcieDevice
from .types import ConfigSpace

log = logging.getLogger(__name__)

# err -> (severity when set, type instance)
Classifier = Callable[[ErrorDescriptor], Tuple[Severity, str]]


def classify_base_error(err: ErrorDescriptor) -> Tuple[Severity, str]:
    if err.mask == DevStaError.FED:
        return Severity.FAILURE, PCIE_SEV_FATAL
    if err.mask == DevStaError.CED:
        return Severity.WARNING, PCIE_SEV_CE
    return Severity.WARNING, PCIE_SEV_NOFATAL


def classify_correctable(err: ErrorDescriptor) -> Tuple[Severity, str]:
    return Severity.WARNING, PCIE_SEV_CE


def uncorrectable_classifier(severity_reg: int) -> Classifier:
    """Fatal vs. non-fatal comes from the AER Severity register read this cycle."""

    def classify(err: ErrorDescriptor) -> Tuple[Severity, str]:
        if severity_reg & err.mask:
            return Severity.FAILURE, PCIE_SEV_FATAL
        return Severity.WARNING, PCIE_SEV_NOFATAL

    return classify


class ErrorTracker:
    def __init__(
        self,
        sink: NotificationSink,
        *,
        persistent: bool = False,
        report_masked: bool = False,
    ):
        self.sink = sink
        self.persistent = persistent
        self.report_masked = report_masked

    def _dispatch(
        self, dev: PcieDevice, severity: Severity, type_instance: str, message: str
    ) -> None:
        self.sink.dispatch(
            Notification(
                severity=severity,
                message=message,
                plugin_instance=str(dev.bdf),
                type=PCIE_ERROR,
                type_instance=type_instance,
            )
        )

    def _changed(self, current: int, previous: int) -> bool:
        return bool(self.persistent and current) or current != previous

    def _report(
        self,
        dev: PcieDevice,
        catalog: Iterable[ErrorDescriptor],
        errors: int,
        previous: int,
        masked: int,
        classify: Classifier,
        label: str,
    ) -> None:
        """Emit set/cleared notifications for each catalog bit.

        ``label`` is formatted with the type instance, e.g.
        "Uncorrectable({ti}) Error".
        """
        for err in catalog:
            # Masked errors are skipped unless explicitly requested
            if not self.report_masked and (err.mask & masked):
                continue

            severity, type_instance = classify(err)
            what = label.format(ti=type_instance)

            if err.mask & errors:
                # Already reported; only persistent mode repeats it
                if not self.persistent and (err.mask & previous):
                    continue
                log.debug("%s: %s(%s) set", dev.bdf, err.desc, type_instance)
                self._dispatch(dev, severity, type_instance, f"{what} set: {err.desc}")
            elif err.mask & previous:
                log.debug("%s: %s(%s) cleared", dev.bdf, err.desc, type_instance)
                self._dispatch(
                    dev, Severity.OKAY, type_instance, f"{what} cleared: {err.desc}"
                )

    def check_device_status(self, dev: PcieDevice, cfg: ConfigSpace) -> None:
        assert dev.cap_exp is not None
        new_status = cfg.read16(dev.cap_exp + PCI_EXP_DEVSTA) & DEVSTA_ERROR_MASK

        if self._changed(new_status, dev.device_status):
            self._report(
                dev,
                PCIE_BASE_ERRORS,
                new_status,
                dev.device_status,
                0,
                classify_base_error,
                "Device Status Error",
            )
        dev.device_status = new_status

    def check_aer(self, dev: PcieDevice, cfg: ConfigSpace) -> None:
        assert dev.ecap_aer is not None
        pos = dev.ecap_aer

        errors = cfg.read32(pos + PCI_ERR_UNCOR_STATUS)
        if self._changed(errors, dev.uncorrectable_errors):
            masked = cfg.read32(pos + PCI_ERR_UNCOR_MASK)
            severity = cfg.read32(pos + PCI_ERR_UNCOR_SEVER)
            self._report(
                dev,
                PCIE_AER_UES,
                errors,
                dev.uncorrectable_errors,
                masked,
                uncorrectable_classifier(severity),
                "Uncorrectable({ti}) Error",
            )
        dev.uncorrectable_errors = errors

        errors = cfg.read32(pos + PCI_ERR_COR_STATUS)
        if self._changed(errors, dev.correctable_errors):
            masked = cfg.read32(pos + PCI_ERR_COR_MASK)
            self._report(
                dev,
                PCIE_AER_CES,
                errors,
                dev.correctable_errors,
                masked,
                classify_correctable,
                "Correctable Error",
            )
        dev.correctable_errors = errors

    def check_device(self, dev: PcieDevice, cfg: ConfigSpace) -> None:
        self.check_device_status(dev, cfg)
        if dev.has_aer:
            self.check_aer(dev, cfg)

    def process_devices(
        self, devices: Iterable[PcieDevice], backend: AccessBackend
    ) -> bool:
        """One poll cycle. Returns False if any device could not be opened."""
        ok = True
        for dev in devices:
            try:
                cfg = backend.open(dev)
            except DeviceOpenError:
                # Baseline stays as it was; the next good read diffs against it.
                self.sink.dispatch(
                    Notification(
                        severity=Severity.FAILURE,
                        message="Failed to read device status",
                        plugin_instance=str(dev.bdf),
                    )
                )
                ok = False
                continue
            with cfg:
                self.check_device(dev, cfg)
        return ok

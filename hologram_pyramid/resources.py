"""Device-capability aware frame and resolution budgets."""

from __future__ import annotations

import logging
import os
import platform
import sys
from dataclasses import dataclass
from typing import Optional, Protocol

from hologram_pyramid.models import CapabilityClass, ResourceBudget

CONSTRAINED_MEMORY_GB = 4.0

CONSTRAINED_BUDGET = ResourceBudget(max_raster_dimension=1024, max_frames=48, max_fps=16)
NORMAL_BUDGET = ResourceBudget(max_raster_dimension=1800, max_frames=160, max_fps=None)

_MOBILE_PLATFORM_MARKERS = ("android", "ios", "iphone", "ipad")


class CapabilityProbe(Protocol):
    """Named capability signals consulted by :class:`ResourcePolicy`."""

    def touch_primary_mobile(self) -> bool:
        ...

    def memory_gb(self) -> Optional[float]:
        ...


@dataclass(frozen=True)
class StaticCapabilityProbe:
    """Probe returning fixed answers, for tests and configured overrides."""

    is_touch_mobile: bool = False
    memory: Optional[float] = None

    def touch_primary_mobile(self) -> bool:
        return self.is_touch_mobile

    def memory_gb(self) -> Optional[float]:
        return self.memory


class SystemCapabilityProbe:
    """Probe the running host for platform family and physical memory."""

    def touch_primary_mobile(self) -> bool:
        if hasattr(sys, "getandroidapilevel"):
            return True
        identity = f"{sys.platform} {platform.system()} {platform.machine()}".lower()
        return any(marker in identity for marker in _MOBILE_PLATFORM_MARKERS)

    def memory_gb(self) -> Optional[float]:
        try:
            pages = os.sysconf("SC_PHYS_PAGES")
            page_size = os.sysconf("SC_PAGE_SIZE")
        except (AttributeError, OSError, ValueError):
            return None
        if pages <= 0 or page_size <= 0:
            return None
        return (pages * page_size) / (1024 ** 3)


class ResourcePolicy:
    """Pick a :class:`ResourceBudget` from a capability snapshot.

    The budget is resolved once at the start of an operation and must be held
    fixed for its duration.
    """

    def __init__(
        self,
        probe: Optional[CapabilityProbe] = None,
        *,
        override: Optional[CapabilityClass] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.probe = probe or SystemCapabilityProbe()
        self.override = CapabilityClass(override) if override else None
        self.logger = logger or logging.getLogger(__name__)

    def detect_capability_class(self) -> CapabilityClass:
        if self.override is not None:
            return self.override

        if self.probe.touch_primary_mobile():
            return CapabilityClass.CONSTRAINED

        memory = self.probe.memory_gb()
        if memory is not None and memory <= CONSTRAINED_MEMORY_GB:
            return CapabilityClass.CONSTRAINED
        return CapabilityClass.NORMAL

    @staticmethod
    def budget_for(capability: CapabilityClass) -> ResourceBudget:
        if CapabilityClass(capability) is CapabilityClass.CONSTRAINED:
            return CONSTRAINED_BUDGET
        return NORMAL_BUDGET

    def snapshot(self) -> ResourceBudget:
        capability = self.detect_capability_class()
        budget = self.budget_for(capability)
        self.logger.debug(
            "Resource budget for %s device: max dimension %s, max frames %s, max fps %s",
            capability.value,
            budget.max_raster_dimension,
            budget.max_frames,
            budget.max_fps if budget.max_fps is not None else "unset",
        )
        return budget


__all__ = [
    "CONSTRAINED_BUDGET",
    "NORMAL_BUDGET",
    "CapabilityProbe",
    "ResourcePolicy",
    "StaticCapabilityProbe",
    "SystemCapabilityProbe",
]

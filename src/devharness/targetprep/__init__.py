"""Target preparation: firmware requirements, flashing, preparers."""

from devharness.targetprep.flasher import DeviceFlasher, FirmwareComponent
from devharness.targetprep.preparer import DeviceFlashPreparer, TargetPreparer
from devharness.targetprep.requirements import FirmwareRequirements

__all__ = [
    "DeviceFlasher",
    "FirmwareComponent",
    "FirmwareRequirements",
    "DeviceFlashPreparer",
    "TargetPreparer",
]

"""Build descriptors and the build provider interface."""

from devharness.build.info import BuildInfo, DeviceBuildInfo, SdkBuildInfo
from devharness.build.provider import BuildProvider

__all__ = ["BuildInfo", "DeviceBuildInfo", "SdkBuildInfo", "BuildProvider"]

"""Domain-specific errors for wizlan-bridge."""


class WizLanError(Exception):
    """Base error for wizlan-bridge."""


class NoInterfaceError(WizLanError):
    """Raised when no non-loopback IPv4 interface is available at startup."""


class UnknownDeviceError(WizLanError):
    """Raised by the control surface when a hardware id has never been discovered."""


class UnsupportedFeatureError(WizLanError):
    """Raised when a command targets a feature the device's profile lacks."""

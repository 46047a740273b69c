"""Exception types for the ezan service."""


class EzanError(Exception):
    """Base class for all ezan errors."""


class InputError(EzanError):
    """Bad coordinates, calculation method or settings value."""


class InvalidCoordinates(InputError):
    pass


class InvalidParameters(InputError):
    pass


class ComputeError(EzanError):
    """Prayer times could not be derived for the requested day."""


class DecodeError(EzanError):
    """Sound file is missing, unreadable or not a valid bitstream."""


class DeviceError(EzanError):
    """Audio output device could not be opened or written."""


class StoreError(EzanError):
    """Settings document could not be read, parsed or written."""

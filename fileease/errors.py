"""
errors.py - Exception taxonomy for the conversion engine.

Data failures (DecodeError, ParseError, ExtractError) mean the input is bad.
EncodeError/ResourceUnavailable mean the environment could not produce output.
"""


class ConversionError(Exception):
    """Base class for every failure raised by the engine."""


class DecodeError(ConversionError):
    """Input bytes cannot be interpreted as the declared raster format."""


class ParseError(ConversionError):
    """Input is not a well-formed PDF document."""


class EncodeError(ConversionError):
    """Target encoder could not produce output."""


class ResourceUnavailable(EncodeError):
    """Rendering surface or a backing library is not usable."""


class UnsupportedOperation(ConversionError):
    """Conversion kind is not recognized."""


class ExtractError(ConversionError):
    """Text extraction from a PDF failed."""


class InputRejected(ConversionError):
    """Input is outside the allow-list or above the size ceiling."""


class BatchInProgressError(RuntimeError):
    """A batch run was started while another one is still running."""

"""Exceptions raised by the shipment parsing pipeline."""


class ShipmentParsingError(Exception):
    """Base exception for the shipment parsing pipeline."""
    pass


class InputFileError(ShipmentParsingError):
    """The source document cannot be read at all (missing file, bad container, no sheets)."""
    pass


class TextParsingError(ShipmentParsingError):
    """Extracted text could not be turned into rows."""
    pass

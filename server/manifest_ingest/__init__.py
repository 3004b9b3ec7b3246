"""
Manifest ingestion pipeline - turns shipment spreadsheets, OCR text and
free-text manifests into structured shipment records.
"""

__version__ = "0.3.0"

"""
FileEase - local image and PDF conversion engine.

This package converts and optimizes small batches of JPEG, PNG and PDF
files: raster re-encoding, image-to-PDF composition, PDF page extraction
and PDF text export, driven by a sequential batch orchestrator.
"""

__version__ = "1.0.0"
__author__ = "FileEase"

"""Extraction orchestration: raw upload bytes to structural elements."""

from src.services.extraction.extraction_chain import DIAGNOSTIC_ELEMENT_TYPE, ExtractionChain

__all__ = ["DIAGNOSTIC_ELEMENT_TYPE", "ExtractionChain"]

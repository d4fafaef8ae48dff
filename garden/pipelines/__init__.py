"""Pipelines for answer ingestion, background normalization, location
normalization, and plant/partner matching.

Each step is callable on its own so it can be reused from the API and
from tests.
"""

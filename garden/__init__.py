"""Backend package: DB models, rule engine, pipelines, APIs.

This package orchestrates answer ingestion, background normalization,
rule evaluation, and plant/partner recommendation.
"""

"""Bias analysis pipeline: normalization and orchestration."""

"""
bayes_ts — Test Suite
=====================
Test modules:
- test_timeseries.py: TimeSeries data model and grouped CSV ingestion
- test_generators.py: synthetic regression / VAR / ODE generators
- test_models.py: priors and model specification validation
- test_adapter.py: engine input construction, determinism, validation
- test_summary.py: posterior sample sets and summarization
- test_samplers.py: conjugate and PyMC samplers, configuration
- test_pipeline.py: end-to-end fits, timeouts, coverage scenarios
"""

__version__ = '0.1.0'

"""
Analytics Package
=================
Pure computation over weekly series; no I/O, no shared state.

Modules:
  models     - immutable value objects and result variants
  errors     - error taxonomy
  config     - AnalysisConfig thresholds (.env aware)
  regression - OLS trainer with rank / conditioning checks
  predictor  - model application with contribution breakdown
  scenarios  - what-if deltas on a baseline financial vector
"""

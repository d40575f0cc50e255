"""
Pipeline Package
================
  aggregator      - raw transactions + check-ins -> WeeklyDataPoints
  impact_pipeline - end-to-end run with success/degraded status
"""

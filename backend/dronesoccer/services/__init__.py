"""
Services Layer

Tournament structure and progression logic:
- Pure modules (round_robin, bracket_builder, outcome_rules, match_state,
  standings_calculator) work on plain dataclasses and never touch the database
- *_service modules accept an explicit Session, run one transaction per
  operation and do NOT depend on HTTP request/response objects
"""

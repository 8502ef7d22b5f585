"""Caller-ID Rotation & Reputation Engine.

- phone: extract_area_code
- reputation: reputation_level, clamp_score
- rotation: is_selectable, apply_rotation_strategy, select_number
- service: pools, numbers, selection, usage tracking, reputation and
           maintenance sweeps (async, session-based)
"""

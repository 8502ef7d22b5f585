"""Lead Scoring Engine.

- features: extract_features, infer_timezone, local wall-clock helpers
- engine: calculate_score, calculate_best_time_slots, find_next_good_time
- service: score_lead, score_leads_batch, get_priority_queue,
           get_best_time_to_call, model lifecycle (async, session-based)
"""

"""Repository layer for lead scoring and caller-ID rotation.

Module-level async functions taking an AsyncSession; they flush, never commit.
- scores: get_by_lead_id, get_by_lead_ids, upsert, get_priority_queue, list_scores
- scoring_models: get_active, get_by_id, list_models, deactivate_scope,
                  increment_leads_scored
- caller_id_pools: get_by_id, get_by_name, list_pools, status_counts, delete_pool
- caller_id_numbers: get_in_pool, get_selection_candidates, list_numbers,
                     reset_daily_counters, release_expired_cooldowns
- caller_id_activity: usage logs and reputation events
"""

"""
Pure matching primitives; no store, no I/O.

Modules
-------
scorer          : FIELD_RULES, score_match(), match_score_to_percent(),
                  describe_match_score(), evaluate_match(), match badges.
thread_identity : thread_id_for(), parse_thread_id(), ThreadKey.
"""

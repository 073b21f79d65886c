"""
Runtime pieces: executor, run state, coercion and external service interfaces.
"""

"""Examination portal domain: lifecycle, policy, notifications, storage and persistence."""

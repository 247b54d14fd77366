"""Clinical deterioration scoring and alerting.

This package contains the NEWS2 scoring pipeline, the alert lifecycle and the
overdue observation scanner, isolated from persistence and delivery concerns
so it can be tested and reasoned about on its own.
"""

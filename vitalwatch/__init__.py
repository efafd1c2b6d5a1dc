"""Core domain logic for vital-sign alert evaluation.

This package contains the measurement and alert models, the rule engine and
the services that feed it, isolated from I/O so the rules stay easy to test.
"""

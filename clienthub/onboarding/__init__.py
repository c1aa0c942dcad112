"""Onboarding step catalog and pure progress engine."""

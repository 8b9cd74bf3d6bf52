"""Litigation Fraud Pattern Detection Engine.

Builds a witness -> claimant relationship graph from case records, searches it
for closed testimony cycles (triangulation), detects reciprocal testimony and
dual-role claimants, writes the findings back onto the case and witness
records, and rolls the dataset up into organization-wide aggregate reports.
"""

__version__ = "1.0.0"

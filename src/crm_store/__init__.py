"""
CRM Store - durable customer and interaction records

A small record-management backend: customers and their interactions are
kept in persistent B+Tree maps that share one page-oriented data file,
with identifiers minted from a single durable counter.
"""

__version__ = "0.1.0"
__author__ = "Systems Engineering Portfolio"

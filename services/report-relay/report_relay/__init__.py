# =============================================================================
# Report Relay - Package Initialization
# =============================================================================
"""
Report Relay Service

An abuse-resistant ingestion endpoint that accepts game scan reports from
untrusted clients, sanitizes them, and relays a webhook message to a
notification sink.
"""

__version__ = "1.0.0"

"""
Credit Ingest: batch credit-data ingestion and field-mapping pipeline.

Files are previewed, their fields detected and mapped onto the canonical
credit schema, validated, and uploaded to the remote scoring engine with
bounded, user-confirmed retry of partially failed records.
"""

__version__ = "0.4.0"

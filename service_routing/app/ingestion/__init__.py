"""
Parcel ingestion package.

- batch: Classifies raw records as created / duplicate / failed.
- xml_source: Reads bulk parcel documents into plain records.
"""

"""Services that back the profile service: records, blobs, sessions."""

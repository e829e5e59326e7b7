"""Attachment storage (Azure Blob Storage)."""

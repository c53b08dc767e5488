"""Configuration, data types, errors and logging shared across s3helpers."""

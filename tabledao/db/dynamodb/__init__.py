"""Shared DynamoDB utilities.

This package centralizes:
- boto3 client/resource configuration
- environment-prefixed table naming and table bootstrap
- pydantic model <-> item mapping and per-call mapper configuration
- typed, expressive errors and the log-and-reraise call wrapper

"""

"""
Core storage policy logic.

This package is framework-agnostic - it doesn't import FastAPI, boto3,
or any infrastructure concerns, so upload policy and key naming can be
tested in isolation and backends swapped freely.
"""

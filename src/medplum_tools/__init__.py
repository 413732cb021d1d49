"""Medplum Tool Server.

This package exposes a Medplum FHIR server to AI agents as a catalog of
schema-described tools. An agent discovers the tools, calls one by name
with a JSON argument object, and always gets back one JSON result
envelope: `{success, ...}` with the data, or `{success: false, error}`.
"""

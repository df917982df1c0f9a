"""
Verifier Service package for the Skill Request Verifier.

This package exposes the FastAPI application that authenticates requests
claiming to come from the voice-assistant platform before they reach a
skill's ability handler:

- app.main: Application entrypoint that wires routes and lifecycle.
- app.pipeline: Ordered verification of one inbound request.
- app.validation: Certificate URL, certificate and signature checks.
- app.certs: Fetching and caching signing certificates.
- app.handlers: Adapter that forwards verified bodies to an ability.

Design notes:
- Module import must not perform network calls; the only IO is the
  certificate download inside a request.
- Use the shared/ utilities for logging, metrics, config and errors.
- Verification is fail-closed: any failed or inconclusive check rejects.
"""

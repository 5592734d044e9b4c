"""
Module 09D - HTTP API (FastAPI)

HTTP API for the Merkle distribution engine:
- GET  /distributions, /distributions/{id} - Browse distributions
- GET  /distributions/{id}/eligibility/{address}, /proof/{address} - Claim data
- GET  /users/{address}/distributions - Distributions for one address
- POST /distributions (+ /confirm, /cancel, /sync) - Admin lifecycle
- POST /allocations/validate - Dry-run allocation validation
- GET  /health - Health check

Usage:
    uvicorn api.app:app --reload
"""

__version__ = "0.1.0"

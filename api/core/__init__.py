"""
Shared, cross-cutting code for the API.

`core/` holds the small building blocks every feature uses (DB wiring,
settings, logging, the error taxonomy and the store contracts). Policy
decisions live in the feature packages (`auth/`, `access/`, `lifecycle/`,
`audit/`, `listing/`, `resources/`).
"""

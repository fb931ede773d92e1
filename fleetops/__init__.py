"""
Package marker for the fleet operations resource API.
It groups the HTTP layer (`fleetops.api`) and shared runtime helpers (`fleetops.common`).
Most functionality lives in the sibling packages; this file intentionally stays lightweight.
"""

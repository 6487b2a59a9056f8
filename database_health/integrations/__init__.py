"""
Database Health - Framework Integrations.

- fastapi: startup validation lifespan and diagnostics router
"""

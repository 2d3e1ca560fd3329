"""
services/ - Business Logic Layer
================================
Billing arithmetic, reminder projection and reconciliation, read-models,
insights and exports. Handlers call services; services call repositories.
"""

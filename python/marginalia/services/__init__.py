"""Business logic services.

Services are called by route handlers and orchestrate storage and
database operations. Each route calls exactly one service function.
"""

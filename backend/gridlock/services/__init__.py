"""Match services: the document store operations and the rules engine.

``store`` holds the Flask/SQLAlchemy side (partial updates, guarded status
transitions, slot claims). ``engine`` is transport-free game logic shared
with the client package.
"""

# appforge/lib/__init__.py
"""
Shared infrastructure: monitoring, WebSocket fan-out and live channels.
"""

"""Realtime canvas collaboration: y-websocket room server and client provider."""

"""Connections, frame parsing and per-connection traffic accounting."""
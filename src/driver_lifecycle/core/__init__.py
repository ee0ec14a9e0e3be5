# src/driver_lifecycle/core/__init__.py

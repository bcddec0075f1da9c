"""Test package for the mental math trainer.

This package contains unit tests for the question generator, scheduler and
session engine, headless simulations of whole sessions, and smoke tests for
the pygame UI.  The UI tests run headlessly using pygame's dummy video driver
to avoid opening real windows.  To run these tests, execute ``pytest`` from
the project root.
"""

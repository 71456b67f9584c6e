"""clamsweep core pipeline.

This package holds the path resolver, the file collector, the remediation
manager, and the scan orchestrator that ties them to a scan engine.
"""

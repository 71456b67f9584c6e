"""clamsweep: ClamAV-driven file sweeps with quarantine and removal."""

__version__ = "1.0.0"

"""Polling and probing layer.

The poll cycle lives in poller.py and drives:
- roster_source.py / reference_version.py (external inputs)
- fanout.py -> instance_prober.py -> probes.py (per-instance checks)
- inactive.py (zero-uptime classification)
- published.py (state read by the routers)
"""

# Import side-effects are intentionally avoided here; modules are imported by routers/services as needed.

"""Machine config hash.

Shared by:
- audit_sim.py (CSV audit)
- telemetry.py (spin_started / spin_completed config_hash field)

The hash MUST be computed identically in both locations.
"""
import hashlib
import json

from reelmachine.config import MachineConfig


def get_config_hash(config: MachineConfig) -> str:
    """
    Generate hash of a machine configuration.

    Returns 16-char hex hash of the canonical JSON snapshot.
    """
    config_snapshot = config.model_dump(mode="json")
    canonical = json.dumps(config_snapshot, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()[:16]

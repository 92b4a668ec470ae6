"""
Deskready - Desktop Control Readiness Service

Decides whether a desktop automation agent may drive the screen.

Architecture:
- Each module is self-contained with clear interfaces
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- readiness: Capability probes, retry policy, classification, aggregation
- cache: Single-slot snapshot cache with TTL
- bridge: Request table, transport channels, fallback snapshots
"""

__version__ = "1.0.0"

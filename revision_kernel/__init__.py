"""
Revision Kernel

Amendment workflow for confirmed purchase and sales orders:
- Draft revisions with classified, versioned change tracking
- Cost-delta and criticality driven approval routing
- Sequential multi-level approval chains
- Append-only audit log per revision
"""

__version__ = "0.1.0"

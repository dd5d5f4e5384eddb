"""
plan-council: Multi-Capability Plan Synthesis Coordinator

Coordinates a council of external text-generation capabilities into a
single implementation plan:
- Coordination: one capability call per request, caller-driven
- Fidelity: longest-observed step outputs preserved server-side
- Persistence: live plan artifact rewritten after every step
- Execution: plan parsing with fixed verification checkpoints
"""

__version__ = "0.1.0"
__author__ = "plan-council contributors"

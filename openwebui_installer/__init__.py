"""Local AI stack installer (Docker + LM Studio + Open WebUI).

Core design goals:
- Idempotent steps: re-running converges instead of duplicating work
- Fail fast on fatal steps, keep going on warn steps
- Every command and its output recorded in a per-run log
- Generated files are deterministic overwrites
"""

__all__ = []

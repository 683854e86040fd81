"""
callsum — Call Summary Pipeline Core

Captures (or accepts) a call recording and drives it through a fixed
sequence of processing stages, reporting live progress and producing a
structured CallResult.

Pipeline Stages (default order):
    1. upload      — payload integrity + fingerprint
    2. transcribe  — speech to text (external backend)
    3. analyze     — sentiment + key points (external backend)
    4. summarize   — summary + action items (external backend)
    5. finalize    — clean-up of the assembled result

Invariants:
    - Stages execute strictly in order, never in parallel
    - At most one PipelineRun is active per pipeline
    - A CallResult is produced only by a completed run
    - Durations are whole seconds (int)
"""

__version__ = "1.0.0.dev0"

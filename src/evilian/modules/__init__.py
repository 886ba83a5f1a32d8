"""evilian modules - Self-contained bricks following the brick philosophy

Each module is a self-contained component with clear contracts:
- Input Validation: Check operator input before any remote call
- Prerequisites Checker: Verify required tools
- Progress Display: Show real-time progress
- Interaction Handler: Confirmation prompts (CLI and mock)
- SSH Connector: Probe the SSH port and open the interactive session
"""
